"""
Semantic version constraints and the result filter built on them.

Constraint syntax:

    >=1.2.3, <2.0.0        every comma or space separated term must hold
    ^1.2 || ~0.9.1         any "||" separated group may hold
    1.2 - 1.4.5            inclusive hyphen range
    1.2.x, 1.*, *          wildcards (missing components count as wildcards)

A version carrying a pre-release tag only satisfies a term whose own version
carries one, so ">0.0.0" means "any stable release" while ">0.0.0-0" also
admits pre-releases.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set

from semver import Version

from chartrepo.domain.errors import ConstraintSyntaxError
from chartrepo.domain.models import ScoredResult
from chartrepo.domain.semver_utils import try_parse_version

logger = logging.getLogger(__name__)

STABLE_CONSTRAINT = ">0.0.0"
DEVEL_CONSTRAINT = ">0.0.0-0"

_OP = r"!=|>=|=>|<=|=<|~>|=|>|<|~|\^"
_PART = r"[0-9]+|[xX*]"
_IDENT = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_VERSION = rf"v?(?:{_PART})(?:\.(?:{_PART}))?(?:\.(?:{_PART}))?(?:-{_IDENT})?(?:\+{_IDENT})?"
_TERM = rf"(?:{_OP})?\s*{_VERSION}"

_GROUP_RE = re.compile(rf"^\s*{_TERM}(?:\s*,?\s*{_TERM})*\s*,?\s*$")
_TERM_RE = re.compile(_TERM)
_HYPHEN_RE = re.compile(rf"\s*({_VERSION})\s+-\s+({_VERSION})\s*")
_TERM_PARTS_RE = re.compile(
    rf"^(?P<op>{_OP})?\s*v?(?P<major>{_PART})(?:\.(?P<minor>{_PART}))?(?:\.(?P<patch>{_PART}))?"
    rf"(?:-(?P<pre>{_IDENT}))?(?:\+(?P<build>{_IDENT}))?$"
)

_OP_ALIASES = {"": "=", "=>": ">=", "=<": "<=", "~>": "~"}


def _is_wildcard(part: Optional[str]) -> bool:
    return part is None or part in ("x", "X", "*")


@dataclass(frozen=True)
class Term:
    """A single comparison such as ">=1.2.0" or "~1.4"."""

    op: str
    version: Version
    dirty: bool = False
    minor_dirty: bool = False
    patch_dirty: bool = False
    original: str = ""

    @classmethod
    def parse(cls, text: str) -> "Term":
        m = _TERM_PARTS_RE.match(text.strip())
        if m is None:
            raise ConstraintSyntaxError(f"improper constraint: {text}")

        op = m.group("op") or ""
        op = _OP_ALIASES.get(op, op)
        major, minor, patch = m.group("major"), m.group("minor"), m.group("patch")
        pre, build = m.group("pre"), m.group("build")

        dirty = minor_dirty = patch_dirty = False
        if _is_wildcard(major):
            dirty = True
            version = Version(0, 0, 0)
        elif _is_wildcard(minor):
            dirty = minor_dirty = True
            version = Version(int(major), 0, 0, prerelease=pre, build=build)
        elif _is_wildcard(patch):
            dirty = patch_dirty = True
            version = Version(int(major), int(minor), 0, prerelease=pre, build=build)
        else:
            version = Version(int(major), int(minor), int(patch), prerelease=pre, build=build)

        return cls(op, version, dirty, minor_dirty, patch_dirty, text.strip())

    def check(self, v: Version) -> bool:
        # Pre-releases only match terms that ask for them.
        if v.prerelease is not None and self.version.prerelease is None:
            return False
        return _CHECKS[self.op](self, v)

    def __str__(self) -> str:
        return self.original


def _check_equal(c: Term, v: Version) -> bool:
    if c.dirty:
        return _check_tilde(c, v)
    return v == c.version


def _check_not_equal(c: Term, v: Version) -> bool:
    if not c.dirty:
        return v != c.version
    if c.version.major != v.major:
        return True
    if c.minor_dirty:
        return False
    if c.version.minor != v.minor:
        return True
    return False


def _check_greater(c: Term, v: Version) -> bool:
    if not c.dirty:
        return v > c.version
    if v.major != c.version.major:
        return v.major > c.version.major
    if c.minor_dirty:
        return False
    if c.patch_dirty:
        return v.minor > c.version.minor
    return v > c.version


def _check_less(c: Term, v: Version) -> bool:
    return v < c.version


def _check_greater_equal(c: Term, v: Version) -> bool:
    return v >= c.version


def _check_less_equal(c: Term, v: Version) -> bool:
    if not c.dirty:
        return v <= c.version
    if v.major > c.version.major:
        return False
    if v.major == c.version.major and v.minor > c.version.minor and not c.minor_dirty:
        return False
    return True


def _check_tilde(c: Term, v: Version) -> bool:
    if v < c.version:
        return False
    con = c.version
    # "~0.0.0" and "*" match everything.
    if con.major == 0 and con.minor == 0 and con.patch == 0 and not c.minor_dirty and not c.patch_dirty:
        return True
    if v.major != con.major:
        return False
    if v.minor != con.minor and not c.minor_dirty:
        return False
    return True


def _check_caret(c: Term, v: Version) -> bool:
    if v < c.version:
        return False
    con = c.version
    if con.major > 0 or c.minor_dirty:
        return v.major == con.major
    if v.major > 0:
        return False
    if con.minor > 0 or c.patch_dirty:
        return v.minor == con.minor
    if v.minor > 0:
        return False
    return v.patch == con.patch


_CHECKS = {
    "=": _check_equal,
    "!=": _check_not_equal,
    ">": _check_greater,
    "<": _check_less,
    ">=": _check_greater_equal,
    "<=": _check_less_equal,
    "~": _check_tilde,
    "^": _check_caret,
}


class Constraint:
    """A parsed constraint: OR of groups, each an AND of terms."""

    def __init__(self, groups: List[List[Term]], original: str = ""):
        self.groups = groups
        self.original = original

    @classmethod
    def parse(cls, text: str) -> "Constraint":
        if text is None or not text.strip():
            raise ConstraintSyntaxError("empty version constraint")

        rewritten = _HYPHEN_RE.sub(r" >= \1, <= \2 ", text)
        groups: List[List[Term]] = []
        for raw_group in rewritten.split("||"):
            if not _GROUP_RE.match(raw_group):
                raise ConstraintSyntaxError(f"an invalid version/constraint format: {text!r}")
            groups.append([Term.parse(t) for t in _TERM_RE.findall(raw_group)])
        return cls(groups, text)

    def check(self, v: Version) -> bool:
        return any(all(term.check(v) for term in group) for group in self.groups)

    def __str__(self) -> str:
        return self.original


def default_constraint(explicit: Optional[str] = None, include_prerelease: bool = False) -> str:
    """
    Pick the constraint to search with.

    An explicit constraint always wins; otherwise only stable releases are
    searched, or every release when include_prerelease is set.
    """
    logger.debug(f"Original chart version: {explicit!r}")
    if explicit:
        return explicit
    if include_prerelease:
        logger.debug(f"setting version to {DEVEL_CONSTRAINT}")
        return DEVEL_CONSTRAINT
    logger.debug(f"setting version to {STABLE_CONSTRAINT}")
    return STABLE_CONSTRAINT


class ConstraintResolver:
    """Filters score-ordered search results down to versions satisfying a constraint."""

    def apply(
        self,
        results: List[ScoredResult],
        constraint: str,
        keep_all_versions: bool = False,
    ) -> List[ScoredResult]:
        """
        Keep the rows whose version satisfies constraint, in input order.

        Rows with an unparsable version are skipped. Unless keep_all_versions
        is set only the first satisfying row of each chart survives, which is
        the best scored one rather than necessarily the newest.
        """
        if not constraint:
            return list(results)

        parsed = Constraint.parse(constraint)

        kept: List[ScoredResult] = []
        found_names: Set[str] = set()
        for r in results:
            if not keep_all_versions and r.package_name in found_names:
                continue
            v = try_parse_version(r.version)
            if v is None:
                logger.debug(f"Skipping {r.full_name} {r.version!r}: not a valid semantic version")
                continue
            if parsed.check(v):
                kept.append(r)
                found_names.add(r.package_name)
        return kept

    def resolve(
        self,
        results: List[ScoredResult],
        constraint: Optional[str] = None,
        include_prerelease: bool = False,
        keep_all_versions: bool = False,
    ) -> List[ScoredResult]:
        return self.apply(results, default_constraint(constraint, include_prerelease), keep_all_versions)
