import re
from typing import Optional, Tuple

from semver import Version

_LEADING_V = re.compile(r"^[vV](?=\d)")


def parse_version(value: str) -> Version:
    """
    Parse a chart version the way chart indexes write them in practice.

    A leading "v" is accepted and minor/patch may be omitted ("1.2" -> 1.2.0).
    Raises ValueError for anything else that is not semver.
    """
    if value is None:
        raise ValueError("version is empty")
    text = _LEADING_V.sub("", str(value).strip())
    if not text:
        raise ValueError("version is empty")
    return Version.parse(text, optional_minor_and_patch=True)


def try_parse_version(value: str) -> Optional[Version]:
    try:
        return parse_version(value)
    except (TypeError, ValueError):
        return None


class _Newest:
    """Orders versions descending when used inside an ascending sort key."""

    __slots__ = ("version",)

    def __init__(self, version: Version):
        self.version = version

    def __lt__(self, other: "_Newest") -> bool:
        return self.version > other.version

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _Newest) and self.version == other.version


def version_sort_key(value: str) -> Tuple:
    """
    Sort key putting the newest valid version first.

    Invalid versions compare equal to each other and sort last, so a stable
    sort leaves them in their original order.
    """
    parsed = try_parse_version(value)
    if parsed is None:
        return (1, 0)
    return (0, _Newest(parsed))
