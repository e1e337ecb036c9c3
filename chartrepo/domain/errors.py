"""
Exceptions raised by the chart repository core.

Failures scoped to one repository or one row are recorded and skipped by the
caller; the ones below that escape a call affect the whole call.
"""


class ChartRepoError(Exception):
    """Base class for all chart repository errors."""
    pass


class ConfigError(ChartRepoError):
    """Raised when the repository configuration cannot be read or changed."""
    pass


class NotFoundError(ConfigError):
    """Raised when a configuration file or a repository is missing."""
    pass


class ConfigNotFoundError(NotFoundError):
    """Raised when the repository configuration file does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"repository config file not found: {path}")


class RepositoryNotFoundError(NotFoundError):
    """Raised when no repository with the given name is configured."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"no repo named {name!r} found")


class DuplicateNameError(ConfigError):
    """Raised when adding a repository whose name already exists."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"repository name ({name}) already exists, please specify a different name")


class WriteFailureError(ConfigError):
    """Raised when the repository configuration cannot be persisted."""
    pass


class FetchError(ChartRepoError):
    """Raised by an index fetcher when a repository index cannot be retrieved."""
    pass


class CacheLoadError(ChartRepoError):
    """Raised when a cached index is missing, unreadable or corrupt."""
    pass


class PatternError(ChartRepoError):
    """Raised when a search pattern is not a valid regular expression."""
    pass


class ConstraintSyntaxError(ChartRepoError):
    """Raised when a version constraint cannot be parsed."""
    pass
