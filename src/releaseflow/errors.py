"""Domain errors for releaseflow."""


class ReleaseError(RuntimeError):
    """Raised when the release cannot continue safely."""


class ConfigError(ReleaseError):
    """Raised when the configuration file is missing or malformed."""


class GitCommandError(ReleaseError):
    """Raised when a git invocation exits with a non-zero status."""


class InvalidVersion(ReleaseError):
    pass


class ToolingMissing(ReleaseError):
    pass


class DirtyRepository(ReleaseError):
    pass


class DetachedState(ReleaseError):
    pass


class MergeFailed(ReleaseError):
    pass


class CommitFailed(ReleaseError):
    pass


class TagFailed(ReleaseError):
    pass


class PushFailed(ReleaseError):
    pass


class RollbackIncomplete(ReleaseError):
    """Raised when at least one rollback step could not be applied."""
