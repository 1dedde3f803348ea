"""Shared domain models for releaseflow."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .constants import (
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_DEVELOP_BRANCH,
    DEFAULT_MERGE_MESSAGE,
    DEFAULT_STABLE_BRANCH,
    DEFAULT_TAG_MESSAGE,
    DEFAULT_VERSION_FILES,
)


@dataclass(frozen=True)
class VersionFile:
    """A tracked file holding a single-line version marker."""

    path: str
    key: str
    format: str = "dotenv"


@dataclass(frozen=True)
class ReleaseConfig:
    """Repository-level settings, resolved once per invocation."""

    stable_branch: str = DEFAULT_STABLE_BRANCH
    develop_branch: str = DEFAULT_DEVELOP_BRANCH
    version_files: Tuple[VersionFile, ...] = tuple(
        VersionFile(path, key, fmt) for path, key, fmt in DEFAULT_VERSION_FILES
    )
    merge_message: str = DEFAULT_MERGE_MESSAGE
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    tag_message: str = DEFAULT_TAG_MESSAGE
    semver_pattern: Optional[str] = None
    remote: Optional[str] = None


@dataclass
class ReleaseRun:
    """Mutable record of one invocation.

    Every optional field is a checkpoint: it goes from ``None`` to a value at
    most once, and its presence tells the rollback which steps happened.
    """

    target_version: str
    dry_run: bool = False
    push_requested: bool = False
    original_branch: Optional[str] = None
    original_commit: Optional[str] = None
    main_commit: Optional[str] = None
    dev_commit: Optional[str] = None
    tag_id: Optional[str] = None
    version_commit: Optional[str] = None
    existing_tags: List[str] = field(default_factory=list)

    @property
    def stable_moved(self) -> bool:
        return self.main_commit is not None or self.version_commit is not None

    @property
    def develop_moved(self) -> bool:
        return self.dev_commit is not None
