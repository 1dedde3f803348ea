"""Checkpoint bookkeeping for a release run."""

from releaseflow.models import ReleaseRun

CHECKPOINT_FIELDS = (
    "original_branch",
    "original_commit",
    "main_commit",
    "version_commit",
    "tag_id",
    "dev_commit",
)


class CheckpointTracker:
    """Records pre-mutation state on a ``ReleaseRun``.

    Each checkpoint can be recorded once. Only the rollback clears them.
    """

    def __init__(self, run: ReleaseRun, logger):
        self.run = run
        self.logger = logger

    def _record(self, name: str, value: str):
        if name not in CHECKPOINT_FIELDS:
            raise KeyError(f"Unknown checkpoint: {name}")
        if not value:
            raise ValueError(f"Checkpoint {name} needs a value")
        current = getattr(self.run, name)
        if current is not None:
            raise RuntimeError(f"Checkpoint {name} already recorded as {current}")
        setattr(self.run, name, value)
        self.logger.debug("Checkpoint %s=%s", name, value)

    def record_original(self, branch: str, commit: str):
        self._record("original_branch", branch)
        self._record("original_commit", commit)

    def record_main(self, commit: str):
        self._record("main_commit", commit)

    def record_version_commit(self, commit: str):
        self._record("version_commit", commit)

    def record_tag(self, commit: str):
        self._record("tag_id", commit)

    def record_dev(self, commit: str):
        self._record("dev_commit", commit)

    def clear(self, name: str):
        if name not in CHECKPOINT_FIELDS:
            raise KeyError(f"Unknown checkpoint: {name}")
        setattr(self.run, name, None)

    def snapshot(self) -> dict:
        return {name: getattr(self.run, name) for name in CHECKPOINT_FIELDS}
