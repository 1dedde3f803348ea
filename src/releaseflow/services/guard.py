"""Pre-flight checks on the repository before any mutation."""

from releaseflow.errors import DetachedState, DirtyRepository, ToolingMissing
from releaseflow.errors_catalog import actionable_error


class RepositoryGuard:
    """Confirms git is reachable, the tree is clean and HEAD is on a branch.

    The checks stand in for a lock: the workflow assumes it is the only writer
    for the duration of the run and does not guard against concurrent runs.
    """

    def __init__(self, git, repo_path: str, logger):
        self.git = git
        self.repo_path = repo_path
        self.logger = logger

    def check(self) -> str:
        if not self.git.is_available():
            raise ToolingMissing(actionable_error("git_missing", path=self.repo_path))

        if self.git.has_uncommitted_changes():
            raise DirtyRepository(actionable_error("dirty_repository"))

        branch = self.git.current_branch()
        if not branch:
            raise DetachedState(actionable_error("detached_head"))

        self.logger.debug("Repository at %s is clean on branch %s", self.repo_path, branch)
        return branch
