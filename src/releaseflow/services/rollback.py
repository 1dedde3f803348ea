"""Best-effort restoration of the repository after a failed release."""

from functools import partial
from typing import Callable, List, Optional, Tuple

from rich.console import Console

from releaseflow.errors import ReleaseError, RollbackIncomplete
from releaseflow.errors_catalog import actionable_error
from releaseflow.models import ReleaseConfig
from releaseflow.services.checkpoints import CheckpointTracker

RollbackStep = Tuple[str, Callable[[], None], Optional[str]]


class RollbackService:
    """Undoes a partial release using the checkpoints on the run, newest first.

    Every applicable step is attempted even when an earlier one fails; the
    outcome is a single success flag plus the names of the failed steps.
    """

    def __init__(self, git, config: ReleaseConfig, logger, console: Console):
        self.git = git
        self.config = config
        self.logger = logger
        self.console = console
        self.failed_steps: List[str] = []

    def plan(self, tracker: CheckpointTracker) -> List[RollbackStep]:
        run = tracker.run
        steps: List[RollbackStep] = [("abort pending merge", self._abort_pending_merge, None)]

        if run.tag_id:
            tag = run.target_version
            steps.append((f"delete tag {tag}", partial(self.git.delete_tag, tag), "tag_id"))

        if run.dev_commit:
            branch, commit = self.config.develop_branch, run.dev_commit
            steps.append(
                (
                    f"reset {branch} to {commit[:12]}",
                    partial(self._restore_branch, branch, commit),
                    "dev_commit",
                )
            )

        if run.main_commit:
            branch, commit = self.config.stable_branch, run.main_commit
            steps.append(
                (
                    f"reset {branch} to {commit[:12]}",
                    partial(self._restore_branch, branch, commit),
                    "main_commit",
                )
            )

        if run.original_branch:
            branch, commit = run.original_branch, run.original_commit
            steps.append((f"return to {branch}", partial(self._restore_branch, branch, commit), None))

        return steps

    def _abort_pending_merge(self):
        if self.git.merge_in_progress():
            self.git.abort_merge()

    def _restore_branch(self, branch: str, commit: Optional[str]):
        self.git.checkout(branch)
        if commit:
            self.git.reset_hard(commit)

    def rollback(self, tracker: CheckpointTracker) -> bool:
        self.console.print("[yellow]Rolling back release changes...[/yellow]")
        self.logger.warning("Rolling back release changes")

        success = True
        self.failed_steps = []
        for description, action, checkpoint in self.plan(tracker):
            try:
                action()
            except ReleaseError as exc:
                success = False
                self.failed_steps.append(description)
                self.logger.error("Rollback step failed (%s): %s", description, exc)
                continue
            if checkpoint:
                tracker.clear(checkpoint)
            self.logger.info("Rollback: %s", description)

        if success:
            self.console.print("[green]Repository restored to its pre-release state.[/green]")
        return success

    def rollback_or_raise(self, tracker: CheckpointTracker):
        if not self.rollback(tracker):
            raise RollbackIncomplete(
                actionable_error("rollback_incomplete", steps=", ".join(self.failed_steps))
            )
