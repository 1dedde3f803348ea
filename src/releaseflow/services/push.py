"""Publishes a completed release to the repository's remote."""

from typing import List, Optional, Tuple

from rich.console import Console

from releaseflow.errors import PushFailed, ReleaseError
from releaseflow.errors_catalog import actionable_error
from releaseflow.models import ReleaseConfig, ReleaseRun


class PushService:
    """Pushes the stable branch, the development branch and the tag, in that order.

    A failed push is reported and left alone: the release is already complete
    locally, so nothing is retried or rolled back.
    """

    def __init__(self, git, config: ReleaseConfig, logger, console: Console):
        self.git = git
        self.config = config
        self.logger = logger
        self.console = console

    def resolve_remote(self) -> str:
        remotes = self.git.remotes()
        if self.config.remote:
            if self.config.remote not in remotes:
                raise PushFailed(f"Configured remote '{self.config.remote}' does not exist.")
            return self.config.remote
        if not remotes:
            raise PushFailed(actionable_error("no_remote"))
        if len(remotes) > 1:
            raise PushFailed(actionable_error("ambiguous_remote", remotes=", ".join(remotes)))
        return remotes[0]

    def refs_to_push(self, run: ReleaseRun) -> List[Tuple[str, str]]:
        refs = []
        if run.stable_moved:
            refs.append((self.config.stable_branch, self.config.stable_branch))
        if run.develop_moved:
            refs.append((self.config.develop_branch, self.config.develop_branch))
        if run.tag_id:
            refs.append((f"tag {run.target_version}", f"refs/tags/{run.target_version}"))
        return refs

    def push(self, run: ReleaseRun, remote: Optional[str] = None) -> List[str]:
        refs = self.refs_to_push(run)
        if not refs:
            self.console.print("[yellow]Nothing to push.[/yellow]")
            self.logger.info("Nothing to push")
            return []

        remote = remote or self.resolve_remote()
        pushed = []
        for label, ref in refs:
            self.console.print(f"[blue]Pushing {label} to {remote}...[/blue]")
            try:
                self.git.push(remote, ref)
            except ReleaseError as exc:
                raise PushFailed(actionable_error("push_failed", ref=label, remote=remote)) from exc
            pushed.append(ref)
            self.logger.info("Pushed %s to %s", ref, remote)

        self.console.print(f"[green]Pushed {len(pushed)} ref(s) to {remote}.[/green]")
        return pushed
