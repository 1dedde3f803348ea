"""Version-control backend used by the release workflow."""

from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from releaseflow.errors import ToolingMissing
from releaseflow.services.command_runner import CommandRunner


class GitBackend:
    """Thin wrapper over the git CLI.

    Read methods return parsed output. Mutating methods raise
    ``GitCommandError`` when git exits with a non-zero status. All refs are
    passed explicitly so callers never depend on what HEAD happens to be.
    """

    dry_run = False

    def __init__(self, runner: CommandRunner, logger):
        self.runner = runner
        self.logger = logger

    def _git(self, *args: str, check: bool = True) -> str:
        result = self.runner.run(["git", *args], check=check, capture_output=True)
        return (result.stdout or "").strip()

    def _succeeds(self, *args: str) -> bool:
        return self.runner.run(["git", *args], check=False, capture_output=True).returncode == 0

    @staticmethod
    def _lines(output: str) -> List[str]:
        return [line.strip() for line in output.splitlines() if line.strip()]

    # Queries

    def is_available(self) -> bool:
        try:
            inside = self._git("rev-parse", "--is-inside-work-tree", check=False)
        except ToolingMissing:
            return False
        return inside == "true"

    def has_uncommitted_changes(self) -> bool:
        return bool(self._git("status", "--porcelain", "--untracked-files=no"))

    def current_branch(self) -> Optional[str]:
        result = self.runner.run(
            ["git", "symbolic-ref", "--quiet", "--short", "HEAD"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or None

    def rev_parse(self, ref: str) -> str:
        return self._git("rev-parse", "--verify", f"{ref}^{{commit}}")

    def branch_exists(self, branch: str) -> bool:
        return self._succeeds("show-ref", "--verify", "--quiet", f"refs/heads/{branch}")

    def upstream(self, branch: str) -> Optional[str]:
        output = self._git(
            "rev-parse", "--abbrev-ref", "--symbolic-full-name", f"{branch}@{{upstream}}", check=False
        )
        if not output or output.endswith("@{upstream}"):
            return None
        return output

    def merge_in_progress(self) -> bool:
        return self._succeeds("rev-parse", "-q", "--verify", "MERGE_HEAD")

    def is_pushed(self, commit: str) -> bool:
        return bool(self._lines(self._git("branch", "-r", "--contains", commit, check=False)))

    def tags_at(self, commit: str) -> List[str]:
        return self._lines(self._git("tag", "--points-at", commit))

    def list_tags(self) -> List[str]:
        return self._lines(self._git("tag", "--list"))

    def remotes(self) -> List[str]:
        return self._lines(self._git("remote"))

    # Mutations

    def checkout(self, branch: str):
        self._git("checkout", branch)

    def fast_forward(self, branch: str):
        """Fast-forward the checked out ``branch`` from its upstream."""
        self._git("pull", "--ff-only")

    def merge(self, branch: str, message: str):
        self._git("merge", "--no-ff", "-m", message, branch)

    def abort_merge(self):
        self._git("merge", "--abort")

    def add(self, paths: List[str]):
        self._git("add", "--", *paths)

    def commit(self, message: str, amend: bool = False):
        if amend:
            self._git("commit", "--amend", "--no-edit")
        else:
            self._git("commit", "-m", message)

    def create_tag(self, name: str, message: str, commit: str):
        self._git("tag", "-a", name, "-m", message, commit)

    def delete_tag(self, name: str):
        self._git("tag", "-d", name)

    def reset_hard(self, commit: str):
        self._git("reset", "--hard", commit)

    def push(self, remote: str, ref: str):
        self._git("push", remote, ref)


class DryRunGitBackend:
    """Forwards queries to ``backend`` and records mutations instead of running them."""

    dry_run = True

    def __init__(self, backend, logger, console: Console):
        self.backend = backend
        self.logger = logger
        self.console = console
        self.planned: List[str] = []

    def __getattr__(self, name):
        return getattr(self.backend, name)

    def _plan(self, action: str):
        self.planned.append(action)
        self.logger.info("[dry-run] %s", action)
        self.console.print(f"[cyan]\\[dry-run][/cyan] {escape(action)}")

    def checkout(self, branch: str):
        self._plan(f"git checkout {branch}")

    def fast_forward(self, branch: str):
        self._plan(f"git pull --ff-only ({branch})")

    def merge(self, branch: str, message: str):
        self._plan(f"git merge --no-ff -m '{message}' {branch}")

    def abort_merge(self):
        self._plan("git merge --abort")

    def add(self, paths: List[str]):
        self._plan(f"git add -- {' '.join(paths)}")

    def commit(self, message: str, amend: bool = False):
        if amend:
            self._plan("git commit --amend --no-edit")
        else:
            self._plan(f"git commit -m '{message}'")

    def create_tag(self, name: str, message: str, commit: str):
        self._plan(f"git tag -a {name} -m '{message}' {commit}")

    def delete_tag(self, name: str):
        self._plan(f"git tag -d {name}")

    def reset_hard(self, commit: str):
        self._plan(f"git reset --hard {commit}")

    def push(self, remote: str, ref: str):
        self._plan(f"git push {remote} {ref}")
