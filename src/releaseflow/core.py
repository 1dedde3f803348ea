import logging
import os
from typing import Dict, Optional, Tuple

from rich.console import Console
from rich.markup import escape

from .errors import (
    CommitFailed,
    MergeFailed,
    PushFailed,
    ReleaseError,
    RollbackIncomplete,
    TagFailed,
)
from .errors_catalog import actionable_error
from .models import ReleaseConfig, ReleaseRun
from .services.checkpoints import CheckpointTracker
from .services.command_runner import CommandRunner
from .services.git_backend import DryRunGitBackend, GitBackend
from .services.guard import RepositoryGuard
from .services.push import PushService
from .services.report import ReportService
from .services.rollback import RollbackService
from .services.semver import VersionValidator
from .services.version_files import VersionFileService

console = Console()
logger = logging.getLogger("releaseflow")


class ReleaseOrchestrator:
    """Runs one release: merge to stable, bump versions, tag, merge back, push.

    Steps run strictly in order, each one only after the previous one
    succeeded. A failure from the merge step onwards rolls the repository back
    to the state recorded in the run's checkpoints.

    The repository is assumed to have a single writer for the whole run.
    Concurrent invocations against the same repository are not supported and
    may leave it in an inconsistent state.
    """

    TRANSITIONS: Dict[str, Tuple[str, str]] = {
        "validate_version": ("start", "validated"),
        "check_repository": ("validated", "repo_ready"),
        "merge_to_stable": ("repo_ready", "merged_main"),
        "update_versions": ("merged_main", "versions_updated"),
        "tag_release": ("versions_updated", "tagged"),
        "merge_back": ("tagged", "merged_dev"),
        "push": ("done", "pushed"),
    }

    def __init__(
        self,
        target_version: str,
        repo_path: Optional[str] = None,
        config: Optional[ReleaseConfig] = None,
        dry_run: bool = False,
        push: bool = False,
        report_file: Optional[str] = None,
        git=None,
    ):
        self.repo_path = os.path.abspath(repo_path or os.getcwd())
        self.config = config or ReleaseConfig()
        self.release = ReleaseRun(
            target_version=target_version,
            dry_run=dry_run,
            push_requested=push,
        )
        self.tracker = CheckpointTracker(self.release, logger)

        backend = git or GitBackend(CommandRunner(logger=logger, cwd=self.repo_path), logger)
        self.git = DryRunGitBackend(backend, logger, console) if dry_run else backend

        self.validator = VersionValidator(self.config.semver_pattern)
        self.guard = RepositoryGuard(self.git, self.repo_path, logger)
        self.version_files = VersionFileService(self.repo_path, logger, console, dry_run=dry_run)
        self.rollback_service = RollbackService(self.git, self.config, logger, console)
        self.push_service = PushService(self.git, self.config, logger, console)
        self.report_service = ReportService(report_file, logger)

        self.state = "start"
        self.current_step_name: Optional[str] = None

    @property
    def target_version(self) -> str:
        return self.release.target_version

    def _run_step(self, name: str, callback, *args, **kwargs):
        expected, next_state = self.TRANSITIONS[name]
        if self.state != expected:
            raise RuntimeError(f"Step '{name}' cannot run from state '{self.state}'")

        self.report_service.step_started(name)
        self.current_step_name = name
        logger.debug("Step %s started", name)

        try:
            result = callback(*args, **kwargs)
        except Exception as exc:
            self.state = "failed"
            self.report_service.step_finished(name, "failed", error=str(exc))
            self.report_service.set_checkpoints(self.tracker.snapshot())
            raise

        self.state = next_state
        self.report_service.step_finished(name, "success")
        self.report_service.set_checkpoints(self.tracker.snapshot())
        self.current_step_name = None
        return result

    def validate_version(self) -> str:
        return self.validator.validate(self.target_version)

    def check_repository(self) -> str:
        branch = self.guard.check()

        tags = self.git.list_tags()
        latest = self.validator.latest_release(tags)
        if (
            latest
            and self.target_version not in tags
            and not self.validator.is_newer(self.target_version, latest)
        ):
            logger.warning(
                "Version %s is not newer than the latest release tag %s.",
                self.target_version,
                latest,
            )
            console.print(
                f"[yellow]Warning:[/yellow] {self.target_version} is not newer than {latest}."
            )
        return branch

    def merge_to_stable(self) -> bool:
        """Merges the original branch into the stable branch.

        Returns ``False`` when the run started on the stable branch and no merge
        was needed.
        """
        stable = self.config.stable_branch
        original_branch = self.git.current_branch()
        self.tracker.record_original(original_branch, self.git.rev_parse(original_branch))

        if original_branch == stable:
            console.print(f"[blue]Already on {stable}, no merge needed.[/blue]")
            logger.info("Already on %s, skipping merge", stable)
            return False

        console.print(f"[blue]Merging {original_branch} into {stable}...[/blue]")
        try:
            self.git.checkout(stable)
            self._fast_forward(stable)
            pre_merge = self.git.rev_parse(stable)
            self.git.merge(
                original_branch,
                self.config.merge_message.format(
                    source=original_branch,
                    target=stable,
                    version=self.target_version,
                ),
            )
            if self.git.dry_run or self.git.rev_parse(stable) != pre_merge:
                self.tracker.record_main(pre_merge)
            else:
                logger.info("%s already contains %s, no merge commit", stable, original_branch)
        except ReleaseError as exc:
            raise MergeFailed(
                f"{actionable_error('merge_failed', source=original_branch, target=stable)}\n{exc}"
            ) from exc

        logger.info("Merged %s into %s", original_branch, stable)
        return True

    def update_versions(self) -> bool:
        """Rewrites version markers and commits them. Returns ``True`` if a commit was made."""
        stable = self.config.stable_branch
        changed = self.version_files.update(self.config.version_files, self.target_version)
        if not changed:
            console.print(f"[blue]Version markers already at {self.target_version}.[/blue]")
            logger.info("Version markers already at %s, nothing to commit", self.target_version)
            return False

        try:
            pre_commit = self.git.rev_parse(stable)
            amend = self.release.main_commit is not None and not self.git.is_pushed(pre_commit)
            self.git.add(changed)
            self.git.commit(
                self.config.commit_message.format(version=self.target_version),
                amend=amend,
            )
            self.tracker.record_version_commit(self.git.rev_parse(stable))
            # A merge that created no commit leaves stable to be restored from here.
            started_elsewhere = self.release.original_branch not in (None, stable)
            if self.release.main_commit is None and started_elsewhere:
                self.tracker.record_main(pre_commit)
        except ReleaseError as exc:
            raise CommitFailed(
                f"{actionable_error('commit_failed', version=self.target_version)}\n{exc}"
            ) from exc

        console.print(
            f"[green]Version set to {self.target_version} in {', '.join(changed)}.[/green]"
        )
        logger.info("Committed version %s (%s)", self.target_version, "amend" if amend else "new commit")
        return True

    def tag_release(self) -> str:
        """Tags the stable tip. Returns ``created``, ``exists`` or ``mismatch``."""
        version = self.target_version
        try:
            commit = self.git.rev_parse(self.config.stable_branch)
            # A dry run never moves stable, so its current tags belong to the old tip.
            if self.git.dry_run and self.release.stable_moved:
                existing = []
            else:
                existing = self.git.tags_at(commit)
            self.release.existing_tags = list(existing)

            if version in existing:
                console.print(f"[green]Commit is already tagged {version}.[/green]")
                logger.info("Commit %s already tagged %s", commit, version)
                return "exists"

            if existing:
                logger.warning(
                    "Commit %s is already tagged %s; not tagging it %s.",
                    commit,
                    ", ".join(existing),
                    version,
                )
                console.print(
                    f"[yellow]Warning:[/yellow] commit already tagged {', '.join(existing)}, "
                    f"skipping tag {version}."
                )
                return "mismatch"

            if version in self.git.list_tags():
                raise TagFailed(actionable_error("tag_failed", version=version))

            self.git.create_tag(version, self.config.tag_message.format(version=version), commit)
        except TagFailed:
            raise
        except ReleaseError as exc:
            raise TagFailed(f"{actionable_error('tag_failed', version=version)}\n{exc}") from exc

        self.tracker.record_tag(commit)
        console.print(f"[green]Tagged {commit[:12]} as {version}.[/green]")
        logger.info("Created tag %s on %s", version, commit)
        return "created"

    def merge_back(self) -> bool:
        """Merges the stable branch into the development branch, then returns to stable.

        Returns ``True`` on success, including when the stable branch did not
        move and there is nothing to merge back.
        """
        if not (self.release.main_commit or self.release.tag_id):
            logger.info("Stable branch did not move, nothing to merge back")
            return True

        stable = self.config.stable_branch
        develop = self.config.develop_branch
        console.print(f"[blue]Merging {stable} back into {develop}...[/blue]")
        try:
            self.git.checkout(develop)
            self._fast_forward(develop)
            self.tracker.record_dev(self.git.rev_parse(develop))
            self.git.merge(
                stable,
                self.config.merge_message.format(
                    source=stable,
                    target=develop,
                    version=self.target_version,
                ),
            )
            self.git.checkout(stable)
        except ReleaseError as exc:
            raise MergeFailed(
                f"{actionable_error('merge_failed', source=stable, target=develop)}\n{exc}"
            ) from exc

        logger.info("Merged %s back into %s", stable, develop)
        return True

    def push(self):
        return self.push_service.push(self.release)

    def _fast_forward(self, branch: str):
        upstream = self.git.upstream(branch)
        if not upstream:
            logger.debug("Branch %s has no upstream, skipping fast-forward", branch)
            return
        self.git.fast_forward(branch)

    def _rollback(self):
        success = False
        try:
            self.rollback_service.rollback_or_raise(self.tracker)
            success = True
        except RollbackIncomplete as exc:
            console.print(f"[bold red]RollbackIncomplete:[/bold red] {escape(str(exc))}")
            logger.critical("Manual intervention required: %s", exc)
        finally:
            self.report_service.set_rollback(success, self.rollback_service.failed_steps)
        return success

    def _print_plan(self):
        planned = getattr(self.git, "planned", [])
        console.print(f"[bold cyan]Dry run complete: {len(planned)} git action(s) planned.[/bold cyan]")
        for action in planned:
            console.print(f"  {action}", markup=False)

    def run(self) -> int:
        exit_code = 1
        report_status = "failed"
        report_error: Optional[str] = None

        try:
            logger.info("Starting release %s in %s", self.target_version, self.repo_path)
            self.report_service.start_run(self.target_version, self.release.dry_run)

            self._run_step("validate_version", self.validate_version)
            self._run_step("check_repository", self.check_repository)

            try:
                self._run_step("merge_to_stable", self.merge_to_stable)
                self._run_step("update_versions", self.update_versions)
                self._run_step("tag_release", self.tag_release)
                self._run_step("merge_back", self.merge_back)
            except (Exception, KeyboardInterrupt) as exc:
                logger.error("Release step '%s' failed: %s", self.current_step_name, exc)
                self._rollback()
                raise

            self.state = "done"
            console.print(f"[bold green]Release {self.target_version} completed.[/bold green]")
            report_status = "success"
            exit_code = 0

            if self.release.push_requested:
                try:
                    self._run_step("push", self.push)
                except PushFailed as exc:
                    console.print(f"[bold red]PushFailed:[/bold red] {escape(str(exc))}")
                    logger.error(str(exc))
                    report_status = "push_failed"
                    report_error = str(exc)
                    exit_code = 1

            if self.release.dry_run:
                self._print_plan()

            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            report_status = "aborted"
            report_error = "Operation cancelled by user."
            return 1
        except ReleaseError as exc:
            console.print(f"[bold red]{type(exc).__name__}:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            report_error = str(exc)
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            report_error = str(exc)
            return 1
        finally:
            self.report_service.finalize(report_status, error=report_error)
