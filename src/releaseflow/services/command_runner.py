"""Subprocess execution service for releaseflow."""

import subprocess
from typing import List, Optional

from releaseflow.errors import GitCommandError, ReleaseError, ToolingMissing


class CommandRunner:
    """Runs external commands with consistent error handling.

    Commands block until they exit; there is no timeout and no retry.
    """

    def __init__(self, logger, cwd: Optional[str] = None):
        self.logger = logger
        self.cwd = cwd

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                cwd=self.cwd,
            )
        except FileNotFoundError as exc:
            raise ToolingMissing(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except OSError as exc:
            raise ReleaseError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0 or not check:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"
        raise GitCommandError(message)
