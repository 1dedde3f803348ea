"""Rewrites single-line version markers in tracked files."""

import os
import re
from typing import Iterable, List, Optional

from rich.console import Console

from releaseflow.errors import CommitFailed
from releaseflow.errors_catalog import actionable_error
from releaseflow.models import VersionFile


def _dotenv_pattern(key: str) -> "re.Pattern[str]":
    return re.compile(
        r"^(?P<prefix>[ \t]*(?:export[ \t]+)?" + re.escape(key) + r"=)"
        r"(?P<quote>[\"']?)(?P<value>[^\"'\s#]*)(?P=quote)(?P<rest>.*)$"
    )


def _json_pattern(key: str) -> "re.Pattern[str]":
    return re.compile(
        r"^(?P<prefix>\s*\"" + re.escape(key) + r"\"\s*:\s*)"
        r"(?P<quote>\")(?P<value>[^\"]*)(?P=quote)(?P<rest>.*)$"
    )


def _toml_pattern(key: str) -> "re.Pattern[str]":
    return re.compile(
        r"^(?P<prefix>\s*" + re.escape(key) + r"\s*=\s*)"
        r"(?P<quote>[\"'])(?P<value>[^\"']*)(?P=quote)(?P<rest>.*)$"
    )


_PATTERNS = {
    "dotenv": _dotenv_pattern,
    "json": _json_pattern,
    "toml": _toml_pattern,
}


class VersionFileService:
    """Key-value store persisting one version string into tracked files.

    Only the value portion of a marker is replaced: quoting, ``export``
    prefixes, trailing commas and comments are kept as they are. A dotenv
    file without the key gets a ``KEY=value`` line appended; JSON and TOML
    files must already carry the marker.
    """

    def __init__(self, repo_path: str, logger, console: Console, dry_run: bool = False):
        self.repo_path = repo_path
        self.logger = logger
        self.console = console
        self.dry_run = dry_run

    def _abspath(self, version_file: VersionFile) -> str:
        return os.path.join(self.repo_path, version_file.path)

    def _read_lines(self, version_file: VersionFile) -> List[str]:
        path = self._abspath(version_file)
        if not os.path.isfile(path):
            raise CommitFailed(actionable_error("version_file_missing", path=version_file.path))
        with open(path, "r", encoding="utf-8", newline="") as file_obj:
            return file_obj.read().splitlines(keepends=True)

    def read_version(self, version_file: VersionFile) -> Optional[str]:
        pattern = _PATTERNS[version_file.format](version_file.key)
        for line in self._read_lines(version_file):
            match = pattern.match(line.rstrip("\r\n"))
            if match:
                return match.group("value")
        return None

    def render(self, version_file: VersionFile, new_version: str) -> Optional[str]:
        """Returns the new file content, or ``None`` when nothing changes."""
        pattern = _PATTERNS[version_file.format](version_file.key)
        lines = self._read_lines(version_file)
        changed = False
        found = False

        for index, line in enumerate(lines):
            body = line.rstrip("\r\n")
            ending = line[len(body):]
            match = pattern.match(body)
            if not match:
                continue
            found = True
            if match.group("value") != new_version:
                lines[index] = (
                    f"{match.group('prefix')}{match.group('quote')}{new_version}"
                    f"{match.group('quote')}{match.group('rest')}{ending}"
                )
                changed = True
            if version_file.format != "dotenv":
                break

        if not found:
            if version_file.format != "dotenv":
                raise CommitFailed(
                    actionable_error(
                        "version_marker_missing",
                        key=version_file.key,
                        path=version_file.path,
                    )
                )
            self.logger.warning(
                "Configuration %s did not exist in %s. Adding it.",
                version_file.key,
                version_file.path,
            )
            if lines and not lines[-1].endswith(("\n", "\r")):
                lines[-1] = f"{lines[-1]}\n"
            lines.append(f"{version_file.key}={new_version}\n")
            changed = True

        if not changed:
            return None
        return "".join(lines)

    def update_file(self, version_file: VersionFile, new_version: str) -> bool:
        content = self.render(version_file, new_version)
        if content is None:
            self.logger.debug("%s already at %s", version_file.path, new_version)
            return False

        if self.dry_run:
            self.logger.info("[dry-run] would set %s=%s in %s", version_file.key, new_version, version_file.path)
            self.console.print(
                f"[cyan]\\[dry-run][/cyan] set {version_file.key}={new_version} in {version_file.path}"
            )
            return True

        try:
            with open(self._abspath(version_file), "w", encoding="utf-8", newline="") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise CommitFailed(f"Could not write version file '{version_file.path}': {exc}") from exc

        self.logger.info("Updated %s in %s to %s", version_file.key, version_file.path, new_version)
        return True

    def update(self, version_files: Iterable[VersionFile], new_version: str) -> List[str]:
        """Rewrites every marker and returns the paths that changed."""
        return [
            version_file.path
            for version_file in version_files
            if self.update_file(version_file, new_version)
        ]
