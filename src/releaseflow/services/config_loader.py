"""Configuration loader for releaseflow."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from releaseflow.constants import VERSION_FORMATS
from releaseflow.errors import ConfigError
from releaseflow.models import ReleaseConfig, VersionFile


class ConfigLoader:
    """Loads YAML configuration files for repository settings and CLI defaults."""

    SUPPORTED_KEYS = {
        "stable_branch",
        "develop_branch",
        "remote",
        "version_files",
        "merge_message",
        "commit_message",
        "tag_message",
        "semver_pattern",
        "verbose",
        "log_file",
        "report_file",
    }

    RELEASE_KEYS = (
        "stable_branch",
        "develop_branch",
        "remote",
        "merge_message",
        "commit_message",
        "tag_message",
        "semver_pattern",
    )

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown configuration keys: {unknown_list}")

        return parsed

    def build_release_config(self, values: Dict[str, Any]) -> ReleaseConfig:
        kwargs: Dict[str, Any] = {}
        for key in self.RELEASE_KEYS:
            if values.get(key) is None:
                continue
            if not isinstance(values[key], str) or not values[key].strip():
                raise ConfigError(f"Configuration key '{key}' must be a non-empty string.")
            kwargs[key] = values[key].strip()

        if "version_files" in values:
            kwargs["version_files"] = self._parse_version_files(values["version_files"])

        config = ReleaseConfig(**kwargs)
        if config.stable_branch == config.develop_branch:
            raise ConfigError("stable_branch and develop_branch must be different branches.")
        return config

    def _parse_version_files(self, entries: Any):
        if not isinstance(entries, list):
            raise ConfigError("'version_files' must be a list of {path, key, format} mappings.")

        version_files = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("path") or not entry.get("key"):
                raise ConfigError(f"Invalid version_files entry: {entry!r}. 'path' and 'key' are required.")

            key = str(entry["key"])
            if " " in key:
                raise ConfigError(f"Version key cannot contain spaces: '{key}'")

            file_format = str(entry.get("format", "dotenv"))
            if file_format not in VERSION_FORMATS:
                raise ConfigError(
                    f"Unsupported version file format '{file_format}'. "
                    f"Use one of: {', '.join(VERSION_FORMATS)}."
                )
            version_files.append(VersionFile(path=str(entry["path"]), key=key, format=file_format))

        return tuple(version_files)
