"""Semantic version validation for release targets."""

import re
from typing import Iterable, Optional

from packaging import version

from releaseflow.constants import SEMVER_PATTERN
from releaseflow.errors import InvalidVersion
from releaseflow.errors_catalog import actionable_error


class VersionValidator:
    """Checks release versions against the semver.org grammar."""

    def __init__(self, pattern: Optional[str] = None):
        self.pattern = re.compile(pattern or SEMVER_PATTERN)

    def is_valid(self, candidate: str) -> bool:
        return bool(candidate) and self.pattern.fullmatch(candidate) is not None

    def validate(self, candidate: str) -> str:
        if not self.is_valid(candidate):
            raise InvalidVersion(actionable_error("invalid_version", version=candidate))
        return candidate

    def latest_release(self, tags: Iterable[str]) -> Optional[str]:
        """Returns the highest tag that is itself a valid release version."""
        latest = None
        latest_parsed = None
        for tag in tags:
            if not self.is_valid(tag):
                continue
            parsed = self._parse(tag)
            if parsed is None:
                continue
            if latest_parsed is None or parsed > latest_parsed:
                latest, latest_parsed = tag, parsed
        return latest

    def is_newer(self, candidate: str, reference: str) -> bool:
        candidate_parsed = self._parse(candidate)
        reference_parsed = self._parse(reference)
        if candidate_parsed is None or reference_parsed is None:
            return True
        return candidate_parsed > reference_parsed

    @staticmethod
    def _parse(value: str) -> Optional[version.Version]:
        try:
            return version.parse(value)
        except version.InvalidVersion:
            return None
