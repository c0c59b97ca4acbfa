"""Version values and the rules for deciding whether one is more recent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import semver

log = logging.getLogger(__name__)


class VersionError(ValueError):
    """Raised when two versions cannot be compared."""


class VersionScheme(str, Enum):
    """How two versions of a dependency are compared."""

    SEMVER = "semver"
    """Semantic versioning (the default)."""
    ALPHA = "alpha"
    """Plain string ordering."""
    RANDOM = "random"
    """No ordering at all (e.g. hashes): any different version is newer."""

    def __str__(self) -> str:
        return self.value


class VersionSensitivity(str, Enum):
    """Which semver component must grow for a version to count as newer."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Version:
    """A version string together with the scheme used to compare it."""

    version: str
    scheme: VersionScheme | str = VersionScheme.SEMVER

    def more_recent_than(self, other: Version) -> bool:
        """Return whether this version is newer than ``other`` at patch level."""
        return self.more_sensitively_recent_than(other, VersionSensitivity.PATCH)

    def more_sensitively_recent_than(
        self,
        other: Version,
        sensitivity: VersionSensitivity | str | None = VersionSensitivity.PATCH,
    ) -> bool:
        """Return whether this version is newer than ``other``.

        With the random scheme any different version counts as newer.
        """
        if self.scheme != other.scheme:
            raise VersionError(
                f"trying to compare incompatible 'Version' schemes: "
                f"{self.scheme} and {other.scheme}"
            )

        if self.scheme == VersionScheme.SEMVER:
            mine = _parse_semver(self.version)
            theirs = _parse_semver(other.version)
            return _semver_compare(mine, theirs, sensitivity or VersionSensitivity.PATCH)
        if self.scheme == VersionScheme.ALPHA:
            return self.version > other.version
        if self.scheme == VersionScheme.RANDOM:
            return self.version != other.version
        raise VersionError(f"unknown version scheme: {self.scheme}")


@dataclass
class VersionUpdateInfo:
    """The result of comparing a dependency's current and latest versions."""

    name: str
    current: Version
    latest: Version
    update_available: bool = False


@dataclass
class VersionUpdate:
    """One entry of an exported list of available versions."""

    name: str
    version: str
    new_version: str

    def to_dict(self) -> dict[str, str]:
        """Return the serialisable form used for JSON and YAML output."""
        return {
            "name": self.name,
            "version": self.version,
            "new_version": self.new_version,
        }


def _parse_semver(text: str) -> semver.Version:
    try:
        return semver.Version.parse(text.removeprefix("v"))
    except (ValueError, TypeError) as exc:
        log.debug("Failed to semver-parse %s", text)
        raise VersionError(f"invalid semantic version {text!r}: {exc}") from exc


def _semver_compare(
    a: semver.Version, b: semver.Version, sensitivity: VersionSensitivity | str
) -> bool:
    try:
        level = VersionSensitivity(sensitivity)
    except ValueError:
        raise VersionError(f"unknown version sensitivity: {sensitivity}") from None

    if level is VersionSensitivity.MAJOR:
        return a.major > b.major
    if level is VersionSensitivity.MINOR:
        return a.major > b.major or (a.major == b.major and a.minor > b.minor)
    return a > b


def format_version(template: str, version: str) -> str:
    """Give ``version`` the same ``v`` prefix style as ``template``."""
    if template.startswith("v"):
        return version if version.startswith("v") else "v" + version
    return version.removeprefix("v")