"""Dependency declarations and the local client that keeps files in sync."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Any, Callable, NoReturn, Optional, Union

import yaml

from zeitgeist.version import (
    Version,
    VersionScheme,
    VersionSensitivity,
    VersionUpdate,
    VersionUpdateInfo,
)

log = logging.getLogger(__name__)

PathType = Union[str, "PathLike[str]"]


class UnsupportedError(Exception):
    """Raised when a client does not support an operation."""


class DependencyError(ValueError):
    """Raised for an invalid dependency declaration or configuration."""


class OutOfSyncError(Exception):
    """Raised when local files do not carry a dependency's declared version."""

    def __init__(self, config: str, name: str, version: str, paths: list[str]):
        self.config = config
        self.name = name
        self.version = version
        self.paths = paths
        super().__init__(
            f"dependencies are not in sync: {config} indicates that {name} should be "
            f"at version {version}, but the following files didn't match: "
            f"{', '.join(paths)}"
        )


class _StringLoader(yaml.SafeLoader):
    """Safe loader that keeps every scalar except null as text."""


_NULL_TAG = "tag:yaml.org,2002:null"
_StringLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag == _NULL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _text(value: Any, what: str) -> str:
    if value is None:
        return ""
    if isinstance(value, (Mapping, list)):
        raise DependencyError(f"expected a scalar for `{what}`, got {value!r}")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _require_mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise DependencyError(f"{what} must be a mapping, got {data!r}")
    return data


@dataclass
class RefPath:
    """A file that must reference the dependency's version on a matching line."""

    path: str
    match: str

    @classmethod
    def from_dict(cls, data: Any) -> RefPath:
        data = _require_mapping(data, "refPath")
        return cls(path=_text(data.get("path"), "path"), match=_text(data.get("match"), "match"))

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "match": self.match}


@dataclass
class Dependency:
    """A dependency, its declared version and where that version appears."""

    name: str
    version: str
    scheme: VersionScheme | str = VersionScheme.SEMVER
    sensitivity: VersionSensitivity | str | None = None
    upstream: dict[str, str] = field(default_factory=dict)
    ref_paths: list[RefPath] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Dependency:
        """Build a validated dependency from its configuration mapping."""
        data = _require_mapping(data, "dependency")

        name = _text(data.get("name"), "name")
        if not name:
            raise DependencyError(f"Dependency has no `name`: {dict(data)!r}")
        version = _text(data.get("version"), "version")
        if not version:
            raise DependencyError(f"Dependency has no `version`: {dict(data)!r}")

        scheme_text = _text(data.get("scheme"), "scheme") or VersionScheme.SEMVER.value
        try:
            scheme = VersionScheme(scheme_text)
        except ValueError:
            raise DependencyError(f"unknown version scheme: {scheme_text}") from None

        sensitivity_text = _text(data.get("sensitivity"), "sensitivity")
        sensitivity: VersionSensitivity | str | None = None
        if sensitivity_text:
            try:
                sensitivity = VersionSensitivity(sensitivity_text)
            except ValueError:
                sensitivity = sensitivity_text

        upstream_data = data.get("upstream") or {}
        upstream = {
            str(key): _text(value, f"upstream.{key}")
            for key, value in _require_mapping(upstream_data, "upstream").items()
        }

        ref_data = data.get("refPaths") or []
        if not isinstance(ref_data, list):
            raise DependencyError(f"`refPaths` must be a list, got {ref_data!r}")

        dependency = cls(
            name=name,
            version=version,
            scheme=scheme,
            sensitivity=sensitivity,
            upstream=upstream,
            ref_paths=[RefPath.from_dict(item) for item in ref_data],
        )
        log.debug("Deserialised Dependency %s: %r", name, dependency)
        return dependency

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "scheme": str(self.scheme),
        }
        if self.sensitivity:
            result["sensitivity"] = str(self.sensitivity)
        if self.upstream:
            result["upstream"] = dict(self.upstream)
        result["refPaths"] = [ref.to_dict() for ref in self.ref_paths]
        return result


@dataclass
class Dependencies:
    """The contents of a dependencies configuration file."""

    dependencies: list[Dependency] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Dependencies:
        if data is None:
            return cls()
        data = _require_mapping(data, "dependencies file")
        items = data.get("dependencies") or []
        if not isinstance(items, list):
            raise DependencyError(f"`dependencies` must be a list, got {items!r}")
        return cls([Dependency.from_dict(item) for item in items])

    def to_dict(self) -> dict[str, Any]:
        return {"dependencies": [dep.to_dict() for dep in self.dependencies]}


def from_file(dependency_file_path: PathType) -> Dependencies:
    """Read and validate a dependencies configuration file."""
    with open(dependency_file_path, encoding="utf-8") as handle:
        content = handle.read()
    try:
        data = yaml.load(content, Loader=_StringLoader)
    except yaml.YAMLError as exc:
        raise DependencyError(f"parsing {dependency_file_path}: {exc}") from exc
    return Dependencies.from_dict(data)


def to_file(dependency_file_path: PathType, dependencies: Dependencies) -> None:
    """Write a dependencies configuration file."""
    text = yaml.safe_dump(
        dependencies.to_dict(),
        indent=2,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    with open(dependency_file_path, "w", encoding="utf-8") as handle:
        handle.write(text)


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise DependencyError(f"compiling regex: {exc}") from exc


def _references_version(path: Path, pattern: str, version: str) -> bool:
    log.debug("Examining file: %s", path)
    with open(path, encoding="utf-8", errors="surrogateescape") as handle:
        matcher = _compile(pattern)
        for number, line in enumerate(handle, start=1):
            line = line.rstrip("\n")
            if matcher.search(line) and version in line:
                log.debug(
                    "Line %d matches expected regexp %r and version %r: %s",
                    number,
                    pattern,
                    version,
                    line,
                )
                return True
    log.debug("Finished reading file %s, no match found.", path)
    return False


def _replace_in_file(base_path: Path, ref_path: RefPath, update: VersionUpdateInfo) -> None:
    path = base_path / ref_path.path
    matcher = _compile(ref_path.match)
    current, latest = update.current.version, update.latest.version

    with open(path, encoding="utf-8", errors="surrogateescape", newline="") as handle:
        lines = handle.read().split("\n")

    upgraded = [
        line.replace(current, latest) if matcher.search(line) and current in line else line
        for line in lines
    ]

    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as handle:
        handle.write("\n".join(upgraded))


def _upgrade_dependency(base_path: Path, dependency: Dependency, update: VersionUpdateInfo) -> None:
    log.debug("Upgrading %s: %r", dependency.name, update)
    for ref_path in dependency.ref_paths:
        _replace_in_file(base_path, ref_path, update)


class Client(ABC):
    """Operations available on a set of declared dependencies."""

    @abstractmethod
    def local_check(self, dependency_file_path: PathType, base_path: PathType) -> None:
        """Check that every referenced file carries the declared version."""

    @abstractmethod
    def remote_check(self, dependency_file_path: PathType) -> list[str]:
        """Check declared versions against upstream and describe updates."""

    @abstractmethod
    def upgrade(self, dependency_file_path: PathType, base_path: PathType) -> list[str]:
        """Move every dependency to its latest upstream version."""

    @abstractmethod
    def set_version(
        self,
        dependency_file_path: PathType,
        base_path: PathType,
        dependency: str,
        version: str,
    ) -> None:
        """Set one dependency to the given version everywhere."""

    @abstractmethod
    def remote_export(self, dependency_file_path: PathType) -> list[VersionUpdate]:
        """List the latest upstream version of every dependency."""

    @abstractmethod
    def check_upstream_versions(self, deps: list[Dependency]) -> list[VersionUpdateInfo]:
        """Compare the given dependencies with their upstream versions."""


class LocalClient(Client):
    """A client that works on local files only."""

    kind = "local"

    def _refuse(self, operation: str, verb: str = "is") -> NoReturn:
        message = f"{operation} {verb} not supported by the {self.kind} client"
        log.debug("refusing operation: %s", message)
        raise UnsupportedError(message)

    def local_check(self, dependency_file_path: PathType, base_path: PathType) -> None:
        log.debug("Base path: %s", base_path)
        base = Path(base_path)
        dependencies = from_file(dependency_file_path)

        for dep in dependencies.dependencies:
            log.debug("Examining dependency: %s", dep.name)
            non_matching = [
                ref.path
                for ref in dep.ref_paths
                if not _references_version(base / ref.path, ref.match, dep.version)
            ]
            if non_matching:
                error = OutOfSyncError(str(dependency_file_path), dep.name, dep.version, non_matching)
                log.error("%s", error)
                raise error

    def set_version(
        self,
        dependency_file_path: PathType,
        base_path: PathType,
        dependency: str,
        version: str,
    ) -> None:
        base = Path(base_path)
        dependencies = from_file(dependency_file_path)

        found = False
        for dep in dependencies.dependencies:
            if dep.name != dependency:
                continue
            found = True
            update = VersionUpdateInfo(
                name=dep.name,
                current=Version(dep.version, dep.scheme),
                latest=Version(version, dep.scheme),
                update_available=True,
            )
            _upgrade_dependency(base, dep, update)
            dep.version = version

        if not found:
            raise DependencyError(f"dependency {dependency} not found")

        to_file(dependency_file_path, dependencies)

    def remote_check(self, dependency_file_path: PathType) -> list[str]:
        self._refuse("remote checks", "are")

    def upgrade(self, dependency_file_path: PathType, base_path: PathType) -> list[str]:
        self._refuse("upgrade")

    def remote_export(self, dependency_file_path: PathType) -> list[VersionUpdate]:
        self._refuse("remote export")

    def check_upstream_versions(self, deps: list[Dependency]) -> list[VersionUpdateInfo]:
        self._refuse("CheckUpstreamVersions")


_remote_client_factory: Optional[Callable[[], Client]] = None


def new_local_client() -> Client:
    """Return a client for local checks."""
    return LocalClient()


def new_remote_client() -> Client:
    """Return a client for upstream checks, where one is available."""
    factory = _remote_client_factory
    if factory is None:
        raise UnsupportedError(
            "remote upstream functionality is not supported by this command"
        )
    return factory()