"""Remote git repositories reduced to their tags and branches."""

from __future__ import annotations

import logging
import urllib.parse
import urllib.request
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

import semver

from zeitgeist.buoy.ruleset import RulesetType

log = logging.getLogger(__name__)

_HEADS = "refs/heads/"
_TAGS = "refs/tags/"
_RELEASE_PREFIX = "release-"
_ADVERTISEMENT_TYPE = "application/x-git-upload-pack-advertisement"


class RefType(IntEnum):
    """The kind of a git ref chosen for a release."""

    BRANCH = 0
    DEFAULT_BRANCH = 1
    RELEASE_BRANCH = 2
    RELEASE = 3
    NO_REF = 4
    UNDEFINED = 5

    def __str__(self) -> str:
        return _REF_TYPE_NAMES.get(self, "")


_REF_TYPE_NAMES = {
    RefType.DEFAULT_BRANCH: "Default Branch",
    RefType.RELEASE_BRANCH: "Release Branch",
    RefType.RELEASE: "Release",
    RefType.NO_REF: "No Ref",
}


def _make(text: str) -> semver.Version:
    """Parse strictly, falling back to 0.0.0 for text that is not semver."""
    try:
        return semver.Version.parse(text)
    except ValueError:
        return semver.Version(0, 0, 0)


def _largest(candidates: Iterable[semver.Version], this: semver.Version) -> semver.Version | None:
    largest = None
    for version in candidates:
        if version.major == this.major and version.minor == this.minor:
            if largest is None or largest < version:
                largest = version
    return largest


@dataclass
class Repo:
    """A git remote: its module ref, default branch, tags and branches."""

    ref: str
    default_branch: str = ""
    tags: list[str] = field(default_factory=list)
    branches: list[str] = field(default_factory=list)

    def _release_tags(self) -> Iterator[semver.Version]:
        for tag in self.tags:
            text, ok = normalize_tag_version(tag)
            if not ok:
                continue
            version = _make(text)
            # Tags with pre-release or build metadata cannot be fetched as modules.
            if version.prerelease is not None or version.build is not None:
                continue
            yield version

    def _release_branches(self) -> Iterator[semver.Version]:
        for branch in self.branches:
            text, ok = normalize_branch_version(branch)
            if ok:
                yield _make(text)

    def best_ref_for(self, this: semver.Version, ruleset: RulesetType) -> tuple[str, RefType]:
        """Return ``module@ref`` and its kind for the release ``this``."""
        if ruleset in (
            RulesetType.ANY,
            RulesetType.RELEASE_OR_RELEASE_BRANCH,
            RulesetType.RELEASE,
        ):
            largest = _largest(self._release_tags(), this)
            if largest is not None:
                return f"{self.ref}@{release_version(largest)}", RefType.RELEASE

        if ruleset in (
            RulesetType.ANY,
            RulesetType.RELEASE_OR_RELEASE_BRANCH,
            RulesetType.RELEASE_BRANCH,
        ):
            largest = _largest(self._release_branches(), this)
            if largest is not None:
                return f"{self.ref}@{release_branch_version(largest)}", RefType.RELEASE_BRANCH

        if ruleset == RulesetType.ANY:
            return f"{self.ref}@{self.default_branch}", RefType.DEFAULT_BRANCH

        return self.ref, RefType.NO_REF


def _short(name: str) -> str:
    for prefix in (_HEADS, _TAGS, "refs/remotes/", "refs/"):
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def get_repo(ref: str, url: str) -> Repo:
    """List the refs of the git remote at ``url`` and return them as a Repo."""
    names, head = _list_refs(url)
    repo = Repo(ref)
    for name in names:
        if name.startswith(_TAGS):
            repo.tags.append(name[len(_TAGS):])
        elif name.startswith(_HEADS):
            repo.branches.append(name[len(_HEADS):])
    repo.default_branch = _short(head) if head else ""
    return repo


def _list_refs(url: str) -> tuple[list[str], str | None]:
    parsed = urllib.parse.urlsplit(url)
    if parsed.scheme in ("http", "https"):
        return _list_http_refs(url)
    if parsed.scheme == "file":
        return _list_local_refs(Path(urllib.request.url2pathname(parsed.path)))
    if len(parsed.scheme) > 1:
        raise ValueError(f"unsupported git transport: {parsed.scheme}")
    return _list_local_refs(Path(url))


def _list_http_refs(url: str) -> tuple[list[str], str | None]:
    endpoint = url.rstrip("/") + "/info/refs?service=git-upload-pack"
    log.debug("Listing refs of %s", endpoint)
    request = urllib.request.Request(endpoint, headers={"User-Agent": "git/2.0 (zeitgeist)"})
    with urllib.request.urlopen(request, timeout=60) as response:
        content_type = response.headers.get("Content-Type", "")
        data = response.read()
    if content_type.split(";")[0].strip() != _ADVERTISEMENT_TYPE:
        raise ValueError(f"{url} does not speak the smart git HTTP protocol")
    return _parse_advertisement(data)


def _pkt_lines(data: bytes) -> Iterator[bytes | None]:
    """Yield the payloads of pkt-lines, with None for a flush packet."""
    pos = 0
    while pos < len(data):
        try:
            size = int(data[pos:pos + 4], 16)
        except ValueError:
            raise ValueError("malformed pkt-line length") from None
        if size == 0:
            yield None
            pos += 4
            continue
        if size < 4 or pos + size > len(data):
            raise ValueError("malformed pkt-line length")
        yield data[pos + 4:pos + size]
        pos += size


def _parse_advertisement(data: bytes) -> tuple[list[str], str | None]:
    lines = list(_pkt_lines(data))
    if lines and lines[0] is not None and lines[0].startswith(b"# service="):
        lines = lines[1:]
        if lines and lines[0] is None:
            lines = lines[1:]

    names: list[str] = []
    capabilities: list[str] = []
    has_head = False
    for index, line in enumerate(lines):
        if line is None:
            break
        text = line.rstrip(b"\n")
        if index == 0 and b"\0" in text:
            text, caps = text.split(b"\0", 1)
            capabilities = caps.decode("utf-8", "replace").split()
        _, _, name = text.decode("utf-8", "replace").partition(" ")
        if name.endswith("^{}"):
            continue
        if name == "HEAD":
            has_head = True
            continue
        names.append(name)

    symrefs = dict(
        cap[len("symref="):].partition(":")[::2]
        for cap in capabilities
        if cap.startswith("symref=")
    )
    head = symrefs.get("HEAD") if has_head else None
    return names, head


def _list_local_refs(path: Path) -> tuple[list[str], str | None]:
    git_dir = path / ".git" if (path / ".git").is_dir() else path
    head_file = git_dir / "HEAD"
    refs_dir = git_dir / "refs"
    if not head_file.is_file() or not refs_dir.is_dir():
        raise ValueError(f"repository not found: {path}")

    names: set[str] = set()
    packed = git_dir / "packed-refs"
    if packed.is_file():
        for line in packed.read_text(encoding="utf-8").splitlines():
            if not line or line.startswith(("#", "^")):
                continue
            _, _, name = line.partition(" ")
            names.add(name.strip())
    names.update(
        "refs/" + entry.relative_to(refs_dir).as_posix()
        for entry in refs_dir.rglob("*")
        if entry.is_file()
    )

    head_text = head_file.read_text(encoding="utf-8").strip()
    head = head_text[len("ref:"):].strip() if head_text.startswith("ref:") else None
    return sorted(names), head


def parse_tolerant(version: str) -> semver.Version:
    """Parse a version leniently: ``v`` prefix, short forms and leading zeros."""
    text = version.strip().removeprefix("v")
    parts = text.split(".", 2)
    for index, part in enumerate(parts):
        if len(part) > 1:
            part = part.lstrip("0")
            if not part or not part[0].isdigit():
                part = "0" + part
            parts[index] = part
    if len(parts) < 3:
        if any(char in parts[-1] for char in "+-"):
            raise ValueError("Short version cannot contain PreRelease/Build meta data")
        parts.extend(["0"] * (3 - len(parts)))
    return semver.Version.parse(".".join(parts))


def normalize_tag_version(v: str) -> tuple[str, bool]:
    """Strip the ``v`` of a release tag; report whether it had one."""
    if v.startswith("v"):
        return v[1:], True
    return v, False


def normalize_branch_version(v: str) -> tuple[str, bool]:
    """Turn ``release-X.Y`` into ``X.Y.0``; report whether it was a release branch."""
    if v.startswith(_RELEASE_PREFIX):
        return v[len(_RELEASE_PREFIX):] + ".0", True
    return v, False


def release_version(v: semver.Version) -> str:
    """Return the release tag for a version."""
    return f"v{v.major}.{v.minor}.{v.patch}"


def release_branch_version(v: semver.Version) -> str:
    """Return the release branch for a version."""
    return f"release-{v.major}.{v.minor}"


def parse_ref(ref: str) -> tuple[str, str, RefType]:
    """Split ``module@ref`` into module, ref and the kind of ref."""
    parts = ref.split("@")
    if len(parts) != 2:
        return ref, "", RefType.UNDEFINED
    module, reference = parts
    if normalize_tag_version(reference)[1]:
        return module, reference, RefType.RELEASE
    if normalize_branch_version(reference)[1]:
        return module, reference, RefType.RELEASE_BRANCH
    return module, reference, RefType.BRANCH


@dataclass
class Info:
    """What is needed to open a pull request and commit on a hosting service."""

    org: str = ""
    repo: str = ""
    head: str = ""
    base: str = ""
    user_id: str = ""
    user_name: str = ""
    email: str = ""

    def head_ref(self) -> str:
        """Return the head ref in the form ``user:head``."""
        return f"{self.user_id}:{self.head}"