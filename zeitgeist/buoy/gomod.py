"""Reading go.mod files and checking their dependencies against a release."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import TextIO, Union

from zeitgeist.buoy.git import (
    RefType,
    parse_ref,
    parse_tolerant,
    release_branch_version,
    release_version,
)
from zeitgeist.buoy.goimport import module_to_repo
from zeitgeist.buoy.ruleset import RulesetType

log = logging.getLogger(__name__)

PathType = Union[str, "PathLike[str]"]

_VERBS = frozenset(
    {
        "module",
        "go",
        "toolchain",
        "godebug",
        "require",
        "exclude",
        "replace",
        "retract",
        "tool",
        "ignore",
    }
)
_LEXEME = re.compile(r'"(?:[^"\\]|\\.)*"|`[^`]*`|\S+')


@dataclass
class GoModFile:
    """The parts of a go.mod file that matter for dependency checks."""

    module: str | None = None
    go: str | None = None
    requires: dict[str, str] = field(default_factory=dict)
    indirect: set[str] = field(default_factory=set)

    def direct_requires(self) -> list[str]:
        """Return the required module paths that are not marked indirect."""
        return [path for path in self.requires if path not in self.indirect]


def _split_comment(line: str) -> tuple[str, str]:
    index = line.find("//")
    if index < 0:
        return line, ""
    return line[:index], line[index + 2:]


def _unquote(word: str, number: int) -> str:
    if word.startswith("`") and word.endswith("`") and len(word) >= 2:
        return word[1:-1]
    if word.startswith('"'):
        try:
            return json.loads(word)
        except ValueError:
            raise ValueError(f"line {number}: invalid quoted string {word}") from None
    return word


def _words(line: str, number: int) -> list[str]:
    return [_unquote(word, number) for word in _LEXEME.findall(line)]


def _is_indirect(comment: str) -> bool:
    text = comment.strip()
    return text == "indirect" or text.startswith("indirect;")


def _apply(result: GoModFile, verb: str, args: list[str], comment: str, number: int) -> None:
    if verb == "module":
        if len(args) != 1:
            raise ValueError(f"line {number}: usage: module module/path")
        if result.module is not None:
            raise ValueError(f"line {number}: repeated module statement")
        result.module = args[0]
    elif verb == "go":
        if len(args) != 1:
            raise ValueError(f"line {number}: usage: go 1.23")
        result.go = args[0]
    elif verb == "require":
        if len(args) != 2:
            raise ValueError(f"line {number}: usage: require module/path v1.2.3")
        path, version = args
        if not version.startswith("v"):
            raise ValueError(f"line {number}: invalid version {version!r} for {path}")
        result.requires[path] = version
        if _is_indirect(comment):
            result.indirect.add(path)
        else:
            result.indirect.discard(path)
    elif not args:
        raise ValueError(f"line {number}: {verb} needs arguments")


def parse_gomod(data: str | bytes) -> GoModFile:
    """Parse the text of a go.mod file."""
    text = data.decode("utf-8") if isinstance(data, bytes) else data
    result = GoModFile()
    block: str | None = None
    block_line = 0

    for number, raw in enumerate(text.splitlines(), start=1):
        line, comment = _split_comment(raw)
        words = _words(line, number)
        if block is not None:
            if words == [")"]:
                block = None
            elif words:
                _apply(result, block, words, comment, number)
            continue
        if not words:
            continue
        verb, args = words[0], words[1:]
        if verb not in _VERBS:
            raise ValueError(f"line {number}: unknown directive: {verb}")
        if args == ["("]:
            block, block_line = verb, number
            continue
        _apply(result, verb, args, comment, number)

    if block is not None:
        raise ValueError(f"line {block_line}: unterminated {block} block")
    return result


def module(gomod: PathType, domain: str) -> tuple[str, list[str]]:
    """Return a module's name and its sorted direct dependencies under ``domain``."""
    domain = domain.strip()
    if not domain:
        raise ValueError("no domain provided")

    data = Path(gomod).read_bytes()
    try:
        parsed = parse_gomod(data)
    except ValueError as exc:
        raise ValueError(f"{gomod}: {exc}") from exc
    if parsed.module is None:
        raise ValueError(f"{gomod}: no module directive")

    packages = sorted({path for path in parsed.direct_requires() if path.startswith(domain)})
    return parsed.module, packages


def modules(gomod: list[PathType], domain: str) -> tuple[dict[str, list[str]], list[str]]:
    """Map each module to its direct dependencies and list the unique dependencies."""
    if not gomod:
        raise ValueError("no go module files provided")

    packages: dict[str, list[str]] = {}
    unique: set[str] = set()
    for path in gomod:
        name, pkgs = module(path, domain)
        packages[name] = pkgs
        unique.update(pkgs)
    return packages, sorted(unique)


class DependencyError(Exception):
    """Raised when some dependencies of a module have no suitable ref."""

    def __init__(self, module: str = "", dependencies: list[str] | None = None) -> None:
        self.module = module
        self.dependencies = list(dependencies or [])
        super().__init__(str(self))

    def __str__(self) -> str:
        return (
            f"{self.module} failed because of the following dependencies "
            f"[{', '.join(self.dependencies)}]"
        )


def _check_module(
    name: str,
    packages: list[str],
    release: str,
    ruleset: RulesetType,
    out: TextIO | None,
) -> None:
    this = parse_tolerant(release)
    if out is not None:
        print(name, file=out)

    non_ready: list[str] = []
    for pkg in packages:
        repo = module_to_repo(pkg)
        ref, ref_type = repo.best_ref_for(this, ruleset)
        if ref_type == RefType.NO_REF:
            non_ready.append(ref)
            if out is not None:
                print("✘ ", ref, file=out)
        elif out is not None:
            print("✔ ", ref, file=out)

    if non_ready:
        raise DependencyError(name, non_ready)


def check(
    gomod: PathType,
    release: str,
    domain: str,
    ruleset: RulesetType,
    out: TextIO | None = None,
) -> None:
    """Check that every dependency under ``domain`` has a ref for ``release``.

    Raises DependencyError naming the dependencies that do not.
    """
    module_packages, _ = modules([gomod], domain)
    for name, packages in module_packages.items():
        _check_module(name, packages, release, ruleset, out)


def float_refs(gomod: PathType, release: str, domain: str, ruleset: RulesetType) -> list[str]:
    """Return the best ``module@ref`` of each dependency for ``release``.

    Dependencies with no ref under the ruleset are left out.
    """
    _, packages = modules([gomod], domain)
    this = parse_tolerant(release)

    refs: list[str] = []
    for pkg in packages:
        ref, ref_type = module_to_repo(pkg).best_ref_for(this, ruleset)
        if ref_type != RefType.NO_REF:
            refs.append(ref)
    return refs


@dataclass
class ReleaseMeta:
    """The release status of a module."""

    module: str
    release_branch_exists: bool = False
    release_branch: str = ""
    release: str = ""


def release_status(gomod: PathType, release: str, out: TextIO | None = None) -> ReleaseMeta:
    """Report whether a module's release branch exists and its next release tag."""
    this = parse_tolerant(release)
    name, _ = module(gomod, "domain filter ignored")
    if out is not None:
        print(name, file=out)

    meta = ReleaseMeta(module=name)
    repo = module_to_repo(name)

    ref, ref_type = repo.best_ref_for(this, RulesetType.RELEASE_BRANCH)
    if ref_type == RefType.RELEASE_BRANCH:
        _, branch, _ = parse_ref(ref)
        meta.release_branch = branch
        meta.release_branch_exists = True
        if out is not None:
            print("✔ ", branch, file=out)
    else:
        meta.release_branch = release_branch_version(this)
        meta.release_branch_exists = False
        if out is not None:
            print("✘ ", meta.release_branch, file=out)

    ref, ref_type = repo.best_ref_for(this, RulesetType.RELEASE)
    if ref_type == RefType.RELEASE:
        _, tag, _ = parse_ref(ref)
        latest = parse_tolerant(tag)
        meta.release = release_version(latest.replace(patch=latest.patch + 1))
    else:
        meta.release = release_version(this)

    if out is not None:
        print("➜ ", meta.release, file=out)
    return meta