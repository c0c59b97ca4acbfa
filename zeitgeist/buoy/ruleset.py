"""Rulesets that decide which kinds of refs count for a release."""

from __future__ import annotations

from enum import IntEnum


class RulesetType(IntEnum):
    """The rules used to choose the best ref of a repository for a release."""

    ANY = 0
    """A release tag, a release branch or the default branch."""
    RELEASE_OR_RELEASE_BRANCH = 1
    """Only a release tag or a release branch."""
    RELEASE = 2
    """Only a release tag."""
    RELEASE_BRANCH = 3
    """Only a release branch."""
    INVALID = 4
    """A rule that could not be parsed."""

    def __str__(self) -> str:
        return _NAMES[self]


_NAMES = {
    RulesetType.ANY: "Any",
    RulesetType.RELEASE_OR_RELEASE_BRANCH: "ReleaseOrBranch",
    RulesetType.RELEASE: "Release",
    RulesetType.RELEASE_BRANCH: "Branch",
    RulesetType.INVALID: "Invalid",
}

_LOOKUP = {name.lower(): rule for rule, name in _NAMES.items()}


def ruleset(rule: str) -> RulesetType:
    """Convert a rule name, in any letter case, into a ruleset."""
    return _LOOKUP.get(rule.lower(), RulesetType.INVALID)


def rulesets() -> list[str]:
    """Return the names of the valid rulesets."""
    return [str(rule) for rule in RulesetType if rule is not RulesetType.INVALID]