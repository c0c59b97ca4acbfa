"""Command line interface for introspecting Go module dependencies."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from zeitgeist.buoy import gomod
from zeitgeist.buoy.ruleset import RulesetType, ruleset, rulesets

_RELEASE_HELP = "release should be '<major>.<minor>' (i.e.: 1.23 or v1.23) [required]"

_CHECK_DESCRIPTION = """\
The check command is used to evaluate if each dependency for the given module
meets the requirements for cutting a release branch. If the requirements are
met based on the ruleset selected, the command will exit with code 0, otherwise
an error message is generated and the with the failed dependencies and exit
code 1. Errors are written to stderr. Verbose output is written to stdout.

Rulesets,
  Release          check requires all dependencies to have tagged releases.
  Branch           check requires all dependencies to have a release branch.
  ReleaseOrBranch  check will use rule (Release || Branch).
"""

_FLOAT_DESCRIPTION = """\
The goal of the float command is to find the best reference for a given release.
Float will select a ref for found dependencies, in this order (for the Any
ruleset, default):

1. A release tag with matching major and minor; choosing the one with the
   highest patch version, ex: "v0.1.2"
2. If no tags, choose the release branch, ex: "release-0.1"
3. Finally, the default branch, ex: "master"

The selection process for float can be modified by providing a ruleset.

Rulesets,
  Any              tagged releases, release branches, default branch
  Release          tagged releases
  Branch           release branches
  ReleaseOrBranch  tagged releases, release branch

For rulesets that that restrict the selection process, no ref is selected.
"""


class CommandError(Exception):
    """Raised when a command's arguments are invalid."""


def _ruleset_help() -> str:
    return f"The ruleset to evaluate the dependency refs. Rulesets: [{', '.join(rulesets())}]"


def _parse_ruleset(text: str) -> RulesetType:
    rule = ruleset(text)
    if rule is RulesetType.INVALID:
        raise CommandError(
            f"invalid ruleset, please select one of: [{', '.join(rulesets())}]"
        )
    return rule


def _run_float(args: argparse.Namespace) -> int:
    rule = _parse_ruleset(args.ruleset)
    for ref in gomod.float_refs(args.gomod, args.release, args.domain, rule):
        if ref:
            print(ref)
    return 0


def _run_needs(args: argparse.Namespace) -> int:
    _, packages = gomod.modules(args.gomod, args.domain)
    for package in packages:
        if package:
            print(package)
    return 0


def _run_check(args: argparse.Namespace) -> int:
    rule = _parse_ruleset(args.ruleset)
    out = sys.stderr if args.verbose else None
    try:
        gomod.check(args.gomod, args.release, args.domain, rule, out)
    except gomod.DependencyError as error:
        print(error)
        return 1
    return 0


def _run_exists(args: argparse.Namespace) -> int:
    out = sys.stderr if args.verbose else None
    meta = gomod.release_status(args.gomod, args.release, out)
    if args.next:
        print(meta.release)
    return 0 if meta.release_branch_exists else 1


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all buoy commands."""
    parser = argparse.ArgumentParser(
        prog="buoy", description="Introspect go module dependencies."
    )
    commands = parser.add_subparsers(dest="command", metavar="<command>")

    float_cmd = commands.add_parser(
        "float",
        help="Find latest versions of dependencies based on a release.",
        description=_FLOAT_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    float_cmd.add_argument("gomod", metavar="go.mod")
    float_cmd.add_argument(
        "-d", "--domain", default="knative.dev", help="domain filter (i.e. knative.dev) [required]"
    )
    float_cmd.add_argument("-r", "--release", required=True, help=_RELEASE_HELP)
    float_cmd.add_argument("--ruleset", default=str(RulesetType.ANY), help=_ruleset_help())
    float_cmd.set_defaults(handler=_run_float)

    needs_cmd = commands.add_parser(
        "needs", help="Find dependencies based on a base import domain."
    )
    needs_cmd.add_argument("gomod", metavar="go.mod", nargs="+")
    needs_cmd.add_argument(
        "-d", "--domain", required=True, help="domain filter (i.e. knative.dev) [required]"
    )
    needs_cmd.set_defaults(handler=_run_needs)

    check_cmd = commands.add_parser(
        "check",
        help=(
            "Determine if this module has a ref for each dependency for a given "
            "release based on a ruleset."
        ),
        description=_CHECK_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    check_cmd.add_argument("gomod", metavar="go.mod")
    check_cmd.add_argument(
        "-d", "--domain", required=True, help="domain filter (i.e. knative.dev) [required]"
    )
    check_cmd.add_argument("-r", "--release", required=True, help=_RELEASE_HELP)
    check_cmd.add_argument(
        "--ruleset", default=str(RulesetType.RELEASE_OR_RELEASE_BRANCH), help=_ruleset_help()
    )
    check_cmd.add_argument("-v", "--verbose", action="store_true", help="Print verbose output.")
    check_cmd.set_defaults(handler=_run_check)

    exists_cmd = commands.add_parser(
        "exists", help="Determine if the release branch exists for a given module."
    )
    exists_cmd.add_argument("gomod", metavar="go.mod")
    exists_cmd.add_argument("-r", "--release", required=True, help=_RELEASE_HELP)
    exists_cmd.add_argument(
        "-v", "--verbose", action="store_true", help="Print verbose output (stderr)"
    )
    exists_cmd.add_argument(
        "-t", "--next", action="store_true", help="Print the next release tag (stdout)"
    )
    exists_cmd.set_defaults(handler=_run_exists)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run buoy and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    try:
        return handler(args)
    except Exception as error:  # noqa: BLE001 - top-level report of any failure
        print(f"Error during command execution: {error}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())