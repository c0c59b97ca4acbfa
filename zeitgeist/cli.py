"""Command line interface for checking and updating declared dependencies."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from importlib import metadata
from pathlib import Path

import yaml

from zeitgeist.dependency import Client, PathType, new_local_client, new_remote_client
from zeitgeist.version import VersionUpdate

log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "dependencies.yaml"
DEFAULT_OUTPUT_FILE_NAME = "dependencies_output"

_LOG_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}
_LEVEL_NAMES = ["panic", "fatal", "error", "warning", "info", "debug", "trace"]


class CommandError(Exception):
    """Raised when a command cannot be carried out."""


class OutputFormat(str, Enum):
    """Formats in which exported updates can be written."""

    YAML = "yaml"
    JSON = "json"
    LOG = "log"

    def __str__(self) -> str:
        return self.value


@dataclass
class Options:
    """Options shared by every subcommand."""

    local_only: bool = False
    base_path: str = ""
    config_file: str = DEFAULT_CONFIG_FILE
    log_level: str = "info"

    def validate(self) -> None:
        """Check the base path, defaulting it to the program's directory."""
        log.debug("Validating zeitgeist options...")
        if self.base_path:
            if not Path(self.base_path).exists():
                raise FileNotFoundError(f"base path does not exist: {self.base_path}")
        else:
            self.base_path = os.path.abspath(os.path.dirname(sys.argv[0]))


def _setup_logging(level_name: str) -> None:
    try:
        level = _LOG_LEVELS[level_name.lower()]
    except KeyError:
        raise CommandError(
            f"invalid log level {level_name!r}, either {_LEVEL_NAMES}"
        ) from None
    logging.basicConfig(format="%(levelname)s %(message)s")
    logging.getLogger().setLevel(level)


def run_validate(options: Options) -> None:
    """Check dependencies locally and, unless local only, against upstream."""
    try:
        client: Client = new_local_client() if options.local_only else new_remote_client()
    except Exception as exc:
        raise CommandError(f"constructing client: {exc}") from exc

    try:
        client.local_check(options.config_file, options.base_path)
    except Exception as exc:
        raise CommandError(f"checking local dependencies: {exc}") from exc

    if not options.local_only:
        try:
            updates = client.remote_check(options.config_file)
        except Exception as exc:
            raise CommandError(f"checking remote dependencies: {exc}") from exc
        for update in updates:
            print(update)


def _parse_output_format(output_format: OutputFormat | str) -> OutputFormat:
    try:
        return OutputFormat(output_format)
    except ValueError:
        raise CommandError("unsuported output format") from None


def run_export(
    options: Options, output_format: OutputFormat | str, output_file: str | None
) -> None:
    """Export the latest upstream version of every dependency."""
    if options.local_only:
        log.warning("ignoring flag '--local-only'")
    fmt = _parse_output_format(output_format)
    if output_file and fmt is OutputFormat.LOG:
        log.warning("ignoring --output-file as --output-format is 'log'")

    client = new_remote_client()
    updates = client.remote_export(options.config_file)

    if fmt is OutputFormat.LOG:
        output_log(updates)
    else:
        write_output(updates, fmt, output_file)


def run_upgrade(options: Options) -> None:
    """Upgrade local dependencies to their latest upstream versions."""
    client = new_remote_client()

    try:
        client.local_check(options.config_file, options.base_path)
    except Exception as exc:
        raise CommandError(f"checking local dependencies: {exc}") from exc

    try:
        updates = client.upgrade(options.config_file, options.base_path)
    except Exception as exc:
        raise CommandError(f"upgrade dependencies: {exc}") from exc

    for update in updates:
        print(update)


def run_set_version(options: Options, args: Sequence[str]) -> None:
    """Set one dependency to the given version in every file that references it."""
    if len(args) != 2:
        raise CommandError("expected exactly two arguments: <dependency> <version>")

    client = new_local_client()
    try:
        client.local_check(options.config_file, options.base_path)
    except Exception as exc:
        raise CommandError(f"checking local dependencies: {exc}") from exc

    name, version = args
    try:
        client.set_version(options.config_file, options.base_path, name, version)
    except Exception as exc:
        raise CommandError(f"set dependency version: {exc}") from exc


def output_log(updates: Sequence[VersionUpdate]) -> None:
    """Print the dependencies that have an update available."""
    for update in updates:
        if update.version == update.new_version:
            log.debug(
                "No update available for dependency %s: %s (latest: %s)",
                update.name,
                update.version,
                update.new_version,
            )
        else:
            print(
                f"Update available for dependency {update.name}: "
                f"{update.new_version} (current: {update.version})"
            )


def write_output(
    updates: Sequence[VersionUpdate],
    output_format: OutputFormat | str,
    output_file: PathType | None = None,
) -> Path:
    """Write updates as JSON or YAML and return the path written."""
    fmt = _parse_output_format(output_format)
    data = [update.to_dict() for update in updates]
    if fmt is OutputFormat.YAML:
        text = yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
    elif fmt is OutputFormat.JSON:
        text = json.dumps(data, separators=(",", ":"))
    else:
        raise CommandError(f"cannot write {fmt} output to a file")

    path = Path(output_file) if output_file else Path(f"{DEFAULT_OUTPUT_FILE_NAME}.{fmt}")
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text)
    except OSError as exc:
        raise CommandError(f"failed to write output: {exc}") from exc
    return path


def _package_version() -> str:
    try:
        return metadata.version("zeitgeist")
    except metadata.PackageNotFoundError:
        return "unknown"


Handler = Callable[[Options, argparse.Namespace], None]


def _handle_validate(options: Options, args: argparse.Namespace) -> None:
    run_validate(options)


def _handle_export(options: Options, args: argparse.Namespace) -> None:
    run_export(options, args.output_format, args.output_file)


def _handle_upgrade(options: Options, args: argparse.Namespace) -> None:
    run_upgrade(options)


def _handle_set_version(options: Options, args: argparse.Namespace) -> None:
    run_set_version(options, args.args)


def _handle_version(options: Options, args: argparse.Namespace) -> None:
    print(f"zeitgeist {_package_version()}")


def build_parser(local_only: bool = True) -> argparse.ArgumentParser:
    """Build the argument parser; ``local_only`` is the default of --local-only."""
    parser = argparse.ArgumentParser(
        prog="zeitgeist", description="Zeitgeist is a language-agnostic dependency checker"
    )
    parser.add_argument(
        "--local-only",
        action=argparse.BooleanOptionalAction,
        default=local_only,
        help="if specified, subcommands will only perform local checks",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_FILE, help="configuration file location"
    )
    parser.add_argument(
        "--base-path",
        default="",
        help=(
            "base path to begin searching for dependencies "
            "(defaults to where the program was called from)"
        ),
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help=f"the logging verbosity, either {_LEVEL_NAMES}",
    )

    commands = parser.add_subparsers(dest="command", metavar="<command>")

    validate_cmd = commands.add_parser(
        "validate", help="Check dependencies locally and against upstream versions"
    )
    validate_cmd.set_defaults(handler=_handle_validate, needs_options=True)

    export_cmd = commands.add_parser(
        "export", help="Export list of 'latest' upstream versions available"
    )
    export_cmd.add_argument(
        "--output-format",
        default=OutputFormat.LOG.value,
        help=(
            "format of the output. Supported values are 'log', 'json' and 'yaml'. "
            "If not provided it will default to printing log."
        ),
    )
    export_cmd.add_argument(
        "--output-file",
        default="",
        help=(
            "file to write output. Use only if --output-format is 'json' or 'yaml'. "
            "If not specified will default to dependency_output.(json|yaml)."
        ),
    )
    export_cmd.set_defaults(handler=_handle_export, needs_options=True)

    upgrade_cmd = commands.add_parser(
        "upgrade", help="Upgrade local dependencies based on upstream versions"
    )
    upgrade_cmd.set_defaults(handler=_handle_upgrade, needs_options=True)

    set_version_cmd = commands.add_parser(
        "set-version",
        usage="zeitgeist set-version <dependency> <version>",
        help="Set version of dependency based on given input",
    )
    set_version_cmd.add_argument("args", nargs="*", metavar="<dependency> <version>")
    set_version_cmd.set_defaults(handler=_handle_set_version, needs_options=True)

    version_cmd = commands.add_parser("version", help="Print the version of zeitgeist")
    version_cmd.set_defaults(handler=_handle_version, needs_options=False)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run zeitgeist and return its exit status."""
    parser = build_parser(local_only=True)
    args = parser.parse_args(argv)
    handler: Handler | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0

    options = Options(
        local_only=args.local_only,
        base_path=args.base_path,
        config_file=args.config,
        log_level=args.log_level,
    )
    try:
        _setup_logging(options.log_level)
        if args.needs_options:
            options.validate()
        handler(options, args)
    except Exception as error:  # noqa: BLE001 - top-level report of any failure
        print(f"error during command execution: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())