"""CLI entry point for running a pytest suite across parallel workers."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, TextIO

from pydantic import ValidationError

from turbo_pytest.errors import TurboPytestError
from turbo_pytest.models.options import (
    DEFAULT_FILES,
    DEFAULT_FORMATTER,
    DEFAULT_OUTPUT,
    FormatterSpec,
    RunOptions,
)
from turbo_pytest.runner import run_suite

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_FATAL = 2

GROUP_BY_HELP = """group tests by:
found - order of finding files
steps - accepted for compatibility, same as found
scenarios - accepted for compatibility, same as found
filesize - by size of the file
runtime - info from runtime log
default - runtime when runtime log is filled otherwise filesize"""


def _declared_formatters(namespace: argparse.Namespace) -> list[dict[str, Any]]:
    formatters = getattr(namespace, "formatters", None)
    if formatters is None:
        formatters = []
        namespace.formatters = formatters
    return formatters


class FormatAction(argparse.Action):
    """Declare a formatter; later ``--out`` options bind to it."""

    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        _declared_formatters(namespace).append({"name": values, "outputs": []})


class OutAction(argparse.Action):
    """Bind an output file to the most recently declared formatter."""

    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        formatters = _declared_formatters(namespace)
        if not formatters:
            formatters.append({"name": DEFAULT_FORMATTER, "outputs": []})
        formatters[-1]["outputs"].append(values)


def parse_fail_fast(value: str) -> int:
    """Parse ``--fail-fast=N``; anything but a positive integer means 1."""
    try:
        threshold = int(value)
    except ValueError:
        return 1
    return threshold if threshold >= 1 else 1


def resolve_formatters(
    declared: Sequence[Mapping[str, Any]] | None,
) -> Sequence[FormatterSpec]:
    """Apply defaults to declared formatters.

    Without declarations a single progress formatter writes to stdout, and a
    formatter declared without outputs writes to stdout.
    """
    if not declared:
        return [FormatterSpec(name=DEFAULT_FORMATTER, outputs=(DEFAULT_OUTPUT,))]
    return [
        FormatterSpec(
            name=formatter["name"],
            outputs=tuple(formatter["outputs"]) or (DEFAULT_OUTPUT,),
        )
        for formatter in declared
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="turbo-pytest",
        description=(
            "Run a pytest suite in parallel worker processes, giving each "
            "process TEST_ENV_NUMBER ('1', '2', '3', ...), and report results "
            "incrementally."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-n",
        dest="count",
        type=int,
        help="How many processes to use, default: available CPUs",
    )
    parser.add_argument(
        "-r",
        "--require",
        dest="requires",
        action="append",
        default=[],
        metavar="PATH",
        help="Import a module or .py file, e.g. one defining a custom formatter",
    )
    parser.add_argument(
        "-f",
        "--format",
        dest="formatters",
        action=FormatAction,
        metavar="FORMATTER",
        help=(
            "Choose a formatter. Available formatters: progress (p), "
            "documentation (d), json (j). Default: progress"
        ),
    )
    parser.add_argument(
        "-p",
        "--pattern",
        help="Run test files matching this regex pattern",
    )
    parser.add_argument(
        "--exclude-pattern",
        help="Exclude test files matching this regex pattern",
    )
    parser.add_argument(
        "--group-by",
        choices=["found", "steps", "scenarios", "filesize", "runtime", "default"],
        default="default",
        help=GROUP_BY_HELP,
    )
    parser.add_argument(
        "-t",
        "--tag",
        dest="tags",
        action="append",
        default=[],
        help="Run examples with the specified marker (~marker excludes it)",
    )
    parser.add_argument(
        "-o",
        "--out",
        dest="formatters",
        action=OutAction,
        metavar="FILE",
        help="Write output of the last formatter to a file instead of stdout",
    )
    parser.add_argument(
        "--runtime-log",
        type=Path,
        metavar="FILE",
        help="Location of previously recorded test runtimes",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="More output")
    parser.add_argument(
        "--fail-fast",
        nargs="?",
        const=1,
        type=parse_fail_fast,
        metavar="N",
        help="Stop after N failures (default 1); pass N as --fail-fast=N",
    )
    parser.add_argument("--seed", help="Seed for shuffling test order")
    parser.add_argument(
        "files",
        nargs="*",
        help=f"Test files and directories, default: {' '.join(DEFAULT_FILES)}",
    )
    return parser


def build_options(args: argparse.Namespace) -> RunOptions:
    """Convert parsed arguments into run options."""
    return RunOptions(
        formatters=resolve_formatters(args.formatters),
        files=tuple(args.files) or DEFAULT_FILES,
        tags=tuple(args.tags),
        requires=tuple(args.requires),
        count=args.count,
        runtime_log=args.runtime_log,
        verbose=args.verbose,
        fail_fast=args.fail_fast,
        seed=args.seed,
        pattern=args.pattern,
        exclude_pattern=args.exclude_pattern,
        group_by=args.group_by,
    )


async def run(options: RunOptions, stdout: TextIO | None = None) -> int:
    """Run the suite and return the exit code."""
    success = await run_suite(options, stdout)
    return EXIT_SUCCESS if success else EXIT_FAILURE


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = build_options(args)
    except ValidationError as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    log = logging.getLogger("turbo_pytest")

    try:
        exit_code = asyncio.run(run(options))
    except TurboPytestError as exc:
        log.error("%s", exc)
        exit_code = EXIT_FATAL
    except Exception:
        log.exception("Run aborted by an unexpected error")
        exit_code = EXIT_FATAL
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
