"""Discovery of test files and their distribution across workers."""

import heapq
import logging
import os
import re
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from turbo_pytest.errors import ConfigurationError
from turbo_pytest.models.options import GroupBy

log = logging.getLogger(__name__)

TEST_FILE_GLOBS = ("test_*.py", "*_test.py")


def compile_filter(pattern: str | None, option: str) -> re.Pattern[str] | None:
    """Compile a file filter regex.

    Raises:
        ConfigurationError: If the pattern is not a valid regular expression

    """
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"Invalid {option} '{pattern}': {exc}") from exc


def discover_files(
    paths: Sequence[str],
    pattern: str | None = None,
    exclude_pattern: str | None = None,
) -> Sequence[str]:
    """Expand paths into test files, in discovery order and without duplicates.

    Directories are searched recursively for ``test_*.py`` and ``*_test.py``.
    Entries are keyed on the normalised file path, so each module is selected
    at most once: a whole file absorbs node ids (``path::test``) within it,
    and a node id absorbs narrower node ids below it.

    Raises:
        ConfigurationError: If a path does not exist or a filter is invalid

    """
    include = compile_filter(pattern, "pattern")
    exclude = compile_filter(exclude_pattern, "exclude-pattern")

    # File path -> selected node ids, or None when the whole file is selected.
    selected: dict[str, list[str] | None] = {}
    for raw in paths:
        name, _, node = raw.partition("::")
        path = Path(name)
        if path.is_dir():
            matches = {
                match for glob in TEST_FILE_GLOBS for match in path.rglob(glob)
            }
            for match in sorted(matches):
                selected[os.path.normpath(match)] = None
        elif path.is_file():
            _select(selected, os.path.normpath(path), node or None)
        else:
            raise ConfigurationError(f"No such file or directory: {raw}")

    files = [
        entry
        for name, nodes in selected.items()
        for entry in ([name] if nodes is None else [f"{name}::{n}" for n in nodes])
        if (include is None or include.search(entry))
        and (exclude is None or not exclude.search(entry))
    ]
    log.debug("Discovered %d test file(s)", len(files))
    return files


def _select(
    selected: dict[str, list[str] | None], name: str, node: str | None
) -> None:
    if node is None:
        selected[name] = None
        return
    if name not in selected:
        selected[name] = [node]
        return

    nodes = selected[name]
    if nodes is None or any(_covers(existing, node) for existing in nodes):
        return
    nodes[:] = [existing for existing in nodes if not _covers(node, existing)]
    nodes.append(node)


def _covers(outer: str, inner: str) -> bool:
    # A test covers its parametrized variants, a class or module its members.
    return inner == outer or inner.startswith((f"{outer}::", f"{outer}["))


def read_runtime_log(path: Path | None) -> Mapping[str, float]:
    """Read ``file:seconds`` lines; later entries for a file win."""
    if path is None or not path.exists():
        return {}

    runtimes: dict[str, float] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        name, sep, seconds = line.strip().rpartition(":")
        if not sep or not name:
            continue
        try:
            runtimes[name] = float(seconds)
        except ValueError:
            log.debug("Ignoring malformed runtime log line: %s", line)
    return runtimes


def partition(
    files: Sequence[str],
    count: int,
    group_by: GroupBy = "default",
    runtime_log: Path | None = None,
) -> Sequence[Sequence[str]]:
    """Split files into at most ``count`` disjoint, non-empty groups.

    Raises:
        ConfigurationError: If grouping by runtime without usable runtime data

    """
    if not files:
        return []
    count = max(1, min(count, len(files)))

    match group_by:
        case "steps" | "scenarios":
            log.warning("Grouping by %s is not supported, using found", group_by)
            return _round_robin(files, count)
        case "found":
            return _round_robin(files, count)
        case "filesize":
            return _balance(files, count, _file_size)
        case "runtime":
            runtimes = read_runtime_log(runtime_log)
            if not runtimes:
                raise ConfigurationError(
                    f"Grouping by runtime requires a runtime log with entries "
                    f"(got {runtime_log})"
                )
            return _balance(files, count, _runtime_weight(runtimes))
        case "default":
            runtimes = read_runtime_log(runtime_log)
            if runtimes:
                return _balance(files, count, _runtime_weight(runtimes))
            return _balance(files, count, _file_size)
        case _:
            raise ConfigurationError(f"Unknown group-by strategy: {group_by}")


def _round_robin(files: Sequence[str], count: int) -> Sequence[Sequence[str]]:
    return [list(files[index::count]) for index in range(count)]


def _balance(
    files: Sequence[str], count: int, weigh: Callable[[str], float]
) -> Sequence[Sequence[str]]:
    """Assign heaviest files first, each to the currently lightest group."""
    groups: list[list[str]] = [[] for _ in range(count)]
    heap = [(0.0, index) for index in range(count)]
    for name in sorted(files, key=weigh, reverse=True):
        weight, index = heapq.heappop(heap)
        groups[index].append(name)
        heapq.heappush(heap, (weight + weigh(name), index))
    return [group for group in groups if group]


def _file_size(name: str) -> float:
    return float(Path(name.split("::", 1)[0]).stat().st_size)


def _runtime_weight(runtimes: Mapping[str, float]) -> Callable[[str], float]:
    # Files missing from the log are assumed to take an average amount of time.
    average = sum(runtimes.values()) / len(runtimes)

    def weigh(name: str) -> float:
        return runtimes.get(name.split("::", 1)[0], average)

    return weigh
