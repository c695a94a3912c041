"""pytest plugin loaded into every worker process.

Notifications are written to the worker's original stdout, one JSON document
per line, prefixed with the run's output id so the coordinator can tell them
apart from anything else the suite prints. The plugin does nothing unless the
output id is present in the environment.
"""

import os
import random
import time
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

import pytest

from turbo_pytest.models.base import Model
from turbo_pytest.models.notifications import (
    ErrorOutsideOfExamples,
    Example,
    ExampleStatus,
    FailureDetail,
    Group,
    GroupFinished,
    GroupStarted,
    LoadSummary,
    Message,
    outcome_notification,
)
from turbo_pytest.workers.command import OUTPUT_ID_ENV, RUNTIME_LOG_ENV, SEED_ENV

PLUGIN_NAME = "turbo_pytest_worker"


class NotificationWriter:
    def __init__(self, stream: TextIO, output_id: str) -> None:
        self.stream = stream
        self.output_id = output_id

    def emit(self, notification: Model) -> None:
        self.stream.write(f"{self.output_id}{notification.model_dump_json()}\n")
        self.stream.flush()

    def close(self) -> None:
        self.stream.close()


@dataclass(kw_only=True)
class _Outcome:
    """Outcome of one test folded over its setup, call and teardown reports."""

    status: ExampleStatus | None = None
    duration: float = 0.0
    exception: FailureDetail | None = None
    pending_message: str | None = None


def failure_detail(report: pytest.TestReport) -> FailureDetail:
    """Extract exception name and message from a failed report."""
    crash = getattr(report.longrepr, "reprcrash", None)
    headline = crash.message if crash is not None else ""
    class_name, sep, message = headline.partition(": ")
    if not sep or " " in class_name:
        class_name, message = "Error", headline

    if report.when != "call":
        prefix = f"error in {report.when}"
        message = f"{prefix}: {message}" if message else prefix
    return FailureDetail(
        class_name=class_name,
        message=message.strip(),
        backtrace=report.longreprtext,
    )


def skip_reason(report: pytest.TestReport) -> str | None:
    if (reason := getattr(report, "wasxfail", None)) is not None:
        return f"xfail: {reason}" if reason else "xfail"
    if isinstance(report.longrepr, tuple) and len(report.longrepr) == 3:
        return str(report.longrepr[2]).removeprefix("Skipped: ")
    return None


def shuffle_items(items: list[pytest.Item], seed: str) -> None:
    """Shuffle modules, and tests within each module, keeping modules contiguous."""
    rng = random.Random(seed)
    by_file: dict[str, list[pytest.Item]] = {}
    for item in items:
        by_file.setdefault(item.nodeid.split("::", 1)[0], []).append(item)

    files = list(by_file)
    rng.shuffle(files)
    shuffled: list[pytest.Item] = []
    for name in files:
        module_items = by_file[name]
        rng.shuffle(module_items)
        shuffled.extend(module_items)
    items[:] = shuffled


class WorkerReporter:
    """Translates pytest hooks into notifications."""

    def __init__(
        self,
        writer: NotificationWriter,
        seed: str | None = None,
        runtime_log: Path | None = None,
    ) -> None:
        self.writer = writer
        self.seed = seed
        self.runtime_log = runtime_log
        self._started = time.monotonic()
        self._group: Group | None = None
        self._outcomes: dict[str, _Outcome] = {}
        self._file_runtimes: dict[str, float] = defaultdict(float)

    def pytest_collection_modifyitems(self, items: list[pytest.Item]) -> None:
        if self.seed is not None:
            shuffle_items(items, self.seed)

    def pytest_collectreport(self, report: pytest.CollectReport) -> None:
        if not report.failed:
            return
        self.writer.emit(Message(message=f"{report.nodeid}\n{report.longreprtext}"))
        self.writer.emit(ErrorOutsideOfExamples())

    def pytest_collection_finish(self, session: pytest.Session) -> None:
        self.writer.emit(
            LoadSummary(
                count=len(session.items),
                load_time=time.monotonic() - self._started,
            )
        )

    def pytest_internalerror(self, excrepr: Any) -> None:
        self.writer.emit(Message(message=str(excrepr)))
        self.writer.emit(ErrorOutsideOfExamples())

    def pytest_runtest_logstart(
        self, nodeid: str, location: tuple[str, int | None, str]
    ) -> None:
        file_path = location[0]
        if self._group is not None and self._group.file_path == file_path:
            return
        self._finish_group()
        self._group = Group(description=file_path, file_path=file_path)
        self.writer.emit(GroupStarted(group=self._group))

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        outcome = self._outcomes.setdefault(report.nodeid, _Outcome())
        outcome.duration += report.duration

        if report.failed:
            if outcome.status != "failed":
                outcome.status = "failed"
                outcome.exception = failure_detail(report)
        elif report.skipped:
            if outcome.status != "failed":
                outcome.status = "pending"
                outcome.pending_message = skip_reason(report)
        elif report.when == "call" and outcome.status is None:
            outcome.status = "passed"

    def pytest_runtest_logfinish(
        self, nodeid: str, location: tuple[str, int | None, str]
    ) -> None:
        outcome = self._outcomes.pop(nodeid, None)
        if outcome is None:
            return

        file_path, lineno, _ = location
        line_number = lineno + 1 if lineno is not None else None
        parts = nodeid.split("::")
        example = Example(
            id=nodeid,
            description=parts[-1],
            full_description=" ".join(parts),
            location=f"{file_path}:{line_number}" if line_number else file_path,
            file_path=file_path,
            line_number=line_number,
            status=outcome.status or "passed",
            duration=outcome.duration,
            exception=outcome.exception,
            pending_message=outcome.pending_message,
        )
        self._file_runtimes[file_path] += outcome.duration
        self.writer.emit(outcome_notification(example))

    @pytest.hookimpl(trylast=True)
    def pytest_sessionfinish(self) -> None:
        self._finish_group()
        self._write_runtime_log()

    def _finish_group(self) -> None:
        if self._group is None:
            return
        self.writer.emit(GroupFinished(group=self._group))
        self._group = None

    def _write_runtime_log(self) -> None:
        if self.runtime_log is None or not self._file_runtimes:
            return
        lines = "".join(
            f"{name}:{seconds:.3f}\n" for name, seconds in self._file_runtimes.items()
        )
        # One append per worker keeps lines from concurrent workers whole.
        with self.runtime_log.open("a", encoding="utf-8") as log_file:
            log_file.write(lines)


def pytest_configure(config: pytest.Config) -> None:
    output_id = os.environ.get(OUTPUT_ID_ENV)
    if not output_id:
        return

    # Output capturing is suspended while plugins configure, so fd 1 is still
    # the pipe to the coordinator here.
    stream = os.fdopen(os.dup(1), "w", encoding="utf-8", buffering=1)
    runtime_log = os.environ.get(RUNTIME_LOG_ENV)
    reporter = WorkerReporter(
        NotificationWriter(stream, output_id),
        seed=os.environ.get(SEED_ENV),
        runtime_log=Path(runtime_log) if runtime_log else None,
    )
    config.pluginmanager.register(reporter, PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    reporter = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if isinstance(reporter, WorkerReporter):
        config.pluginmanager.unregister(reporter)
        reporter.writer.close()
