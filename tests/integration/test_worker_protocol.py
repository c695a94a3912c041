"""Integration tests for the worker plugin's event stream."""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import pytest

from turbo_pytest.models.notifications import (
    ExampleFailed,
    ExamplePassed,
    ExamplePending,
    GroupFinished,
    GroupStarted,
    LoadSummary,
    Message,
    Notification,
    parse_notification,
)
from turbo_pytest.workers.command import (
    OUTPUT_ID_ENV,
    RUNTIME_LOG_ENV,
    SEED_ENV,
    WORKER_PLUGIN,
)


class WorkerRunFn(Protocol):
    """Protocol for running pytest with the worker plugin."""

    def __call__(
        self, *args: str
    ) -> tuple[pytest.RunResult, Sequence[Notification]]:
        """Run pytest in a subprocess and return its notifications."""


@pytest.fixture
def run_worker(pytester: pytest.Pytester, output_id: str) -> WorkerRunFn:
    """Return a function running pytest the way a worker does."""

    def _run(*args: str) -> tuple[pytest.RunResult, Sequence[Notification]]:
        result = pytester.runpytest_subprocess("-p", WORKER_PLUGIN, *args)
        notifications = [
            parse_notification(line.split(output_id, 1)[1])
            for line in result.outlines
            if output_id in line
        ]
        return result, notifications

    return _run


def test_reports_every_outcome(
    sample_suite: pytest.Pytester, run_worker: WorkerRunFn
) -> None:
    """Emits one notification per example, wrapped in its file's group."""
    result, notifications = run_worker()

    assert result.ret == pytest.ExitCode.TESTS_FAILED
    assert [type(n) for n in notifications] == [
        LoadSummary,
        GroupStarted,
        ExamplePassed,
        ExampleFailed,
        ExamplePending,
        ExamplePending,
        ExampleFailed,
        GroupFinished,
    ]

    load, _, passed, failed, skipped, xfailed, errored, _ = notifications
    assert isinstance(load, LoadSummary)
    assert load.count == 5

    assert isinstance(passed, ExamplePassed)
    assert passed.example.id == "test_sample.py::test_pass"
    assert passed.example.location == "test_sample.py:7"

    assert isinstance(failed, ExampleFailed)
    assert failed.example.exception is not None
    assert failed.example.exception.class_name == "AssertionError"
    assert "assert 1 == 2" in failed.example.exception.backtrace

    assert isinstance(skipped, ExamplePending)
    assert skipped.example.pending_message == "later"
    assert isinstance(xfailed, ExamplePending)
    assert xfailed.example.pending_message == "xfail: known bug"

    assert isinstance(errored, ExampleFailed)
    assert errored.example.exception is not None
    assert errored.example.exception.class_name == "RuntimeError"
    assert errored.example.exception.message == "error in setup: no db"


def test_collection_error(pytester: pytest.Pytester, run_worker: WorkerRunFn) -> None:
    """Reports import failures as errors outside of examples."""
    pytester.makepyfile(test_broken="import definitely_not_installed\n")

    result, notifications = run_worker()

    assert result.ret == pytest.ExitCode.INTERRUPTED
    types = [n.type for n in notifications]
    assert "example_passed" not in types
    message_index = types.index("message")
    assert types[message_index + 1] == "error_outside_of_examples"
    message = notifications[message_index]
    assert isinstance(message, Message)
    assert "definitely_not_installed" in message.message


def test_marker_selection(pytester: pytest.Pytester, run_worker: WorkerRunFn) -> None:
    pytester.makepyfile(
        test_marked="""
        import pytest

        @pytest.mark.slow
        def test_slow():
            pass

        def test_fast():
            pass
        """
    )

    _, notifications = run_worker("-m", "not slow")

    ids = [n.example.id for n in notifications if isinstance(n, ExamplePassed)]
    assert ids == ["test_marked.py::test_fast"]


def test_seed_order_is_repeatable(
    pytester: pytest.Pytester,
    run_worker: WorkerRunFn,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    pytester.makepyfile(
        **{
            f"test_mod{module}": "\n".join(
                f"def test_{index}(): pass" for index in range(6)
            )
            for module in range(3)
        }
    )
    monkeypatch.setenv(SEED_ENV, "31337")

    orders: list[list[str]] = []
    for _ in range(2):
        _, notifications = run_worker()
        orders.append(
            [n.example.id for n in notifications if isinstance(n, ExamplePassed)]
        )

    assert orders[0] == orders[1]
    assert len(orders[0]) == 18


def test_runtime_log_written(
    sample_suite: pytest.Pytester,
    run_worker: WorkerRunFn,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    runtime_log = tmp_path / "runtime.log"
    monkeypatch.setenv(RUNTIME_LOG_ENV, str(runtime_log))

    run_worker()

    (line,) = runtime_log.read_text().splitlines()
    name, _, seconds = line.rpartition(":")
    assert name == "test_sample.py"
    assert float(seconds) >= 0


def test_inert_without_output_id(
    sample_suite: pytest.Pytester, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Loading the plugin outside a parallel run changes nothing."""
    monkeypatch.delenv(OUTPUT_ID_ENV, raising=False)

    result = sample_suite.runpytest_subprocess("-p", WORKER_PLUGIN)

    result.assert_outcomes(passed=1, failed=1, skipped=1, xfailed=1, errors=1)
    assert not any('"type"' in line for line in result.outlines)
