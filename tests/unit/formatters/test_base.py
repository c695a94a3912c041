"""Tests for capability detection."""

import io

from turbo_pytest.formatters.base import (
    FINISH_SEQUENCE,
    Capability,
    detect_capabilities,
)
from turbo_pytest.formatters.json_summary import JsonFormatter
from turbo_pytest.formatters.progress import ProgressFormatter
from turbo_pytest.testing.formatters import RecordingFormatter


def test_detect_finds_every_capability_of_full_formatter() -> None:
    assert detect_capabilities(RecordingFormatter(io.StringIO())) == set(Capability)


def test_detect_finds_only_summary_capability() -> None:
    assert detect_capabilities(JsonFormatter(io.StringIO())) == {
        Capability.DUMP_SUMMARY
    }


def test_detect_ignores_non_callable_attributes() -> None:
    class Odd:
        close = "not a method"

        def stop(self, notification: object) -> None:
            """Stop."""

    assert detect_capabilities(Odd()) == {Capability.STOP}


def test_progress_formatter_skips_group_capabilities() -> None:
    capabilities = detect_capabilities(ProgressFormatter(io.StringIO()))

    assert Capability.GROUP_STARTED not in capabilities
    assert Capability.EXAMPLE_FAILED in capabilities
    assert Capability.START_DUMP in capabilities


def test_finish_sequence_order() -> None:
    assert [capability.value for capability in FINISH_SEQUENCE] == [
        "stop",
        "start_dump",
        "dump_pending",
        "dump_failures",
        "dump_summary",
        "close",
    ]
