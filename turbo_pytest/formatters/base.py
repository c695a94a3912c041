"""Formatter capability protocol.

A formatter is any object constructed with one text output stream. Each
capability below is an optional method; the reporter inspects a formatter
once when it is registered and only ever calls the methods it found, so a
machine-readable sink may implement nothing but ``dump_summary``.

Payload per capability:

==================  ==========================
group_started       GroupStarted
group_finished      GroupFinished
example_passed      ExamplePassed
example_pending     ExamplePending
example_failed      ExampleFailed
message             Message
stop                ExamplesNotification
start_dump          (no arguments)
dump_pending        ExamplesNotification
dump_failures       ExamplesNotification
dump_summary        SummaryNotification
close               (no arguments)
==================  ==========================
"""

from collections.abc import Callable
from enum import StrEnum
from typing import TextIO


class Capability(StrEnum):
    GROUP_STARTED = "group_started"
    GROUP_FINISHED = "group_finished"
    EXAMPLE_PASSED = "example_passed"
    EXAMPLE_PENDING = "example_pending"
    EXAMPLE_FAILED = "example_failed"
    MESSAGE = "message"
    STOP = "stop"
    START_DUMP = "start_dump"
    DUMP_PENDING = "dump_pending"
    DUMP_FAILURES = "dump_failures"
    DUMP_SUMMARY = "dump_summary"
    CLOSE = "close"


FINISH_SEQUENCE: tuple[Capability, ...] = (
    Capability.STOP,
    Capability.START_DUMP,
    Capability.DUMP_PENDING,
    Capability.DUMP_FAILURES,
    Capability.DUMP_SUMMARY,
    Capability.CLOSE,
)

FormatterFactory = Callable[[TextIO], object]


def detect_capabilities(formatter: object) -> frozenset[Capability]:
    """Return the capabilities a formatter implements."""
    return frozenset(
        capability
        for capability in Capability
        if callable(getattr(formatter, capability.value, None))
    )
