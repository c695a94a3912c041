"""Formatters recording what the reporter sends them."""

from typing import TextIO

from turbo_pytest.models.notifications import (
    ExampleFailed,
    ExamplePassed,
    ExamplePending,
    GroupFinished,
    GroupStarted,
    Message,
)
from turbo_pytest.models.report import ExamplesNotification, SummaryNotification


class RecordingFormatter:
    """Implements every capability and records calls in order."""

    def __init__(self, output: TextIO) -> None:
        self.output = output
        self.calls: list[tuple[str, tuple[object, ...]]] = []

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def group_started(self, notification: GroupStarted) -> None:
        self.calls.append(("group_started", (notification,)))

    def group_finished(self, notification: GroupFinished) -> None:
        self.calls.append(("group_finished", (notification,)))

    def example_passed(self, notification: ExamplePassed) -> None:
        self.calls.append(("example_passed", (notification,)))

    def example_pending(self, notification: ExamplePending) -> None:
        self.calls.append(("example_pending", (notification,)))

    def example_failed(self, notification: ExampleFailed) -> None:
        self.calls.append(("example_failed", (notification,)))

    def message(self, notification: Message) -> None:
        self.calls.append(("message", (notification,)))

    def stop(self, notification: ExamplesNotification) -> None:
        self.calls.append(("stop", (notification,)))

    def start_dump(self) -> None:
        self.calls.append(("start_dump", ()))

    def dump_pending(self, notification: ExamplesNotification) -> None:
        self.calls.append(("dump_pending", (notification,)))

    def dump_failures(self, notification: ExamplesNotification) -> None:
        self.calls.append(("dump_failures", (notification,)))

    def dump_summary(self, notification: SummaryNotification) -> None:
        self.calls.append(("dump_summary", (notification,)))

    def close(self) -> None:
        self.calls.append(("close", ()))


class SummaryOnlyFormatter:
    """Implements only ``dump_summary``."""

    def __init__(self, output: TextIO) -> None:
        self.output = output
        self.summaries: list[SummaryNotification] = []

    def dump_summary(self, notification: SummaryNotification) -> None:
        self.summaries.append(notification)
