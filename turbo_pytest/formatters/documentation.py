"""Documentation formatter: nested group and example descriptions.

Groups from different workers interleave, so nesting is only meaningful
within one worker's stream.
"""

from typing import TextIO

from turbo_pytest.formatters.text import TextFormatter
from turbo_pytest.models.notifications import (
    ExampleFailed,
    ExamplePassed,
    ExamplePending,
    GroupFinished,
    GroupStarted,
)


class DocumentationFormatter(TextFormatter):
    def __init__(self, output: TextIO) -> None:
        super().__init__(output)
        self._level = 0
        self._failure_count = 0

    @property
    def _indent(self) -> str:
        return "  " * self._level

    def group_started(self, notification: GroupStarted) -> None:
        if self._level == 0:
            self.console.print()
        self.console.print(f"{self._indent}{notification.group.description}")
        self._level += 1

    def group_finished(self, notification: GroupFinished) -> None:
        self._level = max(self._level - 1, 0)

    def example_passed(self, notification: ExamplePassed) -> None:
        self.console.print(
            f"{self._indent}{notification.example.description}", style="green"
        )

    def example_pending(self, notification: ExamplePending) -> None:
        example = notification.example
        reason = example.pending_message or "No reason given"
        self.console.print(
            f"{self._indent}{example.description} (PENDING: {reason})",
            style="yellow",
        )

    def example_failed(self, notification: ExampleFailed) -> None:
        self._failure_count += 1
        self.console.print(
            f"{self._indent}{notification.example.description} "
            f"(FAILED - {self._failure_count})",
            style="red",
        )
