"""Progress formatter: one character per example."""

from turbo_pytest.formatters.text import TextFormatter
from turbo_pytest.models.notifications import (
    ExampleFailed,
    ExamplePassed,
    ExamplePending,
)


class ProgressFormatter(TextFormatter):
    def example_passed(self, notification: ExamplePassed) -> None:
        self.console.print(".", style="green", end="")

    def example_pending(self, notification: ExamplePending) -> None:
        self.console.print("*", style="yellow", end="")

    def example_failed(self, notification: ExampleFailed) -> None:
        self.console.print("F", style="red", end="")

    def start_dump(self) -> None:
        # Terminate the line of progress characters.
        self.console.print()
