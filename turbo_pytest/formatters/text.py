"""Shared rendering for human-readable formatters."""

import textwrap
from typing import TextIO

from rich.console import Console

from turbo_pytest.models.notifications import Example, Message
from turbo_pytest.models.report import ExamplesNotification, SummaryNotification


class TextFormatter:
    """Base for formatters that print pending, failure and summary dumps.

    Colour is only emitted when the output stream is a terminal.
    """

    def __init__(self, output: TextIO) -> None:
        self.output = output
        self.console = Console(
            file=output,
            markup=False,
            highlight=False,
            emoji=False,
            soft_wrap=True,
        )

    def message(self, notification: Message) -> None:
        self.console.print(notification.message)

    def dump_pending(self, notification: ExamplesNotification) -> None:
        if not notification.pending_examples:
            return

        self.console.print()
        self.console.print(
            "Pending: (Failures listed here are expected and do not affect "
            "your suite's status)"
        )
        for index, example in enumerate(notification.pending_examples, start=1):
            self.console.print()
            self.console.print(f"  {index}) {example.full_description}")
            reason = example.pending_message or "No reason given"
            self.console.print(f"     # {reason}", style="yellow")
            self.console.print(f"     # {example.location}", style="cyan")

    def dump_failures(self, notification: ExamplesNotification) -> None:
        if not notification.failed_examples:
            return

        self.console.print()
        self.console.print("Failures:")
        for index, example in enumerate(notification.failed_examples, start=1):
            self.console.print()
            self._print_failure(index, example)

    def _print_failure(self, index: int, example: Example) -> None:
        self.console.print(f"  {index}) {example.full_description}")
        if example.exception is not None:
            headline = example.exception.class_name
            if example.exception.message:
                headline = f"{headline}: {example.exception.message}"
            self.console.print(f"     Failure/Error: {headline}", style="red")
            if example.exception.backtrace:
                self.console.print(
                    textwrap.indent(example.exception.backtrace.rstrip(), "     "),
                    style="red",
                )
        self.console.print(f"     # {example.location}", style="cyan")

    def dump_summary(self, notification: SummaryNotification) -> None:
        self.console.print()
        self.console.print(notification.timing_line())
        if notification.failure_count or notification.errors_outside_of_examples_count:
            style = "red"
        elif notification.pending_count:
            style = "yellow"
        else:
            style = "green"
        self.console.print(notification.totals_line(), style=style)

        if not notification.failed_examples:
            return

        self.console.print()
        self.console.print("Failed examples:")
        self.console.print()
        for example, command in zip(
            notification.failed_examples, notification.rerun_commands(), strict=True
        ):
            self.console.print(command, style="red", end="")
            self.console.print(f" # {example.full_description}", style="cyan")

    def close(self) -> None:
        self.output.flush()
