"""Payloads handed to formatters during the finish sequence."""

from collections.abc import Sequence
from dataclasses import dataclass

from turbo_pytest.models.notifications import Example


def pluralize(count: int, word: str) -> str:
    """Return ``"1 failure"`` / ``"2 failures"`` style counts."""
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _seconds(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {'second' if text == '1' else 'seconds'}"


def format_seconds(seconds: float) -> str:
    """Format a duration the way the summary line shows it."""
    if seconds < 60:
        return _seconds(seconds)
    minutes, rest = divmod(seconds, 60)
    return f"{pluralize(int(minutes), 'minute')} {_seconds(rest)}"


@dataclass(frozen=True, kw_only=True)
class ExamplesNotification:
    """Snapshot of recorded examples."""

    examples: Sequence[Example]
    failed_examples: Sequence[Example]
    pending_examples: Sequence[Example]


@dataclass(frozen=True, kw_only=True)
class SummaryNotification:
    """Final totals of a run."""

    duration: float
    examples: Sequence[Example]
    failed_examples: Sequence[Example]
    pending_examples: Sequence[Example]
    load_time: float
    errors_outside_of_examples_count: int

    @property
    def example_count(self) -> int:
        return len(self.examples)

    @property
    def failure_count(self) -> int:
        return len(self.failed_examples)

    @property
    def pending_count(self) -> int:
        return len(self.pending_examples)

    @property
    def success(self) -> bool:
        return self.failure_count == 0 and self.errors_outside_of_examples_count == 0

    def totals_line(self) -> str:
        """Return e.g. ``"3 examples, 1 failure, 1 pending"``."""
        parts = [
            pluralize(self.example_count, "example"),
            pluralize(self.failure_count, "failure"),
        ]
        if self.pending_count:
            parts.append(f"{self.pending_count} pending")
        if self.errors_outside_of_examples_count:
            count = self.errors_outside_of_examples_count
            parts.append(
                f"{pluralize(count, 'error')} occurred outside of examples"
            )
        return ", ".join(parts)

    def timing_line(self) -> str:
        return (
            f"Finished in {format_seconds(self.duration)} "
            f"(files took {format_seconds(self.load_time)} to load)"
        )

    def rerun_commands(self) -> Sequence[str]:
        return [f"pytest {example.id}" for example in self.failed_examples]


@dataclass(frozen=True, kw_only=True)
class SeedNotification:
    seed: str
    seed_used: bool

    def fully_formatted(self) -> str:
        return f"Randomized with seed {self.seed}"
