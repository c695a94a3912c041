"""Mutable aggregate state of one run."""

import time
from dataclasses import dataclass, field

from turbo_pytest.models.notifications import Example


@dataclass(kw_only=True)
class RunState:
    """Results gathered from all workers.

    Created once by the runner and mutated only by the reporter. Examples are
    append-only; the failed and pending lists are fixed by the status an
    example had when it was recorded.
    """

    start_time: float = field(default_factory=time.monotonic)
    end_time: float | None = None
    load_time: float = 0.0
    examples: list[Example] = field(default_factory=list)
    failed_examples: list[Example] = field(default_factory=list)
    pending_examples: list[Example] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    errors_outside_of_examples_count: int = 0
    _example_ids: set[str] = field(default_factory=set, repr=False)

    def has_example(self, example_id: str) -> bool:
        return example_id in self._example_ids

    def record(self, example: Example) -> None:
        """Append an example and file it under its status.

        Raises:
            ValueError: If an example with the same id was already recorded

        """
        if example.id in self._example_ids:
            raise ValueError(f"Example {example.id!r} recorded twice")
        self._example_ids.add(example.id)
        self.examples.append(example)
        if example.status == "failed":
            self.failed_examples.append(example)
        elif example.status == "pending":
            self.pending_examples.append(example)

    @property
    def duration(self) -> float:
        end = self.end_time if self.end_time is not None else time.monotonic()
        return end - self.start_time
