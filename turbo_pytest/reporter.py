"""Aggregation of worker notifications into one report stream."""

import logging
import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TextIO

from turbo_pytest.errors import ConfigurationError
from turbo_pytest.formatters.base import (
    FINISH_SEQUENCE,
    Capability,
    detect_capabilities,
)
from turbo_pytest.formatters.registry import FormatterRegistry
from turbo_pytest.models.notifications import (
    ErrorOutsideOfExamples,
    Example,
    ExampleFailed,
    ExamplePassed,
    ExamplePending,
    GroupFinished,
    GroupStarted,
    LoadSummary,
    Message,
)
from turbo_pytest.models.options import DEFAULT_OUTPUT, FormatterSpec
from turbo_pytest.models.report import (
    ExamplesNotification,
    SeedNotification,
    SummaryNotification,
)
from turbo_pytest.models.state import RunState

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class FormatterRegistration:
    """One formatter instance bound to the output it exclusively owns."""

    name: str
    formatter: object
    output: TextIO
    owns_output: bool
    capabilities: frozenset[Capability]


@dataclass(kw_only=True)
class Reporter:
    """Sole consumer of worker notifications.

    Every handler mutates :class:`RunState` first and then forwards the
    notification to each registered formatter that implements the matching
    capability, in registration order. Exceptions raised by formatters are
    not caught.
    """

    state: RunState
    registry: FormatterRegistry
    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    fail_fast: int | None = None
    registrations: list[FormatterRegistration] = field(default_factory=list)
    _closed: bool = field(default=False, repr=False)

    @classmethod
    def from_config(
        cls,
        formatter_specs: Sequence[FormatterSpec],
        *,
        state: RunState,
        registry: FormatterRegistry,
        stdout: TextIO | None = None,
        fail_fast: int | None = None,
    ) -> "Reporter":
        """Build a reporter with every configured formatter registered.

        All formatter names are resolved before any output file is opened.

        Raises:
            FormatterNotFoundError: If a formatter name cannot be resolved

        """
        for spec in formatter_specs:
            registry.resolve(spec.name)

        reporter = cls(
            state=state,
            registry=registry,
            stdout=stdout or sys.stdout,
            fail_fast=fail_fast,
        )
        try:
            for spec in formatter_specs:
                reporter.register(spec)
        except Exception:
            reporter.abort()
            raise
        return reporter

    def register(self, spec: FormatterSpec) -> None:
        """Bind a formatter kind to each of its outputs.

        Raises:
            FormatterNotFoundError: If the formatter name cannot be resolved

        """
        factory = self.registry.resolve(spec.name)
        for target in spec.outputs:
            if target == DEFAULT_OUTPUT:
                output, owns_output = self.stdout, False
            else:
                output, owns_output = _open_output(target), True

            formatter = factory(output)
            self.registrations.append(
                FormatterRegistration(
                    name=spec.name,
                    formatter=formatter,
                    output=output,
                    owns_output=owns_output,
                    capabilities=detect_capabilities(formatter),
                )
            )
            log.debug("Registered %s formatter writing to %s", spec.name, target)

    @property
    def examples(self) -> Sequence[Example]:
        return self.state.examples

    @property
    def fail_fast_reached(self) -> bool:
        """Whether the failure count reached the fail-fast threshold.

        Never resets once true since failures are append-only.
        """
        if self.fail_fast is None:
            return False
        return len(self.state.failed_examples) >= self.fail_fast

    def group_started(self, notification: GroupStarted) -> None:
        self._delegate(Capability.GROUP_STARTED, notification)

    def group_finished(self, notification: GroupFinished) -> None:
        self._delegate(Capability.GROUP_FINISHED, notification)

    def example_passed(self, notification: ExamplePassed) -> None:
        self.state.record(notification.example)
        self._delegate(Capability.EXAMPLE_PASSED, notification)

    def example_pending(self, notification: ExamplePending) -> None:
        self.state.record(notification.example)
        self._delegate(Capability.EXAMPLE_PENDING, notification)

    def example_failed(self, notification: ExampleFailed) -> None:
        self.state.record(notification.example)
        self._delegate(Capability.EXAMPLE_FAILED, notification)

    def message(self, notification: Message) -> None:
        self.state.messages.append(notification.message)
        self._delegate(Capability.MESSAGE, notification)

    def error_outside_of_examples(self, notification: ErrorOutsideOfExamples) -> None:
        self.state.errors_outside_of_examples_count += 1

    def load_summary(self, notification: LoadSummary) -> None:
        # Workers load concurrently; the slowest one is what the user waited on.
        self.state.load_time = max(self.state.load_time, notification.load_time)

    def finish(self) -> SummaryNotification:
        """Run the finish sequence on every formatter and close owned outputs."""
        self.state.end_time = time.monotonic()

        examples = ExamplesNotification(
            examples=tuple(self.state.examples),
            failed_examples=tuple(self.state.failed_examples),
            pending_examples=tuple(self.state.pending_examples),
        )
        summary = SummaryNotification(
            duration=self.state.duration,
            examples=examples.examples,
            failed_examples=examples.failed_examples,
            pending_examples=examples.pending_examples,
            load_time=self.state.load_time,
            errors_outside_of_examples_count=(
                self.state.errors_outside_of_examples_count
            ),
        )
        payloads: dict[Capability, tuple[object, ...]] = {
            Capability.STOP: (examples,),
            Capability.START_DUMP: (),
            Capability.DUMP_PENDING: (examples,),
            Capability.DUMP_FAILURES: (examples,),
            Capability.DUMP_SUMMARY: (summary,),
            Capability.CLOSE: (),
        }
        for capability in FINISH_SEQUENCE:
            self._delegate(capability, *payloads[capability])

        self._close_outputs()
        return summary

    def emit_seed_notice(self, seed: str, seed_used: bool) -> None:
        """Write the seed notice once to the primary output."""
        if not seed_used:
            return
        notification = SeedNotification(seed=seed, seed_used=seed_used)
        self.stdout.write(f"\n{notification.fully_formatted()}\n\n")
        self.stdout.flush()

    def abort(self) -> None:
        """Close owned outputs after a fatal error, ignoring close failures."""
        for registration in self.registrations:
            if registration.owns_output and not registration.output.closed:
                try:
                    registration.output.close()
                except OSError as exc:
                    log.warning("Failed to close %s output: %s", registration.name, exc)
        self._closed = True

    def _close_outputs(self) -> None:
        if self._closed:
            return
        self._closed = True
        for registration in self.registrations:
            if registration.owns_output:
                registration.output.close()

    def _delegate(self, capability: Capability, *args: object) -> None:
        for registration in self.registrations:
            if capability in registration.capabilities:
                getattr(registration.formatter, capability.value)(*args)


def _open_output(filename: str) -> TextIO:
    try:
        return open(filename, "w", encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot open output file {filename}: {exc}") from exc
