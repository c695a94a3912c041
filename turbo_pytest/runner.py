"""Parallel run coordination: launching workers and consuming their events."""

import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TextIO

from turbo_pytest.errors import ConfigurationError, WorkerCommunicationError
from turbo_pytest.formatters.registry import build_registry
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
    Notification,
)
from turbo_pytest.models.options import RunOptions
from turbo_pytest.models.state import RunState
from turbo_pytest.reporter import Reporter
from turbo_pytest.requires import load_requires
from turbo_pytest.workers.channel import (
    LaunchComplete,
    Mailbox,
    WorkerChannel,
    WorkerEvent,
    WorkerExit,
    WorkerFailure,
    WorkerOutput,
)
from turbo_pytest.workers.launcher import ProcessWorkerLauncher, WorkerLauncher
from turbo_pytest.workers.partition import discover_files, partition

log = logging.getLogger(__name__)

# pytest exit codes: ok, tests failed, interrupted (also used for collection
# errors), internal error, usage error (e.g. a broken conftest), no tests
# collected.
EXPECTED_EXIT_CODES = frozenset({0, 1, 2, 3, 4, 5})
SUCCESS_EXIT_CODES = frozenset({0, 5})
# Statuses meaning the worker failed outside of any example.
ERROR_EXIT_CODES = frozenset({3, 4})


@dataclass(kw_only=True)
class Runner:
    """Runs groups of files on workers and feeds one reporter.

    Items from all workers arrive in a single mailbox and are handled one at
    a time, so the reporter never sees two notifications concurrently. Order
    is preserved per worker only.
    """

    reporter: Reporter
    launcher: WorkerLauncher
    groups: Sequence[Sequence[str]]
    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    verbose: bool = False
    seed: str | None = None
    _mailbox: Mailbox = field(default_factory=asyncio.Queue, repr=False)
    _channels: dict[int, WorkerChannel] = field(default_factory=dict, repr=False)
    _running: set[int] = field(default_factory=set, repr=False)
    _tasks: list[asyncio.Task[None]] = field(default_factory=list, repr=False)
    _stopping: bool = field(default=False, repr=False)
    _worker_failed: bool = field(default=False, repr=False)
    _errored_workers: set[int] = field(default_factory=set, repr=False)

    async def run(self) -> bool:
        """Execute every group and return whether the run succeeded.

        Raises:
            WorkerCommunicationError: If a worker channel breaks

        """
        if self.seed is not None:
            self.reporter.emit_seed_notice(self.seed, seed_used=True)

        try:
            self._tasks.append(asyncio.create_task(self._launch_all()))
            await self._consume()
        except BaseException:
            log.error("Run aborted, stopping %d worker(s)", len(self._running))
            self._kill_workers()
            self.reporter.abort()
            raise
        finally:
            await self._cancel_tasks()

        try:
            summary = self.reporter.finish()
        except BaseException:
            log.error("Report could not be finished, closing outputs")
            self.reporter.abort()
            raise
        if self.seed is not None:
            self.reporter.emit_seed_notice(self.seed, seed_used=True)

        return summary.success and not self._worker_failed

    async def _launch_all(self) -> None:
        worker_id = -1
        try:
            for worker_id, files in enumerate(self.groups):
                if self.reporter.fail_fast_reached:
                    log.info(
                        "Fail-fast reached, not starting %d remaining worker(s)",
                        len(self.groups) - worker_id,
                    )
                    break
                channel = await self.launcher.launch(worker_id, len(self.groups), files)
                self._channels[worker_id] = channel
                self._running.add(worker_id)
                if self._stopping:
                    # Fail-fast was reached while this worker was starting.
                    channel.request_stop()
                self._tasks.append(asyncio.create_task(self._pump(channel)))
        except Exception as exc:
            await self._mailbox.put(WorkerFailure(worker_id=worker_id, error=exc))
        else:
            await self._mailbox.put(LaunchComplete())

    async def _pump(self, channel: WorkerChannel) -> None:
        try:
            await channel.pump(self._mailbox)
        except Exception as exc:
            await self._mailbox.put(
                WorkerFailure(worker_id=channel.worker_id, error=exc)
            )

    async def _consume(self) -> None:
        launching = True
        while launching or self._running:
            item = await self._mailbox.get()
            match item:
                case LaunchComplete():
                    launching = False
                case WorkerEvent(worker_id=worker_id, notification=notification):
                    self._dispatch(worker_id, notification)
                    if self.reporter.fail_fast_reached and not self._stopping:
                        self._request_stop()
                case WorkerOutput(text=text):
                    if self.verbose:
                        self.stdout.write(text)
                case WorkerExit(worker_id=worker_id, returncode=returncode):
                    self._running.discard(worker_id)
                    self._check_exit(worker_id, returncode)
                case WorkerFailure(error=error):
                    raise error

    def _dispatch(self, worker_id: int, notification: Notification) -> None:
        reporter = self.reporter
        match notification:
            case GroupStarted():
                reporter.group_started(notification)
            case GroupFinished():
                reporter.group_finished(notification)
            case ExamplePassed():
                self._check_unseen(worker_id, notification.example)
                reporter.example_passed(notification)
            case ExamplePending():
                self._check_unseen(worker_id, notification.example)
                reporter.example_pending(notification)
            case ExampleFailed():
                self._check_unseen(worker_id, notification.example)
                reporter.example_failed(notification)
            case Message():
                reporter.message(notification)
            case ErrorOutsideOfExamples():
                self._errored_workers.add(worker_id)
                reporter.error_outside_of_examples(notification)
            case LoadSummary():
                reporter.load_summary(notification)

    def _check_unseen(self, worker_id: int, example: Example) -> None:
        if self.reporter.state.has_example(example.id):
            raise WorkerCommunicationError(worker_id, f"duplicate example {example.id}")

    def _check_exit(self, worker_id: int, returncode: int) -> None:
        if returncode not in SUCCESS_EXIT_CODES:
            self._worker_failed = True
        if returncode in ERROR_EXIT_CODES and worker_id not in self._errored_workers:
            log.warning("Worker %d failed with status %d", worker_id, returncode)
            self._errored_workers.add(worker_id)
            self.reporter.error_outside_of_examples(ErrorOutsideOfExamples())
        # Interrupted workers may die from the signal itself.
        if self._stopping or returncode in EXPECTED_EXIT_CODES:
            return
        raise WorkerCommunicationError(
            worker_id, f"exited unexpectedly with status {returncode}"
        )

    def _request_stop(self) -> None:
        self._stopping = True
        log.info(
            "Fail-fast threshold reached, stopping %d running worker(s)",
            len(self._running),
        )
        for worker_id in self._running:
            self._channels[worker_id].request_stop()

    def _kill_workers(self) -> None:
        for worker_id in self._running:
            try:
                self._channels[worker_id].kill()
            except ProcessLookupError:
                log.debug("Worker %d already gone", worker_id)

    async def _cancel_tasks(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)


async def run_suite(options: RunOptions, stdout: TextIO | None = None) -> bool:
    """Run the suite described by ``options``; True when nothing failed.

    Configuration is fully validated, and every formatter output opened,
    before the first worker starts.

    Raises:
        ConfigurationError: For invalid configuration
        WorkerCommunicationError: If a worker channel breaks

    """
    state = RunState()
    stdout = stdout or sys.stdout
    load_requires(options.requires)
    registry = build_registry()

    files = discover_files(options.files, options.pattern, options.exclude_pattern)
    if not files:
        raise ConfigurationError(f"No test files found in {list(options.files)}")

    count = options.count or os.cpu_count() or 1
    groups = partition(files, count, options.group_by, options.runtime_log)
    log.info(
        "Running %d file(s) on %d worker(s): %s",
        len(files),
        len(groups),
        ", ".join(str(len(group)) for group in groups),
    )

    reporter = Reporter.from_config(
        options.formatters,
        state=state,
        registry=registry,
        stdout=stdout,
        fail_fast=options.fail_fast,
    )
    runner = Runner(
        reporter=reporter,
        launcher=ProcessWorkerLauncher(options=options),
        groups=groups,
        stdout=stdout,
        verbose=options.verbose,
        seed=options.seed,
    )
    return await runner.run()
