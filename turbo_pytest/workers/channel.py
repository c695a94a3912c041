"""Per-worker event channels feeding one shared mailbox."""

import asyncio
import logging
import signal
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pydantic import ValidationError

from turbo_pytest.errors import WorkerCommunicationError
from turbo_pytest.models.notifications import Notification, parse_notification
from turbo_pytest.workers.command import WorkerCommand

log = logging.getLogger(__name__)

# Failure tracebacks can make single event lines large.
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass(frozen=True, kw_only=True)
class WorkerEvent:
    worker_id: int
    notification: Notification


@dataclass(frozen=True, kw_only=True)
class WorkerOutput:
    """Plain text a worker printed outside the event protocol."""

    worker_id: int
    text: str


@dataclass(frozen=True, kw_only=True)
class WorkerExit:
    worker_id: int
    returncode: int


@dataclass(frozen=True, kw_only=True)
class WorkerFailure:
    """A channel broke; raised by the consumer once it reaches this item."""

    worker_id: int
    error: BaseException


@dataclass(frozen=True, kw_only=True)
class LaunchComplete:
    """Every worker that will run has been launched."""


ChannelItem = WorkerEvent | WorkerOutput | WorkerExit | WorkerFailure | LaunchComplete

Mailbox = asyncio.Queue[ChannelItem]


def split_line(line: str, output_id: str) -> tuple[str, str | None]:
    """Split a worker stdout line into plain output and an event payload.

    Returns:
        Text preceding the output id, and the JSON payload following it
        (None when the line carries no event)

    """
    output, sep, payload = line.partition(output_id)
    if not sep:
        return line, None
    return output, payload.strip()


class WorkerChannel(ABC):
    """Ordered event stream of one worker.

    ``pump`` forwards every item in the order the worker produced it and
    ends with exactly one :class:`WorkerExit`.
    """

    worker_id: int

    @abstractmethod
    async def pump(self, mailbox: Mailbox) -> None:
        """Forward the worker's events into the mailbox until it exits."""

    @abstractmethod
    def request_stop(self) -> None:
        """Ask the worker to stop cooperatively."""

    @abstractmethod
    def kill(self) -> None:
        """Terminate the worker immediately."""


@dataclass(kw_only=True)
class ProcessWorkerChannel(WorkerChannel):
    """Channel reading events from a pytest subprocess' stdout."""

    worker_id: int
    process: asyncio.subprocess.Process
    output_id: str

    @classmethod
    async def spawn(
        cls, worker_id: int, command: WorkerCommand, output_id: str
    ) -> "ProcessWorkerChannel":
        """Start the worker process; stderr is inherited."""
        process = await asyncio.create_subprocess_exec(
            *command.argv,
            env=dict(command.env),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
        )
        log.info("Started worker %d (pid %d)", worker_id, process.pid)
        return cls(worker_id=worker_id, process=process, output_id=output_id)

    async def pump(self, mailbox: Mailbox) -> None:
        if self.process.stdout is None:
            raise WorkerCommunicationError(self.worker_id, "stdout is not a pipe")

        while True:
            try:
                raw = await self.process.stdout.readline()
            except ValueError as exc:
                raise WorkerCommunicationError(
                    self.worker_id, f"unreadable output line: {exc}"
                ) from exc
            if not raw:
                break

            output, payload = split_line(
                raw.decode("utf-8", errors="replace"), self.output_id
            )
            if output.strip():
                await mailbox.put(WorkerOutput(worker_id=self.worker_id, text=output))
            if payload is None:
                continue

            try:
                notification = parse_notification(payload)
            except ValidationError as exc:
                raise WorkerCommunicationError(
                    self.worker_id, f"malformed notification: {exc}"
                ) from exc
            await mailbox.put(
                WorkerEvent(worker_id=self.worker_id, notification=notification)
            )

        returncode = await self.process.wait()
        log.info("Worker %d exited with status %d", self.worker_id, returncode)
        await mailbox.put(WorkerExit(worker_id=self.worker_id, returncode=returncode))

    def request_stop(self) -> None:
        if self.process.returncode is not None:
            return
        log.debug("Interrupting worker %d", self.worker_id)
        if sys.platform == "win32":
            self.process.terminate()
        else:
            self.process.send_signal(signal.SIGINT)

    def kill(self) -> None:
        if self.process.returncode is None:
            self.process.kill()
