"""In-process worker channels for exercising the runner."""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from turbo_pytest.models.notifications import Notification
from turbo_pytest.workers.channel import (
    Mailbox,
    WorkerChannel,
    WorkerEvent,
    WorkerExit,
    WorkerOutput,
)
from turbo_pytest.workers.launcher import WorkerLauncher


@dataclass(kw_only=True)
class ScriptedWorkerChannel(WorkerChannel):
    """Replays scripted notifications, yielding to the loop between each.

    Scripted items are delivered even after a stop request, like events a
    real worker had already written before it saw the signal. ``yields``
    gives the number of loop turns to wait before each item (one by default),
    which lets tests vary how workers interleave.
    """

    worker_id: int
    notifications: Sequence[Notification | str] = ()
    yields: Sequence[int] = ()
    returncode: int = 0
    error: Exception | None = None
    stop_requested: bool = False
    killed: bool = False

    async def pump(self, mailbox: Mailbox) -> None:
        for index, item in enumerate(self.notifications):
            turns = self.yields[index] if index < len(self.yields) else 1
            for _ in range(turns):
                await asyncio.sleep(0)
            if isinstance(item, str):
                await mailbox.put(WorkerOutput(worker_id=self.worker_id, text=item))
            else:
                await mailbox.put(
                    WorkerEvent(worker_id=self.worker_id, notification=item)
                )
        if self.error is not None:
            raise self.error
        await mailbox.put(
            WorkerExit(worker_id=self.worker_id, returncode=self.returncode)
        )

    def request_stop(self) -> None:
        self.stop_requested = True

    def kill(self) -> None:
        self.killed = True


@dataclass(kw_only=True)
class ScriptedLauncher(WorkerLauncher):
    channels: Mapping[int, ScriptedWorkerChannel]
    launched: list[tuple[int, Sequence[str]]] = field(default_factory=list)

    async def launch(
        self, worker_id: int, group_count: int, files: Sequence[str]
    ) -> WorkerChannel:
        self.launched.append((worker_id, files))
        return self.channels[worker_id]
