"""Starting workers for groups of test files."""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from turbo_pytest.models.options import RunOptions
from turbo_pytest.workers.channel import ProcessWorkerChannel, WorkerChannel
from turbo_pytest.workers.command import build_worker_command


class WorkerLauncher(ABC):
    @abstractmethod
    async def launch(
        self, worker_id: int, group_count: int, files: Sequence[str]
    ) -> WorkerChannel:
        """Start a worker over ``files`` and return its channel.

        Args:
            worker_id: Zero-based worker index
            group_count: Total number of groups in the run
            files: Test files assigned to this worker

        """


@dataclass(frozen=True, kw_only=True)
class ProcessWorkerLauncher(WorkerLauncher):
    """Launches one pytest subprocess per group."""

    options: RunOptions
    output_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    async def launch(
        self, worker_id: int, group_count: int, files: Sequence[str]
    ) -> WorkerChannel:
        command = build_worker_command(
            worker_id, group_count, files, self.options, self.output_id
        )
        return await ProcessWorkerChannel.spawn(worker_id, command, self.output_id)
