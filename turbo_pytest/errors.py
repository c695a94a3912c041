"""Exceptions raised by the parallel runner."""


class TurboPytestError(Exception):
    """Base class for fatal runner errors."""


class ConfigurationError(TurboPytestError):
    """Raised for invalid configuration, always before any worker starts."""


class FormatterNotFoundError(ConfigurationError):
    """Raised when a formatter name cannot be resolved."""


class WorkerCommunicationError(TurboPytestError):
    """Raised when a worker channel breaks or violates the event protocol."""

    def __init__(self, worker_id: int, reason: str) -> None:
        super().__init__(f"Worker {worker_id}: {reason}")
        self.worker_id = worker_id
        self.reason = reason
