"""Wire models for notifications streamed from worker processes.

Every line a worker emits carries exactly one notification, tagged by its
``type`` field. The finish sequence (stop, dumps, close) is produced by the
reporter itself and never travels on the wire.
"""

from typing import Annotated, ClassVar, Literal

from pydantic import Field, TypeAdapter, model_validator

from turbo_pytest.models.base import Model

ExampleStatus = Literal["passed", "failed", "pending"]


class FailureDetail(Model):
    """Exception raised by a failing example."""

    class_name: str = Field(..., description="Exception type name")
    message: str = Field(default="", description="Short exception message")
    backtrace: str = Field(default="", description="Full rendered traceback")


class Example(Model):
    """Outcome of a single test case."""

    id: str = Field(..., description="pytest node id, unique across the run")
    description: str = Field(..., description="Test name without its parents")
    full_description: str = Field(..., description="Test name with its parents")
    location: str = Field(..., description="Rerunnable location (path:line)")
    file_path: str
    line_number: int | None = None
    status: ExampleStatus
    duration: float = 0.0
    exception: FailureDetail | None = None
    pending_message: str | None = None


class Group(Model):
    """Example group; one per test module."""

    description: str
    file_path: str


class GroupStarted(Model):
    type: Literal["group_started"] = "group_started"
    group: Group


class GroupFinished(Model):
    type: Literal["group_finished"] = "group_finished"
    group: Group


class _ExampleOutcome(Model):
    """Outcome notification; the example status must match the tag."""

    expected_status: ClassVar[ExampleStatus]

    example: Example

    @model_validator(mode="after")
    def _check_status(self) -> "_ExampleOutcome":
        if self.example.status != self.expected_status:
            raise ValueError(
                f"example status {self.example.status!r} does not match "
                f"{self.expected_status!r} notification"
            )
        return self


class ExamplePassed(_ExampleOutcome):
    expected_status: ClassVar[ExampleStatus] = "passed"

    type: Literal["example_passed"] = "example_passed"


class ExamplePending(_ExampleOutcome):
    expected_status: ClassVar[ExampleStatus] = "pending"

    type: Literal["example_pending"] = "example_pending"


class ExampleFailed(_ExampleOutcome):
    expected_status: ClassVar[ExampleStatus] = "failed"

    type: Literal["example_failed"] = "example_failed"


class Message(Model):
    type: Literal["message"] = "message"
    message: str


class ErrorOutsideOfExamples(Model):
    """Failure with no test identity, e.g. a module that fails to import.

    Workers send the rendered error as a separate :class:`Message` first.
    """

    type: Literal["error_outside_of_examples"] = "error_outside_of_examples"


class LoadSummary(Model):
    """Sent by a worker once collection is done."""

    type: Literal["load_summary"] = "load_summary"
    count: int = Field(..., ge=0, description="Number of collected examples")
    load_time: float = Field(..., ge=0, description="Seconds spent collecting")


Notification = Annotated[
    GroupStarted
    | GroupFinished
    | ExamplePassed
    | ExamplePending
    | ExampleFailed
    | Message
    | ErrorOutsideOfExamples
    | LoadSummary,
    Field(discriminator="type"),
]

NOTIFICATION_ADAPTER: TypeAdapter[Notification] = TypeAdapter(Notification)


def parse_notification(raw: str | bytes) -> Notification:
    """Validate one JSON-encoded notification.

    Raises:
        pydantic.ValidationError: If the payload is malformed or unknown

    """
    return NOTIFICATION_ADAPTER.validate_json(raw)


def outcome_notification(
    example: Example,
) -> ExamplePassed | ExamplePending | ExampleFailed:
    """Wrap an example in the notification matching its status."""
    match example.status:
        case "passed":
            return ExamplePassed(example=example)
        case "pending":
            return ExamplePending(example=example)
        case "failed":
            return ExampleFailed(example=example)
