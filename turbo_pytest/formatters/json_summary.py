"""Machine-readable formatter that only renders the final summary."""

import json
from typing import Any, TextIO

from turbo_pytest.models.report import SummaryNotification


class JsonFormatter:
    def __init__(self, output: TextIO) -> None:
        self.output = output

    def dump_summary(self, notification: SummaryNotification) -> None:
        self.output.write(json.dumps(format_summary(notification), indent=2))
        self.output.write("\n")
        self.output.flush()


def format_summary(notification: SummaryNotification) -> dict[str, Any]:
    """Format the run summary for JSON output."""
    return {
        "examples": [
            example.model_dump(mode="json") for example in notification.examples
        ],
        "summary": {
            "duration": notification.duration,
            "load_time": notification.load_time,
            "example_count": notification.example_count,
            "failure_count": notification.failure_count,
            "pending_count": notification.pending_count,
            "errors_outside_of_examples_count": (
                notification.errors_outside_of_examples_count
            ),
        },
        "summary_line": notification.totals_line(),
    }
