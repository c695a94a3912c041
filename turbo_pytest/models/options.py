"""Run configuration assembled by the CLI."""

from collections.abc import Sequence
from pathlib import Path
from typing import Literal

from pydantic import Field

from turbo_pytest.models.base import Model

GroupBy = Literal["found", "steps", "scenarios", "filesize", "runtime", "default"]

# Output target meaning "the primary output stream".
DEFAULT_OUTPUT = "-"
DEFAULT_FORMATTER = "progress"
DEFAULT_FILES = ("tests",)


class FormatterSpec(Model):
    """A formatter kind bound to its output targets."""

    name: str = Field(..., description="Formatter name or alias")
    outputs: Sequence[str] = Field(
        default=(DEFAULT_OUTPUT,), description="Filenames, or '-' for stdout"
    )


class RunOptions(Model):
    """Everything the runner needs to execute one parallel run."""

    formatters: Sequence[FormatterSpec] = Field(
        default=(FormatterSpec(name=DEFAULT_FORMATTER),)
    )
    files: Sequence[str] = Field(default=DEFAULT_FILES)
    tags: Sequence[str] = ()
    requires: Sequence[str] = ()
    count: int | None = Field(default=None, ge=1, description="Worker count")
    runtime_log: Path | None = None
    verbose: bool = False
    fail_fast: int | None = Field(default=None, ge=1)
    seed: str | None = None
    pattern: str | None = None
    exclude_pattern: str | None = None
    group_by: GroupBy = "default"
