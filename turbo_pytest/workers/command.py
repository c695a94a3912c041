"""Command line and environment of a pytest worker process."""

import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from turbo_pytest.models.options import RunOptions

OUTPUT_ID_ENV = "TURBO_PYTEST_OUTPUT_ID"
SEED_ENV = "TURBO_PYTEST_SEED"
RUNTIME_LOG_ENV = "TURBO_PYTEST_RUNTIME_LOG"
WORKER_PLUGIN = "turbo_pytest.worker_plugin"


@dataclass(frozen=True, kw_only=True)
class WorkerCommand:
    argv: Sequence[str]
    env: Mapping[str, str]


def tag_expression(tags: Sequence[str]) -> str | None:
    """Translate tags into a pytest ``-m`` expression.

    Plain tags are alternatives, ``~tag`` excludes a marker::

        ["slow", "db", "~flaky"] -> "(slow or db) and not flaky"
    """
    included = [tag for tag in tags if not tag.startswith("~")]
    excluded = [f"not {tag[1:]}" for tag in tags if tag.startswith("~")]

    parts: list[str] = []
    if included:
        parts.append(
            f"({' or '.join(included)})" if len(included) > 1 else included[0]
        )
    parts.extend(excluded)
    return " and ".join(parts) if parts else None


def build_worker_command(
    worker_id: int,
    group_count: int,
    files: Sequence[str],
    options: RunOptions,
    output_id: str,
) -> WorkerCommand:
    """Build the pytest invocation for one worker.

    Workers are numbered from 1 in ``TEST_ENV_NUMBER`` so suites can derive
    per-worker resources such as database names from it.
    """
    argv = [sys.executable, "-m", "pytest", "-p", WORKER_PLUGIN, "-q"]
    if (expression := tag_expression(options.tags)) is not None:
        argv.extend(["-m", expression])
    argv.extend(files)

    env = dict(os.environ)
    env.update(
        {
            "TEST_ENV_NUMBER": str(worker_id + 1),
            "PARALLEL_TEST_GROUPS": str(group_count),
            OUTPUT_ID_ENV: output_id,
        }
    )
    if options.seed is not None:
        env[SEED_ENV] = options.seed
    if options.runtime_log is not None:
        env[RUNTIME_LOG_ENV] = str(options.runtime_log)

    return WorkerCommand(argv=argv, env=env)
