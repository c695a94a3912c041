"""End-to-end runs across real worker processes."""

import io
import json
import subprocess
import sys

import pytest

from turbo_pytest.models.options import FormatterSpec, RunOptions
from turbo_pytest.runner import run_suite


@pytest.fixture
def parallel_suite(pytester: pytest.Pytester) -> pytest.Pytester:
    """Three test files, one failing, each recording its worker number."""
    pytester.makepyfile(
        test_accounts="""
        import os

        def test_worker_number():
            assert os.environ["TEST_ENV_NUMBER"] in {"1", "2"}
            assert os.environ["PARALLEL_TEST_GROUPS"] == "2"

        def test_deposit():
            assert 1 + 1 == 2
        """,
        test_billing="""
        def test_invoice_total():
            assert sum([1, 2]) == 4
        """,
        test_catalog="""
        import pytest

        @pytest.mark.skip(reason="catalog service offline")
        def test_search():
            pass

        def test_listing():
            pass
        """,
    )
    return pytester


async def test_run_suite_merges_worker_results(
    parallel_suite: pytest.Pytester,
) -> None:
    stdout = io.StringIO()
    json_path = parallel_suite.path / "results.json"
    options = RunOptions(
        formatters=[
            FormatterSpec(name="progress"),
            FormatterSpec(name="json", outputs=(str(json_path),)),
        ],
        files=["."],
        count=2,
        group_by="found",
    )

    success = await run_suite(options, stdout)

    assert success is False
    output = stdout.getvalue()
    assert "5 examples, 1 failure, 1 pending" in output
    assert "pytest test_billing.py::test_invoice_total" in output
    assert "# catalog service offline" in output

    results = json.loads(json_path.read_text())
    assert results["summary"]["example_count"] == 5
    assert results["summary"]["failure_count"] == 1
    ids = {example["id"] for example in results["examples"]}
    assert "test_accounts.py::test_worker_number" in ids


async def test_run_suite_passing(pytester: pytest.Pytester) -> None:
    pytester.makepyfile(test_ok="def test_ok(): pass\n")
    stdout = io.StringIO()

    success = await run_suite(RunOptions(files=["."], count=2), stdout)

    assert success is True
    assert "1 example, 0 failures" in stdout.getvalue()


def test_cli_exit_status(parallel_suite: pytest.Pytester) -> None:
    """The command line tool exits 1 for failures and 0 for a clean run."""
    failing = subprocess.run(
        [sys.executable, "-m", "turbo_pytest.cli", "-n", "2", "-f", "d", "."],
        cwd=parallel_suite.path,
        capture_output=True,
        text=True,
        check=False,
    )

    assert failing.returncode == 1
    assert "test_invoice_total (FAILED - 1)" in failing.stdout
    assert "test_listing" in failing.stdout

    passing = subprocess.run(
        [sys.executable, "-m", "turbo_pytest.cli", "test_catalog.py"],
        cwd=parallel_suite.path,
        capture_output=True,
        text=True,
        check=False,
    )

    assert passing.returncode == 0
    assert "2 examples, 0 failures, 1 pending" in passing.stdout


def test_cli_unknown_formatter(parallel_suite: pytest.Pytester) -> None:
    result = subprocess.run(
        [sys.executable, "-m", "turbo_pytest.cli", "-f", "teamcity", "."],
        cwd=parallel_suite.path,
        capture_output=True,
        text=True,
        check=False,
    )

    assert result.returncode == 2
    assert "Formatter 'teamcity' not found" in result.stderr
