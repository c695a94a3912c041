"""Fixtures for integration tests running real pytest worker processes."""

import pytest

from turbo_pytest.workers.command import OUTPUT_ID_ENV, RUNTIME_LOG_ENV, SEED_ENV

OUTPUT_ID = "5c0ffee5"


@pytest.fixture
def output_id(monkeypatch: pytest.MonkeyPatch) -> str:
    """Environment of a worker launched by the coordinator."""
    monkeypatch.setenv(OUTPUT_ID_ENV, OUTPUT_ID)
    monkeypatch.delenv(SEED_ENV, raising=False)
    monkeypatch.delenv(RUNTIME_LOG_ENV, raising=False)
    return OUTPUT_ID


@pytest.fixture
def sample_suite(pytester: pytest.Pytester) -> pytest.Pytester:
    """Create a suite covering every example outcome."""
    pytester.makepyfile(
        test_sample="""
        import pytest

        @pytest.fixture
        def database():
            raise RuntimeError("no db")

        def test_pass():
            pass

        def test_fail():
            assert 1 == 2

        @pytest.mark.skip(reason="later")
        def test_skip():
            pass

        @pytest.mark.xfail(reason="known bug")
        def test_xfail():
            assert False

        def test_setup_error(database):
            pass
        """
    )
    return pytester
