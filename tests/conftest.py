import pytest
from hypothesis import settings

from fakes import FakeExecutor

# Prevent Hypothesis from writing a local example database (e.g. `.hypothesis/`) during tests.
settings.register_profile("p4scm-tests", database=None, deadline=None)
settings.load_profile("p4scm-tests")


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def isolated_cwd(monkeypatch, tmp_path):
    """Keep config discovery away from any p4scm.toml outside the test."""
    monkeypatch.delenv("P4SCM_CONFIG_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
