"""Pytest configuration and shared fixtures."""
import pytest

from driftpatch import ArtifactCache, Finalizer, PatchOrchestrator, reset_config
from hosts import FakeScheduler


@pytest.fixture(autouse=True)
def restore_config():
    """Restore built-in configuration after each test."""
    yield
    reset_config()


@pytest.fixture
def cache():
    return ArtifactCache()


@pytest.fixture
def orchestrator(cache):
    return PatchOrchestrator(cache=cache)


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def finalizer(orchestrator, fake_scheduler):
    return Finalizer(orchestrator, fake_scheduler)
