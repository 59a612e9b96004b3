"""Shared fixtures."""

import pytest

from llmkit.core.config import Settings
from llmkit.core.registry import reset_registry
from llmkit.types import CredentialContext


@pytest.fixture(autouse=True)
def _fresh_registry():
    """Each test starts without a process-wide registry."""
    reset_registry()
    yield
    reset_registry()


@pytest.fixture
def settings():
    """Settings with fast retries and no .env influence."""
    return Settings(_env_file=None, retry_delay=0.01, max_retries=2)


@pytest.fixture
def empty_context():
    return CredentialContext()
