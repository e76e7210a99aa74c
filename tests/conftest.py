"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root and src directory to Python path so tests can import properly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

from tests.fixtures import create_memory, make_settings  # noqa: E402


@pytest.fixture
def settings():
    """Settings with groq and cohere configured."""
    return make_settings()


@pytest.fixture
def memory():
    """Conversation memory backed by a fresh in-memory store."""
    return create_memory()


@pytest.fixture
def no_sleep(monkeypatch):
    """Make retry backoff instant and record the requested delays."""
    delays = []
    monkeypatch.setattr("switchboard.retry.time.sleep", delays.append)
    return delays
