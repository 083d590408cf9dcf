"""Pytest fixtures and configuration for phrasespam tests.

Provides common fixtures for configuration, database, and retry stubs.
"""

import asyncio
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from phrasespam.config import CONFIG_PATH_ENV, reset_config
from phrasespam.config_schema import AppConfig
from phrasespam.core.retry import RetryPolicy
from phrasespam.db.store import StatStore


class RecordingSleep:
    """Awaitable sleep stub that records requested delays and only yields to the loop."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset the config singleton before each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_yaml() -> str:
    """Return a minimal valid config.yaml content."""
    return """
schema_version: 1

database:
  path: "data/test.db"

extraction:
  max_phrase_length: 3

scoring:
  max_significant: 15

retry:
  max_attempts: 3
  interval_seconds: 0

export:
  page_size: 100
  initial_interval: 0.01
  min_interval: 0.001
"""


@pytest.fixture
def sample_config_dict() -> dict[str, Any]:
    """Return a minimal valid config as a dictionary."""
    return {
        "schema_version": 1,
        "database": {"path": "data/test.db"},
        "extraction": {"max_phrase_length": 3},
        "scoring": {"max_significant": 15},
        "retry": {"max_attempts": 3, "interval_seconds": 0},
        "export": {"page_size": 100, "initial_interval": 0.01, "min_interval": 0.001},
    }


@pytest.fixture
def sample_config(sample_config_dict: dict[str, Any]) -> AppConfig:
    """Return a minimal valid AppConfig instance."""
    return AppConfig(**sample_config_dict)


@pytest.fixture
def config_file(temp_config_dir: Path, sample_config_yaml: str) -> Path:
    """Create a temporary config file with valid content."""
    config_path = temp_config_dir / "config.yaml"
    config_path.write_text(sample_config_yaml)
    return config_path


@pytest.fixture
def set_config_env(config_file: Path) -> Generator[None, None, None]:
    """Set the PHRASESPAM_CONFIG_PATH environment variable."""
    old_value = os.environ.get(CONFIG_PATH_ENV)
    os.environ[CONFIG_PATH_ENV] = str(config_file)
    yield
    if old_value is None:
        del os.environ[CONFIG_PATH_ENV]
    else:
        os.environ[CONFIG_PATH_ENV] = old_value


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Create a temporary data directory."""
    data = tmp_path / "data"
    data.mkdir()
    return data


@pytest.fixture
def db_path(data_dir: Path) -> Path:
    """Return a test database path."""
    return data_dir / "test.db"


@pytest.fixture
def fast_sleep() -> RecordingSleep:
    """Return a sleep stub so retries and polling never wait."""
    return RecordingSleep()


@pytest.fixture
def fast_retry(fast_sleep: RecordingSleep) -> RetryPolicy:
    """Return a retry policy with few attempts and no real waiting."""
    return RetryPolicy(max_attempts=3, interval=0.0, sleep=fast_sleep)


@pytest.fixture
async def store(db_path: Path, fast_retry: RetryPolicy) -> StatStore:
    """Create and initialize a StatStore."""
    store = StatStore(db_path, retry=fast_retry)
    await store.initialize()
    return store
