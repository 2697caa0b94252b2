"""
Shared fixtures for ntfy-watcher tests.

Provides common test fixtures for use across all test modules.
"""

import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from ntfy_watcher.rss_parser import FeedItem


# Path to test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_feed_path(fixtures_dir: Path) -> Path:
    """Return path to sample feed file."""
    return fixtures_dir / "sample_feed.xml"


@pytest.fixture
def sample_feed_content(sample_feed_path: Path) -> str:
    """Return contents of sample feed."""
    return sample_feed_path.read_text()


@pytest.fixture
def sample_config_path(fixtures_dir: Path) -> Path:
    """Return path to sample config file."""
    return fixtures_dir / "sample_config.yml"


@pytest.fixture
def config_file(tmp_path: Path, sample_config_path: Path) -> Path:
    """
    Copy the sample config into a writable temporary directory.

    Returns
    -------
    Path
        Path to a config file tests may rewrite.
    """
    path = tmp_path / "config.yml"
    shutil.copy(sample_config_path, path)
    return path


@pytest.fixture
def minimal_config_dict() -> dict[str, Any]:
    """
    Create a minimal valid configuration dictionary.

    Returns
    -------
    dict
        Configuration dictionary with a single destination.
    """
    return {
        "servers": {
            "main": {
                "token": "secret",
                "ntfy_server": "https://ntfy.example.com/topic",
            },
        },
        "last_seen_id": "1",
        "feed_url": "https://example.com/feed.xml",
        "refresh_interval": "5m",
    }


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[Any], Path]:
    """
    Return a helper writing a YAML config file into ``tmp_path``.

    Strings are written verbatim, anything else is dumped as YAML.
    """

    def _write(content: Any) -> Path:
        path = tmp_path / "config.yml"
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(content, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_feed_item() -> FeedItem:
    """Create a sample feed item."""
    return FeedItem(id="43", subject="S", body="B", link="L")


@pytest.fixture
def mock_parser() -> MagicMock:
    """
    Create a mock feed parser.

    Returns
    -------
    MagicMock
        A parser whose ``fetch_feed`` returns no items by default.
    """
    parser = MagicMock()
    parser.fetch_feed = AsyncMock(return_value=[])
    parser.close = AsyncMock()
    return parser


@pytest.fixture
def mock_notifier() -> MagicMock:
    """
    Create a mock notifier.

    Returns
    -------
    MagicMock
        A notifier whose ``send`` succeeds by default.
    """
    notifier = MagicMock()
    notifier.send = AsyncMock(return_value=None)
    notifier.close = AsyncMock()
    return notifier


@pytest.fixture
def mock_store() -> MagicMock:
    """Create a mock config store."""
    store = MagicMock()
    store.persist_last_seen_id = MagicMock()
    return store
