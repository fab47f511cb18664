import importlib
import random
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from stream_rec.models import ContentItem, WatchHistoryEntry  # noqa: E402

NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fixed_clock():
    return lambda: NOW


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


@pytest.fixture
def make_item():
    def _make(content_id: int, **overrides) -> ContentItem:
        fields = {
            "id": content_id,
            "title": f"Content {content_id}",
            "category_id": 100 + content_id,  # unique unless overridden
            "release_year": 2020,
        }
        fields.update(overrides)
        return ContentItem(**fields)

    return _make


@pytest.fixture
def make_entry():
    def _make(content_id: int, completed: bool = True, pct: float = 100.0, watched_at: datetime = NOW):
        return WatchHistoryEntry(
            content_id=content_id,
            watched_at=watched_at,
            watch_time_percentage=pct,
            completed=completed,
        )

    return _make


@pytest.fixture
def fresh_config(monkeypatch):
    """
    Reload config after tests set environment overrides.
    """
    import stream_rec.config as config

    yield lambda: importlib.reload(config)
    monkeypatch.undo()
    importlib.reload(config)
