"""
Immutable scoring weights and their JSON loader.

The engine takes a single ScoringWeights record instead of reading module
globals, so callers (and tests) can vary weights per recommender. Weights
can be overridden from a JSON file; when no file is available the defaults
from config are used unchanged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from .config import DEFAULT_WEIGHTS, WEIGHTS_PATH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    """Multipliers for every additive term of the scoring model."""

    genre: float = DEFAULT_WEIGHTS['genre']
    category: float = DEFAULT_WEIGHTS['category']
    tag: float = DEFAULT_WEIGHTS['tag']
    content_type: float = DEFAULT_WEIGHTS['content_type']
    completion_bonus: float = DEFAULT_WEIGHTS['completion_bonus']
    recency: float = DEFAULT_WEIGHTS['recency']
    popularity: float = DEFAULT_WEIGHTS['popularity']
    premium: float = DEFAULT_WEIGHTS['premium']
    duration: float = DEFAULT_WEIGHTS['duration']
    duration_preference: float = DEFAULT_WEIGHTS['duration_preference']

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ValueError(f"Weight '{f.name}' must be non-negative, got {value}")

    def with_overrides(self, **overrides: float) -> "ScoringWeights":
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ScoringWeights":
        """Build weights from a dict, ignoring unknown keys and unparseable values."""
        known = {f.name for f in fields(cls)}
        values: dict[str, float] = {}
        for key, value in (payload or {}).items():
            if key not in known:
                logger.warning("Ignoring unknown weight '%s'", key)
                continue
            try:
                values[key] = float(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring weight '%s' (invalid number: %r)", key, value)
        return cls(**values)


def load_scoring_weights(path: str | Path | None = None) -> ScoringWeights:
    """Load weights from disk; fall back to defaults if missing or invalid."""
    weight_path = Path(path) if path else WEIGHTS_PATH
    if weight_path is None or not weight_path.exists():
        logger.debug("Weights file not found at %s; using defaults", weight_path)
        return ScoringWeights()

    try:
        payload = json.loads(weight_path.read_text())
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return ScoringWeights.from_dict(payload)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load weights from %s: %s", weight_path, exc)
        return ScoringWeights()


def save_scoring_weights(weights: ScoringWeights, path: str | Path) -> Path:
    weight_path = Path(path)
    weight_path.parent.mkdir(parents=True, exist_ok=True)
    weight_path.write_text(json.dumps(weights.to_dict(), indent=2))
    return weight_path
