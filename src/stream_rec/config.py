"""
Configuration constants for the streaming recommender.

This module centralizes all magic numbers and configurable parameters.
Values can be overridden via environment variables or configuration files.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


# Platform API
API_BASE_URL = os.environ.get("STREAM_REC_API_URL", "http://localhost:5000").rstrip("/")
API_TOKEN = os.environ.get("STREAM_REC_API_TOKEN") or None
HTTP_TIMEOUT = _get_float_env("STREAM_REC_HTTP_TIMEOUT", 30.0, min_val=1.0)
MAX_HTTP_RETRIES = _get_int_env("STREAM_REC_MAX_RETRIES", 3, min_val=1)
RETRY_INITIAL_DELAY = 1.0
RETRY_BACKOFF_FACTOR = 2.0

# Optional JSON file with weight overrides
_weights_env = os.environ.get("STREAM_REC_WEIGHTS")
WEIGHTS_PATH = Path(_weights_env) if _weights_env else None

# Result limits
DEFAULT_LIMIT = _get_int_env("STREAM_REC_DEFAULT_LIMIT", 10, min_val=1)
DEFAULT_SIMILAR_LIMIT = _get_int_env("STREAM_REC_SIMILAR_LIMIT", 5, min_val=1)

# Scoring weights
DEFAULT_WEIGHTS = {
    'genre': 3.0,
    'category': 2.5,
    'tag': 2.0,
    'content_type': 1.5,
    'completion_bonus': 2.0,
    'recency': 1.5,
    'popularity': 1.0,
    'premium': 0.8,
    'duration': 0.5,             # Duration proximity between two items
    'duration_preference': 0.5,  # Candidate in the viewer's preferred bucket
}

# Duration proximity (seconds)
DURATION_CLOSE_SECONDS = 600
DURATION_NEAR_SECONDS = 1200

# Duration buckets (seconds)
SHORT_MAX_SECONDS = 900      # < 15 minutes
MEDIUM_MAX_SECONDS = 3600    # < 1 hour

# Watch weighting
COMPLETED_WATCH_WEIGHT = 2.0   # Profile weight of a completed watch
PARTIAL_WATCH_FACTOR = 0.8     # Collaborative scale for unfinished watches
RECENCY_DECAY_RATE = 0.1       # Per day

# Profile configuration
MAX_FAVORITE_TAGS = 10

# Ratings at or above this pull similar content up
MIN_POSITIVE_RATING = 4
MIN_RATING = 1
MAX_RATING = 5

# Progress at which a history row without a completed flag counts as finished
COMPLETED_PROGRESS = 95
