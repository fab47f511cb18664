"""
HTTP client for the streaming platform's REST backend.

Fetches the inputs the recommender needs (catalog, watch history, ratings,
watchlist) and converts them into model objects. This is the only I/O in
the package; the engine itself never calls it.
"""
import logging
from typing import Any

import httpx

from .config import (
    API_BASE_URL,
    API_TOKEN,
    HTTP_TIMEOUT,
    MAX_HTTP_RETRIES,
    RETRY_INITIAL_DELAY,
    RETRY_BACKOFF_FACTOR,
)
from .models import (
    ContentItem,
    InvalidArgument,
    WatchHistoryEntry,
    content_item_from_dict,
    ratings_from_rows,
    watch_entry_from_dict,
)
from .utils import retry_with_backoff

logger = logging.getLogger(__name__)

CONTENTS_PATH = "/api/contents"
WATCH_HISTORY_PATH = "/api/user/watch-history"
RATINGS_PATH = "/api/user/ratings"
WATCHLIST_PATH = "/api/watchlist"


class PlatformAPIError(Exception):
    """Request to the platform API failed or returned an unusable payload."""


class TransientAPIError(PlatformAPIError):
    """Failure worth retrying (timeouts, 5xx)."""


class PlatformClient:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: str | None = API_TOKEN,
        timeout: float = HTTP_TIMEOUT,
        max_retries: int = MAX_HTTP_RETRIES,
        retry_delay: float = RETRY_INITIAL_DELAY,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {
            "Accept": "application/json",
            "User-Agent": "stream-rec/0.1",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.Client(
            base_url=base_url,
            headers=headers,
            follow_redirects=True,
            timeout=timeout,
            transport=transport,
        )
        self._get_json = retry_with_backoff(
            max_retries=max_retries,
            initial_delay=retry_delay,
            backoff_factor=RETRY_BACKOFF_FACTOR,
            exceptions=(TransientAPIError,),
        )(self._request_json)

    def __enter__(self) -> "PlatformClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def _request_json(self, path: str) -> Any:
        try:
            resp = self.client.get(path)
        except httpx.TimeoutException as e:
            raise TransientAPIError(f"Timeout on {path}: {e}") from e
        except httpx.HTTPError as e:
            raise PlatformAPIError(f"Request error on {path}: {e}") from e

        if resp.status_code >= 500:
            raise TransientAPIError(f"Server error {resp.status_code} on {path}")
        if resp.status_code in (401, 403):
            raise PlatformAPIError(f"Not authorized for {path} (HTTP {resp.status_code}); check the API token")
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PlatformAPIError(f"HTTP error on {path}: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise PlatformAPIError(f"Invalid JSON from {path}: {e}") from e

    def _get_list(self, path: str) -> list[dict]:
        payload = self._get_json(path)
        if not isinstance(payload, list):
            raise PlatformAPIError(f"Expected a JSON list from {path}, got {type(payload).__name__}")
        return payload

    def get_contents(self) -> list[ContentItem]:
        """Full catalog, in the order the platform serves it. Malformed rows are skipped."""
        items = []
        for row in self._get_list(CONTENTS_PATH):
            try:
                items.append(content_item_from_dict(row))
            except (InvalidArgument, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed content row: {e}")
        logger.debug(f"Fetched {len(items)} catalog items")
        return items

    def get_watch_history(self) -> list[WatchHistoryEntry]:
        entries = []
        for row in self._get_list(WATCH_HISTORY_PATH):
            try:
                entries.append(watch_entry_from_dict(row))
            except (InvalidArgument, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed watch history row: {e}")
        logger.debug(f"Fetched {len(entries)} watch history entries")
        return entries

    def get_ratings(self) -> dict[int, int]:
        return ratings_from_rows(self._get_list(RATINGS_PATH))

    def get_watchlist(self) -> set[int]:
        """Content ids on the viewer's watchlist (rows may embed the content item)."""
        ids: set[int] = set()
        for row in self._get_list(WATCHLIST_PATH):
            content_id = row.get("contentId", row.get("content_id"))
            if content_id is None and isinstance(row.get("content"), dict):
                content_id = row["content"].get("id")
            if content_id is None:
                logger.warning(f"Skipping watchlist row without content id: {row!r}")
                continue
            ids.add(int(content_id))
        return ids
