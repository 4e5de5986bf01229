"""
YouTube Data API v3 client (VideoMetadataClient).

Fetches current public statistics for tracked videos.

API details:
  Endpoint:   GET {YOUTUBE_BASE_URL}/videos
  Auth:       key=<YOUTUBE_API_KEY> query parameter
  Batching:   at most 50 ids per call (comma-separated `id` parameter)
  Missing:    unknown / deleted / private-to-us ids are silently omitted
              from `items` — they are NOT an error response

Behavior:
  - fetch_many chunks ids into groups of 50 and sleeps CHUNK_DELAY between
    consecutive chunk calls to stay clear of provider throttling
  - each call retries 429 / 5xx / network errors with linear backoff
  - a chunk that still fails marks every id in it ProviderUnavailable;
    the other chunks are unaffected (partial results, never an aggregate failure)
  - fetch_one raises VideoNotFound for an empty result
"""

import logging
import time
from datetime import datetime
from typing import Optional

import httpx

import config
from models.schemas import FetchResult, VideoStats
from services.errors import ProviderUnavailable, VideoNotFound

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MAX_IDS_PER_CALL = 50      # Provider limit per /videos request
MAX_RETRIES = 3            # Attempts per chunk for 429 / 5xx / network errors
CHUNK_DELAY = 0.1          # Seconds between consecutive chunk calls
RETRY_BACKOFF_BASE = 2.0   # Linear backoff (2s, 4s)
VIDEO_PARTS = "snippet,statistics,status"


class YouTubeClient:
    """
    Thin client over the /videos endpoint.

    `transport` lets tests plug in an httpx.MockTransport.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else config.YOUTUBE_API_KEY
        self.base_url = (base_url or config.YOUTUBE_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    # =======================================================================
    # Public API
    # =======================================================================

    def fetch_one(self, video_id: str) -> VideoStats:
        """
        Fetch statistics for a single video.

        Raises:
            VideoNotFound: provider returned no item for this id
            ProviderUnavailable: network / provider failure after retries
        """
        with self._client() as client:
            items = self._fetch_chunk(client, [video_id])

        stats = _index_items(items).get(video_id)
        if stats is None:
            raise VideoNotFound(video_id)
        return stats

    def fetch_many(self, video_ids: list[str]) -> FetchResult:
        """
        Fetch statistics for many videos, 50 per provider call.

        Returns:
            FetchResult with `stats` (found), `missing` (omitted by provider)
            and `errors` (chunk failed after retries).
        """
        result = FetchResult()
        unique_ids = list(dict.fromkeys(video_ids))
        if not unique_ids:
            return result

        chunks = [
            unique_ids[i:i + MAX_IDS_PER_CALL]
            for i in range(0, len(unique_ids), MAX_IDS_PER_CALL)
        ]
        logger.info(f"Fetching stats for {len(unique_ids)} videos in {len(chunks)} chunk(s)")

        with self._client() as client:
            for index, chunk in enumerate(chunks):
                if index > 0:
                    time.sleep(CHUNK_DELAY)

                try:
                    items = self._fetch_chunk(client, chunk)
                except ProviderUnavailable as e:
                    logger.warning(
                        f"Chunk {index + 1}/{len(chunks)} failed ({len(chunk)} ids): {e.message}"
                    )
                    for video_id in chunk:
                        result.errors[video_id] = e
                    continue

                found = _index_items(items)
                for video_id in chunk:
                    if video_id in found:
                        result.stats[video_id] = found[video_id]
                    else:
                        result.missing.append(video_id)

        logger.info(
            f"Fetch complete: {len(result.stats)} found, "
            f"{len(result.missing)} missing, {len(result.errors)} errored"
        )
        return result

    # =======================================================================
    # Single provider call with retry
    # =======================================================================

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def _fetch_chunk(self, client: httpx.Client, video_ids: list[str]) -> list[dict]:
        """
        One /videos call for up to 50 ids.

        Retries on:
          - 429 (rate limit) and 5xx: waits RETRY_BACKOFF_BASE * attempt seconds
          - network errors and timeouts: same backoff
        Any other status, or exhausted retries, raises ProviderUnavailable.
        """
        params = {
            "part": VIDEO_PARTS,
            "id": ",".join(video_ids),
            "key": self.api_key,
            "maxResults": MAX_IDS_PER_CALL,
        }
        url = f"{self.base_url}/videos"
        last_error = "no attempts made"

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = client.get(url, params=params)
            except httpx.RequestError as e:
                last_error = f"network error: {type(e).__name__}: {e}"
                logger.warning(
                    f"Provider network error, attempt {attempt}/{MAX_RETRIES}: {last_error}"
                )
                self._backoff(attempt)
                continue

            # --- Success ---
            if response.status_code == 200:
                try:
                    return response.json().get("items", []) or []
                except ValueError as e:
                    raise ProviderUnavailable(f"provider returned malformed JSON: {e}") from e

            # --- Rate limited or server error — retryable ---
            if response.status_code == 429 or response.status_code >= 500:
                last_error = f"provider returned {response.status_code}"
                logger.warning(
                    f"Provider error {response.status_code}, "
                    f"attempt {attempt}/{MAX_RETRIES}"
                )
                self._backoff(attempt)
                continue

            # --- Other client errors (quota, bad key) — no point retrying now ---
            logger.error(
                f"Provider error {response.status_code}: {response.text[:300]}"
            )
            raise ProviderUnavailable(
                f"provider returned {response.status_code}: {_error_reason(response)}"
            )

        logger.error(f"All {MAX_RETRIES} attempts failed for {len(video_ids)} ids")
        raise ProviderUnavailable(f"{last_error} after {MAX_RETRIES} attempts")

    def _backoff(self, attempt: int) -> None:
        if attempt < MAX_RETRIES:
            time.sleep(RETRY_BACKOFF_BASE * attempt)


# ===========================================================================
# Response parsing
# ===========================================================================

def _index_items(items: list[dict]) -> dict[str, VideoStats]:
    indexed: dict[str, VideoStats] = {}
    for item in items:
        stats = parse_video_item(item)
        if stats is not None:
            indexed[stats.video_id] = stats
    return indexed


def parse_video_item(item: dict) -> Optional[VideoStats]:
    """
    Parse one `items[]` entry. Returns None if it carries no id.

    viewCount arrives as a string and may be absent when the owner hides
    statistics; it defaults to 0. A missing `status` part counts as public.
    """
    video_id = item.get("id")
    if not video_id:
        return None

    snippet = item.get("snippet") or {}
    statistics = item.get("statistics") or {}
    status = item.get("status") or {}

    privacy = status.get("privacyStatus", "public")

    return VideoStats(
        video_id=str(video_id),
        view_count=max(0, _safe_int(statistics.get("viewCount"), default=0)),
        is_public=privacy == "public",
        title=snippet.get("title"),
        channel_id=snippet.get("channelId"),
        published_at=_parse_datetime(snippet.get("publishedAt")),
    )


def _error_reason(response: httpx.Response) -> str:
    """Pull `error.errors[0].reason` (e.g. quotaExceeded) out of an error body."""
    try:
        errors = response.json().get("error", {}).get("errors", [])
    except ValueError:
        return response.text[:200]
    if errors:
        return errors[0].get("reason", "unknown")
    return "unknown"


# ===========================================================================
# Type parsing helpers
# ===========================================================================

def _safe_int(value, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def _parse_datetime(value) -> Optional[datetime]:
    """Parse '2024-03-01T12:00:00Z' style timestamps; None if unparseable."""
    if value is None:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        logger.debug(f"Could not parse datetime: {repr(value)}")
        return None
