import logging
import time
from typing import Any, Iterator, Optional

import requests
from pydantic import ValidationError

from twdl.config import Settings, settings as default_settings
from twdl.errors import ApiError, ConfigError, NotFoundError, ParseError
from twdl.models import (
    AccessToken,
    BroadcasterId,
    BroadcasterLogin,
    BroadcasterRef,
    ClipMetadata,
    Page,
    TimeRange,
)

logger = logging.getLogger(__name__)


class HelixClient:
    """Thin GET wrapper over the Helix API: auth headers, errors, one rate-limit retry."""

    def __init__(self, http: Optional[requests.Session] = None, settings: Optional[Settings] = None):
        self.http = http or requests.Session()
        self.settings = settings or default_settings

    def get(self, url: str, params: dict[str, Any], token: AccessToken) -> dict:
        resp = self._send(url, params, token)
        if resp.status_code == 429:
            wait = self._ratelimit_wait(resp)
            logger.warning("Rate limited by Twitch, retrying once in %.1fs", wait)
            time.sleep(wait)
            resp = self._send(url, params, token)

        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            logger.error("Twitch API error for %s: %s", url, e)
            raise ApiError(f"Twitch API returned HTTP {resp.status_code} for {url}",
                           status_code=resp.status_code) from e

        try:
            body = resp.json()
        except ValueError as e:
            raise ParseError(f"malformed JSON from {url}") from e
        if not isinstance(body, dict):
            raise ParseError(f"unexpected response shape from {url}: {type(body).__name__}")
        return body

    def _send(self, url: str, params: dict[str, Any], token: AccessToken) -> requests.Response:
        logger.debug("GET %s params=%s", url, params)
        try:
            return self.http.get(url, headers=token.headers, params=params,
                                 timeout=self.settings.request_timeout)
        except requests.RequestException as e:
            logger.error("Error requesting %s: %s", url, e)
            raise ApiError(f"request to {url} failed: {e}") from e

    def _ratelimit_wait(self, resp: requests.Response) -> float:
        reset = resp.headers.get("Ratelimit-Reset")
        try:
            wait = float(reset) - time.time()
        except (TypeError, ValueError):
            wait = 1.0
        return min(max(wait, 0.0), self.settings.ratelimit_max_wait)


def parse_clips(body: dict) -> list[ClipMetadata]:
    data = body.get("data")
    if not isinstance(data, list):
        raise ParseError("response is missing the 'data' array")
    try:
        return [ClipMetadata.model_validate(item) for item in data]
    except ValidationError as e:
        raise ParseError(f"malformed clip record: {e}") from e


class ClipResolver:
    def __init__(self, client: Optional[HelixClient] = None):
        self.client = client or HelixClient()

    def resolve(self, clip_slug: str, token: AccessToken) -> ClipMetadata:
        """Fetch a single clip's metadata by slug."""
        body = self.client.get(self.client.settings.twitch_clips_url, {"id": clip_slug}, token)
        clips = parse_clips(body)
        if not clips:
            raise NotFoundError(f"No clip found for slug '{clip_slug}'")
        return clips[0]


def get_broadcaster_id(client: HelixClient, login: str, token: AccessToken) -> str:
    """Lookup a broadcaster's numeric ID by login."""
    body = client.get(client.settings.twitch_users_url, {"login": login}, token)
    data = body.get("data")
    if not isinstance(data, list):
        raise ParseError("users response is missing the 'data' array")
    if not data:
        raise NotFoundError(f"No user found for login '{login}'")
    user_id = data[0].get("id") if isinstance(data[0], dict) else None
    if not user_id:
        raise ParseError(f"user record for '{login}' has no id")
    return str(user_id)


def validate_chunk_size(chunk_size: int, settings: Optional[Settings] = None) -> int:
    settings = settings or default_settings
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
        raise ConfigError(f"chunk size must be an integer, got {chunk_size!r}")
    if not 1 <= chunk_size <= settings.clips_first_max:
        raise ConfigError(f"chunk size must be between 1 and {settings.clips_first_max}, got {chunk_size}")
    return chunk_size


class ClipPager:
    """
    Walks the cursor-paginated clips endpoint for one broadcaster and time range.

    `iter_clips` validates its arguments immediately and returns a lazy,
    single-pass iterator; pages are only requested as the caller consumes
    clips, and clips come back in API order. A transport or parse error
    mid-walk propagates out of the iterator, leaving already yielded clips
    valid.
    """

    def __init__(self, client: Optional[HelixClient] = None):
        self.client = client or HelixClient()

    def iter_clips(self, broadcaster: BroadcasterRef, time_range: TimeRange,
                   chunk_size: Optional[int], token: AccessToken) -> Iterator[ClipMetadata]:
        settings = self.client.settings
        if chunk_size is None:
            chunk_size = settings.clips_first
        validate_chunk_size(chunk_size, settings)
        if not isinstance(broadcaster, (BroadcasterId, BroadcasterLogin)):
            raise ConfigError(f"unsupported broadcaster reference {broadcaster!r}")
        return self._walk(broadcaster, time_range, chunk_size, token)

    def iter_pages(self, broadcaster_id: str, time_range: TimeRange,
                   chunk_size: int, token: AccessToken) -> Iterator[Page]:
        cursor = None
        pages_fetched = 0
        while True:
            params: dict[str, Any] = {"broadcaster_id": broadcaster_id, "first": chunk_size}
            params.update(time_range.to_params())
            if cursor:
                params["after"] = cursor

            body = self.client.get(self.client.settings.twitch_clips_url, params, token)
            clips = parse_clips(body)
            pagination = body.get("pagination") or {}
            cursor = pagination.get("cursor") if isinstance(pagination, dict) else None
            pages_fetched += 1
            logger.info("Page %d: %d clips for broadcaster %s", pages_fetched, len(clips), broadcaster_id)

            yield Page(clips=clips, cursor=cursor or None)

            # If no clips or no cursor, we've reached the end
            if not clips or not cursor:
                logger.info("Reached end of clips for broadcaster %s after %d pages",
                            broadcaster_id, pages_fetched)
                return

    def _walk(self, broadcaster: BroadcasterRef, time_range: TimeRange,
              chunk_size: int, token: AccessToken) -> Iterator[ClipMetadata]:
        if isinstance(broadcaster, BroadcasterLogin):
            broadcaster_id = get_broadcaster_id(self.client, broadcaster.value, token)
            logger.info("Resolved broadcaster login %s to id %s", broadcaster.value, broadcaster_id)
        else:
            broadcaster_id = broadcaster.value

        for page in self.iter_pages(broadcaster_id, time_range, chunk_size, token):
            yield from page.clips
