"""Shared pytest fixtures for twdl tests."""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pytest
import requests

from twdl.config import Settings
from twdl.models import AccessToken, ClipMetadata, Credentials

_MISSING = object()


class FakeResponse:
    """Just enough of requests.Response for the code under test."""

    def __init__(self, status_code: int = 200, json_data: Any = _MISSING, content: bytes = b"",
                 headers: Optional[dict] = None, chunks: Optional[list] = None,
                 raise_on_iter: Optional[Exception] = None):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.headers = headers or {}
        self._chunks = chunks if chunks is not None else [content]
        self._raise_on_iter = raise_on_iter
        self.closed = False

    def json(self):
        if self._json is _MISSING:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size: int = 1):
        for chunk in self._chunks:
            yield chunk
        if self._raise_on_iter is not None:
            raise self._raise_on_iter

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


class FakeSession:
    """
    Stand-in for requests.Session. Responses are queued per (method, url) and
    handed out in order; the last one repeats. Exceptions are raised, callables
    are called with the request kwargs.
    """

    def __init__(self):
        self.calls: list[tuple[str, str, dict]] = []
        self._routes: dict[tuple[str, str], list] = {}
        self._lock = threading.Lock()

    def add(self, method: str, url: str, *responses) -> "FakeSession":
        self._routes.setdefault((method, url), []).extend(responses)
        return self

    def calls_to(self, method: str, url: str) -> list[dict]:
        return [kwargs for m, u, kwargs in self.calls if m == method and u == url]

    def _dispatch(self, method: str, url: str, **kwargs):
        with self._lock:
            self.calls.append((method, url, kwargs))
            queue = self._routes.get((method, url))
            if not queue:
                raise AssertionError(f"unexpected request {method} {url}")
            item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(**kwargs)
        return item

    def get(self, url: str, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self._dispatch("POST", url, **kwargs)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        twitch_client_id=None,
        twitch_client_secret=None,
        ratelimit_max_wait=5.0,
    )


@pytest.fixture
def http() -> FakeSession:
    return FakeSession()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(client_id="test-client-id", client_secret="test-client-secret")


@pytest.fixture
def token() -> AccessToken:
    return AccessToken(value="test-token", client_id="test-client-id")


def clip_record(clip_id: str, thumbnail_url: Optional[str] = None, **overrides) -> dict:
    """A Helix clip record as the API returns it."""
    record = {
        "id": clip_id,
        "url": f"https://clips.twitch.tv/{clip_id}",
        "embed_url": f"https://clips.twitch.tv/embed?clip={clip_id}",
        "broadcaster_id": "123456",
        "broadcaster_name": "TestStreamer",
        "creator_id": "987",
        "creator_name": "clipper",
        "video_id": "",
        "game_id": "509658",
        "language": "en",
        "title": f"Clip {clip_id}",
        "view_count": 42,
        "created_at": "2024-03-01T12:00:00Z",
        "thumbnail_url": thumbnail_url or f"https://clips-media-assets2.twitch.tv/{clip_id}-preview-480x272.jpg",
        "duration": 28.5,
        "vod_offset": None,
        "is_featured": False,
    }
    record.update(overrides)
    return record


@pytest.fixture
def make_clip() -> Callable[..., ClipMetadata]:
    def _make(clip_id: str = "AwkwardClip", **kwargs) -> ClipMetadata:
        return ClipMetadata.model_validate(clip_record(clip_id, **kwargs))
    return _make


def media_url(clip_id: str) -> str:
    return f"https://clips-media-assets2.twitch.tv/{clip_id}.mp4"


START = datetime(2024, 3, 1, tzinfo=timezone.utc)
