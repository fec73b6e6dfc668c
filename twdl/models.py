from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from twdl.errors import ConfigError


class Credentials(BaseModel):
    """client_id / client_secret pair, as stored in the credentials file."""
    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)


@dataclass(frozen=True)
class AccessToken:
    """App access token plus the client id it was issued to."""
    value: str
    client_id: str
    expires_at: Optional[datetime] = None

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {self.value}",
        }

    def __repr__(self) -> str:
        return f"AccessToken(client_id={self.client_id!r}, expires_at={self.expires_at!r})"


class ClipMetadata(BaseModel):
    """
    One clip record from the Helix clips endpoint. Unknown fields are kept so the
    metadata sidecar carries everything the API returned.
    """
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str
    broadcaster_id: str
    broadcaster_login: Optional[str] = None
    broadcaster_name: Optional[str] = None
    created_at: datetime
    title: str
    thumbnail_url: str
    view_count: int = 0
    duration_seconds: float = Field(default=0.0, alias="duration")
    url: Optional[str] = None
    creator_name: Optional[str] = None
    game_id: Optional[str] = None
    video_id: Optional[str] = None
    language: Optional[str] = None


@dataclass(frozen=True)
class TimeRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def build(cls, start: Optional[datetime] = None, end: Optional[datetime] = None,
              default_days: int = 7) -> "TimeRange":
        """
        Validate a user supplied window. An end needs a start; a start without
        an end covers `default_days` days.
        """
        start, end = _with_utc(start), _with_utc(end)
        if end is not None and start is None:
            raise ConfigError("an end time requires a start time")
        if start is not None and end is None:
            end = start + timedelta(days=default_days)
        if start is not None and end < start:
            raise ConfigError(f"end time {end.isoformat()} is before start time {start.isoformat()}")
        return cls(start=start, end=end)

    def to_params(self) -> dict[str, str]:
        params = {}
        if self.start is not None:
            params["started_at"] = to_rfc3339(self.start)
        if self.end is not None:
            params["ended_at"] = to_rfc3339(self.end)
        return params


def _with_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_rfc3339(value: datetime) -> str:
    return _with_utc(value).astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class BroadcasterId:
    value: str

    def __str__(self) -> str:
        return f"id {self.value}"


@dataclass(frozen=True)
class BroadcasterLogin:
    value: str

    def __str__(self) -> str:
        return f"login {self.value}"


BroadcasterRef = Union[BroadcasterId, BroadcasterLogin]


def broadcaster_ref(broadcaster_id: Optional[str] = None,
                    login: Optional[str] = None) -> BroadcasterRef:
    """Build the broadcaster variant from the two mutually exclusive flags."""
    if broadcaster_id is not None and login is not None:
        raise ConfigError("give either a broadcaster id or a broadcaster login, not both")
    if broadcaster_id is not None:
        broadcaster_id = str(broadcaster_id).strip()
        if not broadcaster_id.isdigit():
            raise ConfigError(f"broadcaster id must be numeric, got {broadcaster_id!r}")
        return BroadcasterId(broadcaster_id)
    if login is not None:
        login = login.strip().lower()
        if not login:
            raise ConfigError("broadcaster login must not be empty")
        return BroadcasterLogin(login)
    raise ConfigError("either a broadcaster id or a broadcaster login is required")


@dataclass(frozen=True)
class Page:
    clips: list[ClipMetadata]
    cursor: Optional[str] = None


class DownloadMode(str, Enum):
    LINK_ONLY = "link"
    DOWNLOAD = "download"
    DOWNLOAD_WITH_METADATA = "download+metadata"

    @classmethod
    def from_flags(cls, link: bool, metadata: bool) -> "DownloadMode":
        if link:
            return cls.LINK_ONLY
        if metadata:
            return cls.DOWNLOAD_WITH_METADATA
        return cls.DOWNLOAD


class Status(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    status: Status
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls(Status.SUCCESS)

    @classmethod
    def skipped(cls, reason: Optional[str] = None) -> "Outcome":
        return cls(Status.SKIPPED, reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome":
        return cls(Status.FAILED, reason)


@dataclass(frozen=True)
class DownloadResult:
    """Per clip result. Media and metadata are reported separately."""
    clip_id: str
    media: Outcome
    metadata: Optional[Outcome] = None
    source_url: Optional[str] = None

    @property
    def failed(self) -> bool:
        if self.media.status is Status.FAILED:
            return True
        return self.metadata is not None and self.metadata.status is Status.FAILED

    @property
    def status(self) -> Status:
        if self.failed:
            return Status.FAILED
        return self.media.status

    def describe(self) -> str:
        parts = [f"media {self.media.status.value}"]
        if self.media.reason:
            parts[0] += f" ({self.media.reason})"
        if self.metadata is not None:
            meta = f"metadata {self.metadata.status.value}"
            if self.metadata.reason:
                meta += f" ({self.metadata.reason})"
            parts.append(meta)
        return f"{self.clip_id}: " + ", ".join(parts)


@dataclass
class BatchSummary:
    success: int = 0
    skipped: int = 0
    failed: int = 0
    metadata_failed: int = 0
    failures: list[DownloadResult] = field(default_factory=list)
    aborted: Optional[str] = None

    def record(self, result: DownloadResult) -> None:
        status = result.status
        if status is Status.FAILED:
            self.failed += 1
            self.failures.append(result)
        elif status is Status.SKIPPED:
            self.skipped += 1
        else:
            self.success += 1
        if result.metadata is not None and result.metadata.status is Status.FAILED:
            self.metadata_failed += 1

    @property
    def total(self) -> int:
        return self.success + self.skipped + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.aborted is None

    def format(self) -> str:
        line = f"{self.total} clips: {self.success} succeeded, {self.skipped} skipped, {self.failed} failed"
        if self.metadata_failed:
            line += f" ({self.metadata_failed} metadata write failures)"
        if self.aborted:
            line += f"; enumeration aborted: {self.aborted}"
        return line
