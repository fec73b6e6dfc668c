import logging
import re
import threading
from pathlib import Path
from typing import Optional, Union

import requests

from twdl.config import Settings, settings as default_settings
from twdl.errors import ApiError, DerivationError, StorageError
from twdl.models import ClipMetadata, DownloadMode, DownloadResult, Outcome
from twdl.output import OutputDirectory

logger = logging.getLogger(__name__)

MEDIA_EXT = "mp4"
THUMBNAIL_SUFFIX = re.compile(r"-preview-\d+x\d+\.jpg$")


def derive_source_url(thumbnail_url: str) -> str:
    """
    Build the clip's media URL from its thumbnail URL:
    .../abc123-preview-480x272.jpg -> .../abc123.mp4
    """
    if not thumbnail_url or not THUMBNAIL_SUFFIX.search(thumbnail_url):
        raise DerivationError(f"thumbnail URL has no -preview-WxH.jpg suffix: {thumbnail_url!r}")
    base = THUMBNAIL_SUFFIX.sub("", thumbnail_url)
    if base.endswith("/") or "://" not in base:
        raise DerivationError(f"thumbnail URL has no media base: {thumbnail_url!r}")
    return f"{base}.{MEDIA_EXT}"


class DownloadExecutor:
    """
    Turns one clip record into a DownloadResult. Never raises for per-clip
    problems; they are reported as a Failed outcome on the result.
    """

    def __init__(self, http: Optional[requests.Session] = None, settings: Optional[Settings] = None):
        self._http = http
        self._local = threading.local()
        self.settings = settings or default_settings

    @property
    def http(self) -> requests.Session:
        """
        The session for the calling thread. An injected session is used as is;
        otherwise every worker thread lazily opens its own.
        """
        if self._http is not None:
            return self._http
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def process(self, clip: ClipMetadata, mode: DownloadMode,
                output_dir: Union[str, Path, OutputDirectory]) -> DownloadResult:
        output = output_dir if isinstance(output_dir, OutputDirectory) else OutputDirectory(output_dir)

        try:
            source_url = derive_source_url(clip.thumbnail_url)
        except DerivationError as e:
            logger.error("Clip %s: %s", clip.id, e)
            source_url = None
            media = Outcome.failed(str(e))
        else:
            media = None

        if mode is DownloadMode.LINK_ONLY:
            return DownloadResult(clip.id, media or Outcome.success(), source_url=source_url)

        if media is None:
            media = self._download_media(clip, source_url, output)

        metadata = None
        if mode is DownloadMode.DOWNLOAD_WITH_METADATA:
            metadata = self._write_metadata(clip, output)

        return DownloadResult(clip.id, media, metadata=metadata, source_url=source_url)

    def _download_media(self, clip: ClipMetadata, source_url: str, output: OutputDirectory) -> Outcome:
        local_path = output.media_path(clip.id, MEDIA_EXT)
        if local_path.exists():
            logger.info("Clip %s already downloaded at %s, skipping", clip.id, local_path)
            return Outcome.skipped(f"{local_path.name} exists")

        logger.info("Downloading clip %s -> %s", clip.id, local_path)
        try:
            self.stream_to(source_url, local_path, output)
        except (ApiError, StorageError) as e:
            logger.error("Clip %s download failed: %s", clip.id, e)
            return Outcome.failed(str(e))
        logger.info("Downloaded %s", local_path)
        return Outcome.success()

    def stream_to(self, url: str, local_path: Path, output: OutputDirectory) -> None:
        try:
            with self.http.get(url, stream=True, timeout=self.settings.request_timeout) as resp:
                resp.raise_for_status()
                with output.atomic_writer(local_path) as handle:
                    for chunk in resp.iter_content(chunk_size=self.settings.download_chunk_bytes):
                        if chunk:
                            handle.write(chunk)
        except requests.RequestException as e:
            raise ApiError(f"fetching {url} failed: {e}",
                           status_code=getattr(e.response, "status_code", None)) from e
        except OSError as e:
            raise StorageError(f"writing {local_path} failed: {e}") from e

    def _write_metadata(self, clip: ClipMetadata, output: OutputDirectory) -> Outcome:
        meta_path = output.metadata_path(clip.id)
        try:
            payload = clip.model_dump_json(by_alias=True, indent=2)
            output.write_bytes(meta_path, payload.encode("utf-8"))
        except StorageError as e:
            logger.error("Clip %s metadata write failed: %s", clip.id, e)
            return Outcome.failed(str(e))
        logger.info("Saved metadata %s", meta_path)
        return Outcome.success()
