# pipeline.py

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from twdl.config import Settings, settings as default_settings
from twdl.errors import ApiError, ConfigError, ParseError
from twdl.models import (
    BatchSummary,
    BroadcasterRef,
    ClipMetadata,
    Credentials,
    DownloadMode,
    DownloadResult,
    Outcome,
    TimeRange,
)
from twdl.output import OutputDirectory
from twdl.processing.clips.auth import TokenManager
from twdl.processing.clips.download import DownloadExecutor
from twdl.processing.clips.fetch import ClipPager, ClipResolver, HelixClient, validate_chunk_size

logger = logging.getLogger(__name__)

ResultCallback = Callable[[DownloadResult], None]


def process_single_clip(
    clip_slug: str,
    credentials: Credentials,
    mode: DownloadMode,
    output_dir: Union[str, Path],
    token_manager: Optional[TokenManager] = None,
    resolver: Optional[ClipResolver] = None,
    executor: Optional[DownloadExecutor] = None,
) -> DownloadResult:
    """
    Single-clip flow: token, one metadata lookup, one download. Auth, API and
    parse errors propagate; per-clip problems come back on the result.
    """
    token_manager = token_manager or TokenManager()
    resolver = resolver or ClipResolver()
    executor = executor or DownloadExecutor()

    token = token_manager.acquire(credentials)
    clip = resolver.resolve(clip_slug, token)
    logger.info("Resolved clip %s: %s (%s views)", clip.id, clip.title, clip.view_count)
    return executor.process(clip, mode, OutputDirectory(output_dir))


class ChannelOrchestrator:
    """
    Batch flow for one channel: token -> pager -> bounded pool of downloads.

    Clips are submitted while the pager is consumed, with at most
    ``2 * workers`` downloads in flight. Results are collected on the calling
    thread only, so the summary needs no locking. A failing clip never stops
    its siblings; a failing page stops enumeration but everything already
    submitted still finishes and is counted.
    """

    def __init__(
        self,
        token_manager: Optional[TokenManager] = None,
        pager: Optional[ClipPager] = None,
        executor: Optional[DownloadExecutor] = None,
        workers: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.token_manager = token_manager or TokenManager(settings=self.settings)
        self.pager = pager or ClipPager(HelixClient(settings=self.settings))
        self.executor = executor or DownloadExecutor(settings=self.settings)
        self.workers = workers if workers is not None else self.settings.download_workers
        if self.workers < 1:
            raise ConfigError(f"worker count must be at least 1, got {self.workers}")

    def run(
        self,
        credentials: Credentials,
        broadcaster: BroadcasterRef,
        time_range: TimeRange,
        mode: DownloadMode,
        output_dir: Union[str, Path],
        chunk_size: Optional[int] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> BatchSummary:
        if chunk_size is None:
            chunk_size = self.settings.clips_first
        validate_chunk_size(chunk_size, self.settings)

        token = self.token_manager.acquire(credentials)
        clips = self.pager.iter_clips(broadcaster, time_range, chunk_size, token)
        logger.info("Fetching clips for broadcaster %s (%s)", broadcaster, mode.value)
        return self.process_clips(clips, mode, OutputDirectory(output_dir), on_result)

    def process_clips(
        self,
        clips: Iterable[ClipMetadata],
        mode: DownloadMode,
        output: OutputDirectory,
        on_result: Optional[ResultCallback] = None,
    ) -> BatchSummary:
        summary = BatchSummary()
        max_pending = self.workers * 2

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="twdl-download") as pool:
            pending: set[Future] = set()
            try:
                for clip in clips:
                    pending.add(pool.submit(self._process_one, clip, mode, output))
                    if len(pending) >= max_pending:
                        done, pending = wait(pending, return_when=FIRST_COMPLETED)
                        on_result = self._collect(done, summary, on_result)
            except (ApiError, ParseError) as e:
                logger.error("Clip enumeration aborted: %s", e)
                summary.aborted = str(e)
            finally:
                done, _ = wait(pending)
                self._collect(done, summary, on_result)

        logger.info("Batch finished: %s", summary.format())
        return summary

    def _process_one(self, clip: ClipMetadata, mode: DownloadMode, output: OutputDirectory) -> DownloadResult:
        try:
            return self.executor.process(clip, mode, output)
        except Exception as e:
            logger.exception("Unexpected error processing clip %s", clip.id)
            return DownloadResult(clip.id, Outcome.failed(f"unexpected error: {e}"))

    def _collect(self, done: Iterable[Future], summary: BatchSummary,
                 on_result: Optional[ResultCallback]) -> Optional[ResultCallback]:
        """
        Record every finished result, then hand each to `on_result`. A callback
        that raises is logged once and dropped for the rest of the batch; the
        returned callback is the one to use next time.
        """
        results = [future.result() for future in done]
        for result in results:
            summary.record(result)

        for result in results:
            if on_result is None:
                break
            try:
                on_result(result)
            except Exception:
                logger.exception("Result callback failed on clip %s; remaining results are only counted",
                                 result.clip_id)
                on_result = None
        return on_result
