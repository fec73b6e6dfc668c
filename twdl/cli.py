"""Command line entry point for twdl."""

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click

from twdl import __version__
from twdl.config import settings
from twdl.errors import ConfigError, TwdlError
from twdl.logging_utils import setup_logging
from twdl.models import DownloadMode, DownloadResult, Status, TimeRange, broadcaster_ref
from twdl.pipeline import ChannelOrchestrator, process_single_clip
from twdl.processing.clips.auth import load_credentials
from twdl.processing.utils.slugs import extract_clip_slug
from twdl.processing.utils.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _mode(link: bool, metadata: bool) -> DownloadMode:
    # for outputting links, limit logs to errors
    setup_logging("ERROR" if link else "INFO")
    if link and metadata:
        logger.warning("--metadata is ignored together with --link")
    return DownloadMode.from_flags(link, metadata)


def _fail(error: TwdlError) -> NoReturn:
    click.echo(f"error: {error}", err=True)
    sys.exit(EXIT_CONFIG if isinstance(error, ConfigError) else EXIT_FAILURE)


def _echo_result(mode: DownloadMode, result: DownloadResult) -> None:
    if mode is DownloadMode.LINK_ONLY:
        if result.source_url:
            click.echo(result.source_url)
        else:
            click.echo(result.describe(), err=True)
    elif result.status is Status.FAILED:
        click.echo(result.describe(), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="twdl")
def main():
    """twdl - download Twitch clips."""
    pass


@main.command()
@click.argument("clip")
@click.option("-o", "--output", type=click.Path(file_okay=False, path_type=Path),
              default=None, help="Output dir to download clip to")
@click.option("-L", "--link", is_flag=True, help="Skip download and print the source file URL")
@click.option("-m", "--metadata", is_flag=True, help="Download json metadata alongside the clip")
@click.option("-c", "--credentials", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Path to a json file containing client_id and client_secret")
def clip(clip: str, output: Optional[Path], link: bool, metadata: bool, credentials: Optional[Path]):
    """Fetch a single clip by slug or URL."""
    mode = _mode(link, metadata)
    try:
        slug = extract_clip_slug(clip)
        creds = load_credentials(credentials)
        result = process_single_clip(slug, creds, mode, output or settings.output_dir)
    except TwdlError as e:
        _fail(e)

    _echo_result(mode, result)
    if result.failed:
        sys.exit(EXIT_FAILURE)


@main.command()
@click.option("-c", "--credentials", type=click.Path(dir_okay=False, path_type=Path),
              required=True, help="Path to a json file containing client_id and client_secret")
@click.option("-i", "--broadcaster-id", default=None, help="Numeric broadcaster ID")
@click.option("-l", "--broadcaster-login", default=None, help="Broadcaster login")
@click.option("-s", "--start", default=None,
              help="Start of datetime range (If no end provided, defaults to 1 week)")
@click.option("-e", "--end", default=None, help="End of datetime range, requires a start time")
@click.option("-C", "--chunk-size", type=int, default=None,
              help="Number of clips fetched per page, default=20 max=100")
@click.option("-o", "--output", type=click.Path(file_okay=False, path_type=Path),
              default=None, help="Path to directory to store the clips")
@click.option("-L", "--link", is_flag=True, help="Skip downloads and print the source file URLs to stdout")
@click.option("-m", "--metadata", is_flag=True, help="Download json metadata alongside the clip")
@click.option("-w", "--workers", type=int, default=None, help="Concurrent downloads, default=4")
def channel(credentials: Path, broadcaster_id: Optional[str], broadcaster_login: Optional[str],
            start: Optional[str], end: Optional[str], chunk_size: Optional[int], output: Optional[Path],
            link: bool, metadata: bool, workers: Optional[int]):
    """Fetch every clip of a channel within a time range."""
    mode = _mode(link, metadata)
    try:
        broadcaster = broadcaster_ref(broadcaster_id, broadcaster_login)
        time_range = TimeRange.build(parse_timestamp(start), parse_timestamp(end),
                                     default_days=settings.default_range_days)
        creds = load_credentials(credentials)
        orchestrator = ChannelOrchestrator(workers=workers)
        summary = orchestrator.run(
            creds,
            broadcaster,
            time_range,
            mode,
            output or settings.output_dir,
            chunk_size=chunk_size,
            on_result=lambda result: _echo_result(mode, result),
        )
    except TwdlError as e:
        _fail(e)

    click.echo(summary.format(), err=True)
    if not summary.ok:
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
