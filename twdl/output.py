import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Union

from twdl.errors import StorageError

logger = logging.getLogger(__name__)


class OutputDirectory:
    """
    Clip-scoped file layout under one output directory.

    Every artifact is written to a hidden temp file next to its final path and
    renamed into place once complete, so an interrupted write never leaves a
    truncated file under the final name. Workers only ever touch their own
    clip's filenames, so no locking is needed beyond rename atomicity.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def ensure(self) -> None:
        """Create the directory tree on first write."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"could not create output directory {self.root}: {e}") from e

    def get_file_path(self, clip_id: str, ext: str) -> Path:
        return self.root / f"{clip_id}.{ext}"

    def media_path(self, clip_id: str, ext: str = "mp4") -> Path:
        return self.get_file_path(clip_id, ext)

    def metadata_path(self, clip_id: str) -> Path:
        return self.get_file_path(clip_id, "json")

    @contextmanager
    def atomic_writer(self, final_path: Path) -> Iterator[BinaryIO]:
        """
        Yield a binary handle to a temp file; on clean exit it replaces
        `final_path`, on any error it is removed.
        """
        self.ensure()
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{final_path.name}.", suffix=".part")
        except OSError as e:
            raise StorageError(f"could not create temp file in {self.root}: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                yield handle
            os.replace(tmp_path, final_path)
        except BaseException:
            try:
                tmp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_error:
                logger.warning("Could not remove temp file %s: %s", tmp_path, cleanup_error)
            raise
        logger.debug("Wrote %s", final_path)

    def write_bytes(self, final_path: Path, data: bytes) -> None:
        try:
            with self.atomic_writer(final_path) as handle:
                handle.write(data)
        except OSError as e:
            raise StorageError(f"could not write {final_path}: {e}") from e
