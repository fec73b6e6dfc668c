import pytest

from twdl.errors import StorageError
from twdl.output import OutputDirectory


def test_clip_scoped_paths(tmp_path):
    output = OutputDirectory(tmp_path)
    assert output.media_path("abc") == tmp_path / "abc.mp4"
    assert output.metadata_path("abc") == tmp_path / "abc.json"


def test_atomic_writer_renames_on_success(tmp_path):
    output = OutputDirectory(tmp_path / "nested" / "dir")
    target = output.media_path("abc")

    with output.atomic_writer(target) as handle:
        handle.write(b"hello")
        assert not target.exists()

    assert target.read_bytes() == b"hello"
    assert list(target.parent.iterdir()) == [target]


def test_atomic_writer_removes_temp_on_error(tmp_path):
    output = OutputDirectory(tmp_path)
    target = output.media_path("abc")

    with pytest.raises(RuntimeError):
        with output.atomic_writer(target) as handle:
            handle.write(b"half")
            raise RuntimeError("interrupted")

    assert list(tmp_path.iterdir()) == []


def test_atomic_writer_keeps_previous_file_on_error(tmp_path):
    output = OutputDirectory(tmp_path)
    target = output.metadata_path("abc")
    target.write_bytes(b"old")

    with pytest.raises(RuntimeError):
        with output.atomic_writer(target) as handle:
            handle.write(b"new")
            raise RuntimeError("interrupted")

    assert target.read_bytes() == b"old"


def test_unwritable_root_is_storage_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    output = OutputDirectory(blocker / "sub")

    with pytest.raises(StorageError):
        output.write_bytes(output.metadata_path("abc"), b"{}")
