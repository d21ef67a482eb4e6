import io
import os
import tarfile
from unittest import mock

import pytest

from boshutils.compressor import CompressorOptions, TarballCompressor
from boshutils.errors import BoshError


def _write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


@pytest.fixture
def src_dir(tmp_path):
    root = tmp_path / "test_filtered_copy_to_temp"
    _write(root / "app.stdout.log", "this is app stdout")
    _write(root / "app.stderr.log", "this is app stderr")
    _write(root / "other_logs" / "other_app.stdout.log", "this is other app stdout")
    _write(root / "other_logs" / "other_app.stderr.log", "this is other app stderr")
    _write(root / "other_logs" / "more_logs" / "more.stdout.log", "this is more stdout")
    _write(root / "some_directory" / "sub_dir" / "other_sub_dir" / ".keep", "this is a .keep file")
    return root


@pytest.fixture
def dst_dir(tmp_path):
    path = tmp_path / "TestCompressor"
    path.mkdir()
    return path


@pytest.fixture
def fixture_tgz(tmp_path):
    path = tmp_path / "compressor-decompress-file-to-dir.tgz"
    with tarfile.open(path, "w:gz") as archive:
        for name in ("empty-dir", "dir", "dir/nested-dir", "dir/empty-nested-dir"):
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            archive.addfile(info)
        for name in ("not-nested-file", "dir/nested-file", "dir/nested-dir/double-nested-file"):
            data = os.path.basename(name).encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(data))
    return str(path)


@pytest.fixture
def compressor():
    return TarballCompressor()


def test_compress_files_in_dir(compressor, src_dir, dst_dir, tmp_path):
    target = tmp_path / "symlink_target"
    target.mkdir()
    os.symlink(str(target), str(src_dir / "symlink_dir"))

    tgz = compressor.compress_files_in_dir(str(src_dir))
    try:
        with tarfile.open(tgz) as archive:
            names = archive.getnames()
            assert archive.getmember("./symlink_dir").issym()
        assert sorted(names) == sorted([
            ".",
            "./app.stderr.log",
            "./app.stdout.log",
            "./other_logs",
            "./some_directory",
            "./some_directory/sub_dir",
            "./some_directory/sub_dir/other_sub_dir",
            "./some_directory/sub_dir/other_sub_dir/.keep",
            "./symlink_dir",
            "./other_logs/more_logs",
            "./other_logs/other_app.stderr.log",
            "./other_logs/other_app.stdout.log",
            "./other_logs/more_logs/more.stdout.log",
        ])

        compressor.decompress_file_to_dir(tgz, str(dst_dir))
        assert "this is app stdout" in (dst_dir / "app.stdout.log").read_text()
        assert "this is app stderr" in (dst_dir / "app.stderr.log").read_text()
        assert "this is other app stdout" in (
            dst_dir / "other_logs" / "other_app.stdout.log"
        ).read_text()
    finally:
        compressor.clean_up(tgz)


def test_compress_specific_files_in_dir(compressor, src_dir, dst_dir):
    files = ["app.stdout.log", "some_directory", "app.stderr.log"]
    tgz = compressor.compress_specific_files_in_dir(str(src_dir), files)
    try:
        with tarfile.open(tgz) as archive:
            assert archive.getnames() == [
                "app.stdout.log",
                "some_directory",
                "some_directory/sub_dir",
                "some_directory/sub_dir/other_sub_dir",
                "some_directory/sub_dir/other_sub_dir/.keep",
                "app.stderr.log",
            ]

        compressor.decompress_file_to_dir(tgz, str(dst_dir))
        assert "this is app stdout" in (dst_dir / "app.stdout.log").read_text()
        assert "this is app stderr" in (dst_dir / "app.stderr.log").read_text()
        keep = dst_dir / "some_directory" / "sub_dir" / "other_sub_dir" / ".keep"
        assert "this is a .keep file" in keep.read_text()
    finally:
        compressor.clean_up(tgz)


def test_compress_missing_directory_fails(compressor, tmp_path):
    missing = str(tmp_path / "missing")
    with pytest.raises(BoshError) as info:
        compressor.compress_specific_files_in_dir(missing, ["file"])
    assert missing in str(info.value)


def test_decompress_file_to_dir(compressor, fixture_tgz, dst_dir):
    compressor.decompress_file_to_dir(fixture_tgz, str(dst_dir), CompressorOptions())

    assert "not-nested-file" in (dst_dir / "not-nested-file").read_text()
    assert "nested-file" in (dst_dir / "dir" / "nested-file").read_text()
    assert "double-nested-file" in (
        dst_dir / "dir" / "nested-dir" / "double-nested-file"
    ).read_text()
    assert (dst_dir / "empty-dir").is_dir()
    assert (dst_dir / "dir" / "empty-nested-dir").is_dir()


def test_decompress_errors_when_destination_missing(compressor, fixture_tgz, tmp_path):
    missing = str(tmp_path / "missing")
    with pytest.raises(BoshError) as info:
        compressor.decompress_file_to_dir(fixture_tgz, missing, CompressorOptions())
    assert missing in str(info.value)
    assert not os.path.exists(missing)


def test_decompress_with_same_owner(compressor, fixture_tgz, dst_dir):
    compressor.decompress_file_to_dir(
        fixture_tgz, str(dst_dir), CompressorOptions(same_owner=True)
    )
    assert (dst_dir / "dir" / "nested-file").read_text() == "nested-file"


def test_decompress_selects_path_in_archive(compressor, fixture_tgz, dst_dir):
    compressor.decompress_file_to_dir(
        fixture_tgz, str(dst_dir), CompressorOptions(path_in_archive="dir")
    )
    assert (dst_dir / "dir" / "nested-file").read_text() == "nested-file"
    assert not (dst_dir / "not-nested-file").exists()
    assert not (dst_dir / "empty-dir").exists()


def test_decompress_errors_when_path_not_in_archive(compressor, fixture_tgz, dst_dir):
    with pytest.raises(BoshError) as info:
        compressor.decompress_file_to_dir(
            fixture_tgz, str(dst_dir), CompressorOptions(path_in_archive="some/path/in/archive")
        )
    assert "some/path/in/archive" in str(info.value)


def test_decompress_strips_components(compressor, fixture_tgz, dst_dir):
    compressor.decompress_file_to_dir(
        fixture_tgz, str(dst_dir), CompressorOptions(strip_components=1)
    )
    assert (dst_dir / "nested-file").read_text() == "nested-file"
    assert (dst_dir / "nested-dir" / "double-nested-file").read_text() == "double-nested-file"
    assert not (dst_dir / "not-nested-file").exists()


def test_clean_up_removes_tarball(compressor, tmp_path):
    tarball = tmp_path / "fake-tarball.tar"
    tarball.write_text("")
    compressor.clean_up(str(tarball))
    assert not tarball.exists()


def test_clean_up_raises_when_removal_fails(compressor, tmp_path):
    tarball = tmp_path / "fake-tarball.tar"
    tarball.write_text("")
    with mock.patch("os.remove", side_effect=OSError("fake-remove-all-err")):
        with pytest.raises(OSError, match="fake-remove-all-err"):
            compressor.clean_up(str(tarball))
    assert tarball.exists()