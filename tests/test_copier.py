import os
import stat

import pytest

from boshutils.copier import DirToCopy, GenericCpCopier

FILTERS = [
    os.path.join("**", "*.stdout.log"),
    "*.stderr.log",
    os.path.join("**", "more.stderr.log"),
    os.path.join("..", "some.config"),
    os.path.join("some_directory", "**", "*"),
]


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
    return str(root)


@pytest.fixture
def copier():
    return GenericCpCopier()


def files_in_dir(directory):
    found = [
        os.path.join(root, name)
        for root, _, names in os.walk(directory)
        for name in names
    ]
    return sorted(found)


def _read(path):
    with open(path) as handle:
        return handle.read()


def test_copies_all_regular_files_from_filtered_copy_to_temp(copier, src_dir):
    dst = copier.filtered_copy_to_temp(src_dir, FILTERS)
    try:
        copied = files_in_dir(dst)
        assert copied[0:5] == [
            os.path.join(dst, "app.stderr.log"),
            os.path.join(dst, "app.stdout.log"),
            os.path.join(dst, "other_logs", "more_logs", "more.stdout.log"),
            os.path.join(dst, "other_logs", "other_app.stdout.log"),
            os.path.join(dst, "some_directory", "sub_dir", "other_sub_dir", ".keep"),
        ]
        assert "this is app stdout" in _read(os.path.join(dst, "app.stdout.log"))
        assert "this is app stderr" in _read(os.path.join(dst, "app.stderr.log"))
        assert "this is other app stdout" in _read(
            os.path.join(dst, "other_logs", "other_app.stdout.log")
        )
        assert "this is more stdout" in _read(
            os.path.join(dst, "other_logs", "more_logs", "more.stdout.log")
        )
        assert os.path.isdir(os.path.join(dst, "some_directory", "sub_dir", "other_sub_dir"))
        assert not os.path.exists(os.path.join(dst, "other_logs", "other_app.stderr.log"))
        assert not os.path.exists(os.path.join(dst, "..", "some.config"))
    finally:
        copier.clean_up(dst)


def test_copies_symlinked_files(copier, src_dir, tmp_path):
    target = tmp_path / "symlink_target"
    _write(target / "app.stdout.log", "linked stdout")
    _write(target / "sub_dir" / "sub_app.stdout.log", "linked sub stdout")
    os.symlink(str(target), os.path.join(src_dir, "symlink_dir"))

    dst = copier.filtered_copy_to_temp(src_dir, FILTERS)
    try:
        assert files_in_dir(dst)[5:] == [
            os.path.join(dst, "symlink_dir", "app.stdout.log"),
            os.path.join(dst, "symlink_dir", "sub_dir", "sub_app.stdout.log"),
        ]
    finally:
        copier.clean_up(dst)


def test_fixes_permissions_on_destination_directory(copier, src_dir):
    dst = copier.filtered_copy_to_temp(src_dir, ["**/*"])
    try:
        assert stat.S_IMODE(os.stat(dst).st_mode) == 0o755
    finally:
        copier.clean_up(dst)


def test_copies_directory_contents_when_given_as_filter(copier, src_dir):
    dst = copier.filtered_copy_to_temp(src_dir, ["some_directory"])
    try:
        assert files_in_dir(dst) == [
            os.path.join(dst, "some_directory", "sub_dir", "other_sub_dir", ".keep"),
        ]
    finally:
        copier.clean_up(dst)


def test_multi_copy_uses_prefixes(copier, src_dir):
    dirs = [
        DirToCopy(src_dir, "first_prefix"),
        DirToCopy(os.path.join(src_dir, "some_directory"), "second_prefix"),
        DirToCopy(os.path.join(src_dir, "some_directory")),
    ]
    dst = copier.filtered_multi_copy_to_temp(dirs, ["**/*"])
    try:
        copied = files_in_dir(dst)
        assert os.path.join(dst, "first_prefix", "other_logs", "other_app.stdout.log") in copied
        assert os.path.join(dst, "second_prefix", "sub_dir", "other_sub_dir", ".keep") in copied
        assert os.path.join(dst, "sub_dir", "other_sub_dir", ".keep") in copied
    finally:
        copier.clean_up(dst)


def test_clean_up_removes_directory(copier, tmp_path):
    temp_dir = tmp_path / "test-copier-cleanup"
    temp_dir.mkdir()
    (temp_dir / "file").write_text("x")
    copier.clean_up(str(temp_dir))
    assert not temp_dir.exists()