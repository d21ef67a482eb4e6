"""Move files, falling back to copy-and-delete across devices."""

from __future__ import annotations

import errno
import os
import shutil

_ERROR_NOT_SAME_DEVICE = 0x11


def _crosses_devices(exc: OSError) -> bool:
    return exc.errno == errno.EXDEV or getattr(exc, "winerror", None) == _ERROR_NOT_SAME_DEVICE


def _copy(source: str, destination: str) -> None:
    if os.path.isdir(source) and not os.path.islink(source):
        shutil.copytree(source, destination, symlinks=True)
    else:
        shutil.copyfile(source, destination)


def _remove_all(path: str) -> None:
    if os.path.islink(path) or not os.path.isdir(path):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
    else:
        shutil.rmtree(path)


class FileMover:
    """Renames paths; copies then deletes when a rename crosses devices."""

    def move(self, old_path: str, new_path: str) -> None:
        """Move ``old_path`` to ``new_path``."""
        try:
            os.rename(old_path, new_path)
        except OSError as exc:
            if not _crosses_devices(exc):
                raise
            _copy(old_path, new_path)
            _remove_all(old_path)