"""Gzipped tarball creation and extraction."""

from __future__ import annotations

import copy
import errno
import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import wrap_error

_EXTRACT_KWARGS = {"filter": "fully_trusted"} if hasattr(tarfile, "fully_trusted_filter") else {}


@dataclass(frozen=True)
class CompressorOptions:
    """How to extract a tarball."""

    same_owner: bool = False
    path_in_archive: str = ""
    strip_components: int = 0


def _remove_all(path: str) -> None:
    if os.path.islink(path) or not os.path.isdir(path):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
    else:
        shutil.rmtree(path)


def _strip(name: str, count: int) -> str:
    parts = [part for part in name.split("/") if part]
    return "/".join(parts[count:])


def _in_archive_path(name: str, path: str) -> bool:
    name = name.rstrip("/")
    return name == path or name.startswith(path + "/")


class TarballCompressor:
    """Packs directories into gzipped tarballs and unpacks them."""

    def compress_files_in_dir(self, directory: str) -> str:
        """Pack the whole of ``directory``; return the tarball's path."""
        return self.compress_specific_files_in_dir(directory, ["."])

    def compress_specific_files_in_dir(self, directory: str, files: Sequence[str]) -> str:
        """Pack ``files`` (relative to ``directory``); return the tarball's path."""
        try:
            handle, tarball_path = tempfile.mkstemp(
                prefix="bosh-platform-disk-TarballCompressor-CompressSpecificFilesInDir"
            )
            os.close(handle)
        except OSError as exc:
            raise wrap_error(exc, "Creating temporary file for tarball") from exc

        try:
            with tarfile.open(tarball_path, "w:gz") as archive:
                for name in files:
                    archive.add(os.path.join(directory, name), arcname=name)
        except (OSError, tarfile.TarError) as exc:
            _remove_all(tarball_path)
            raise wrap_error(exc, "Compressing files in '%s'", directory) from exc

        return tarball_path

    def decompress_file_to_dir(
        self, tarball_path: str, directory: str, options: CompressorOptions | None = None
    ) -> None:
        """Unpack ``tarball_path`` into the existing ``directory``."""
        options = options or CompressorOptions()
        try:
            if not os.path.isdir(directory):
                raise FileNotFoundError(errno.ENOENT, "No such directory", directory)
            with tarfile.open(tarball_path, "r:*") as archive:
                members = self._select(archive.getmembers(), options)
                archive.extractall(directory, members=members, **_EXTRACT_KWARGS)
        except (OSError, tarfile.TarError) as exc:
            raise wrap_error(
                exc, "Extracting tarball '%s' into '%s'", tarball_path, directory
            ) from exc

    def clean_up(self, tarball_path: str) -> None:
        """Remove a tarball made by this compressor."""
        _remove_all(tarball_path)

    @staticmethod
    def _select(
        members: Iterable[tarfile.TarInfo], options: CompressorOptions
    ) -> list[tarfile.TarInfo]:
        wanted = options.path_in_archive.rstrip("/")
        selected = []
        for member in members:
            if wanted and not _in_archive_path(member.name, wanted):
                continue
            member = copy.copy(member)
            if options.strip_components:
                member.name = _strip(member.name, options.strip_components)
                if not member.name:
                    continue
                if member.islnk():
                    member.linkname = _strip(member.linkname, options.strip_components)
            if not options.same_owner and hasattr(os, "getuid"):
                member.uid, member.gid = os.getuid(), os.getgid()
                member.uname = member.gname = ""
            selected.append(member)

        if wanted and not selected:
            raise tarfile.TarError(f"{options.path_in_archive}: Not found in archive")
        return selected