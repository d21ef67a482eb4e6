"""Copy files selected by glob filters into a fresh temporary directory."""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Iterable, Iterator, Sequence

from .errors import wrap_error

_META = re.compile(r"[*?\[{]")


@dataclass(frozen=True)
class DirToCopy:
    """A source directory and the sub-directory of the copy it lands in."""

    directory: str
    prefix: str = ""


def _remove_all(path: str) -> None:
    if os.path.islink(path) or not os.path.isdir(path):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
    else:
        shutil.rmtree(path)


def _alternatives(segment: str) -> list[str]:
    start = segment.find("{")
    end = segment.find("}", start + 1)
    if start < 0 or end < 0:
        return [segment]
    head, choices, tail = segment[:start], segment[start + 1:end], segment[end + 1:]
    return [head + choice + rest for choice in choices.split(",") for rest in _alternatives(tail)]


def _segment_matches(name: str, segment: str) -> bool:
    return any(fnmatchcase(name, pattern) for pattern in _alternatives(segment))


def _entries(base: str) -> list[tuple[str, str, bool]]:
    try:
        with os.scandir(base or os.curdir) as scan:
            found = []
            for entry in scan:
                try:
                    is_dir = entry.is_dir()
                except OSError:
                    is_dir = False
                path = os.path.join(base, entry.name) if base else entry.name
                found.append((entry.name, path, is_dir))
    except OSError:
        return []
    return sorted(found)


def _expand(base: str, segments: Sequence[str]) -> Iterator[str]:
    head, tail = segments[0], segments[1:]
    if head == "**":
        if tail:
            yield from _expand(base, tail)
        else:
            yield base
        for _, path, is_dir in _entries(base):
            if is_dir:
                yield from _expand(path, segments)
            elif not tail:
                yield path
        return

    for name, path, is_dir in _entries(base):
        if not _segment_matches(name, head):
            continue
        if not tail:
            yield path
        elif is_dir:
            yield from _expand(path, tail)


def _glob(pattern: str) -> list[str]:
    """Expand a pattern where ``**`` spans any number of directories."""
    pattern = os.path.normpath(pattern)
    drive, rest = os.path.splitdrive(pattern)
    base = drive
    if rest.startswith(os.sep):
        base += os.sep
    segments = [segment for segment in rest.split(os.sep) if segment]

    literal = 0
    for segment in segments:
        if _META.search(segment):
            break
        base = os.path.join(base, segment) if base else segment
        literal += 1

    remaining = segments[literal:]
    if not remaining:
        return [base] if os.path.lexists(base) else []
    return list(dict.fromkeys(_expand(base, remaining)))


class GenericCpCopier:
    """Copies filtered files from directories into a temporary directory."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def filtered_copy_to_temp(self, directory: str, filters: Sequence[str]) -> str:
        """Copy the files under ``directory`` that match ``filters``."""
        return self.filtered_multi_copy_to_temp([DirToCopy(directory)], filters)

    def filtered_multi_copy_to_temp(
        self, dirs: Iterable[DirToCopy], filters: Sequence[str]
    ) -> str:
        """Copy matching files of every directory; return the temporary directory."""
        try:
            temp_dir = tempfile.mkdtemp(
                prefix="bosh-platform-commands-cpCopier-FilteredCopyToTemp"
            )
        except OSError as exc:
            raise wrap_error(exc, "Creating temporary directory") from exc

        try:
            os.chmod(temp_dir, 0o755)
        except OSError as exc:
            self.clean_up(temp_dir)
            raise wrap_error(exc, "Fixing permissions on temp dir") from exc

        for dir_to_copy in dirs:
            source = os.path.normpath(dir_to_copy.directory)
            files = [
                self._relative(match, source)
                for pattern in self._globs(source, filters)
                for match in _glob(pattern)
            ]
            try:
                self._copy_files(files, source, temp_dir, dir_to_copy.prefix)
            except Exception as exc:
                self.clean_up(temp_dir)
                raise wrap_error(exc, "Copying Files to Temp Dir") from exc

        return temp_dir

    def clean_up(self, temp_dir: str) -> None:
        """Remove a directory made by a copy; failures are only logged."""
        try:
            _remove_all(temp_dir)
        except OSError as exc:
            self._logger.error("Failed to clean up temporary directory %s: %r", temp_dir, exc)

    @staticmethod
    def _relative(path: str, source: str) -> str:
        if path.startswith(source):
            path = path[len(source):]
        if path[:1] in (os.sep, "/"):
            path = path[1:]
        return path

    @staticmethod
    def _globs(directory: str, filters: Sequence[str]) -> list[str]:
        globs = []
        for pattern in filters:
            source = os.path.join(directory, pattern)
            if os.path.isdir(source):
                globs.append(os.path.join(source, "**", "*"))
            else:
                globs.append(source)
        return globs

    @staticmethod
    def _copy_files(files: Iterable[str], source_dir: str, dest_dir: str, prefix: str) -> None:
        dest_dir = os.path.join(dest_dir, prefix) if prefix else dest_dir
        for relative in files:
            source = os.path.join(source_dir, relative)
            destination = os.path.join(dest_dir, relative)
            try:
                is_dir = os.path.isdir(source)
                os.stat(source)
            except OSError as exc:
                raise wrap_error(exc, "Getting file info for '%s'", source) from exc
            if is_dir:
                continue
            containing = os.path.dirname(destination)
            try:
                os.makedirs(containing, exist_ok=True)
            except OSError as exc:
                raise wrap_error(
                    exc, "Making destination directory '%s' for '%s'", containing, source
                ) from exc
            shutil.copyfile(source, destination)