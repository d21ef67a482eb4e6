"""Content digests: single-algorithm digests and multi-algorithm digest sets."""

from __future__ import annotations

import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Sequence

from .errors import BoshError, wrap_error

_CHUNK_SIZE = 64 * 1024
_SHA_NAMES = frozenset({"sha1", "sha256", "sha512"})


class DigestError(BoshError):
    """A digest could not be computed, parsed or verified."""


class Algorithm(ABC):
    """A named digest algorithm."""

    name: str

    @abstractmethod
    def create_digest(self, stream: BinaryIO) -> "Digest":
        """Compute the digest of everything left in ``stream``."""


@dataclass(frozen=True)
class ShaAlgorithm(Algorithm):
    """One of the SHA family algorithms: sha1, sha256 or sha512."""

    name: str

    def __post_init__(self) -> None:
        if self.name not in _SHA_NAMES:
            raise ValueError(f"Unsupported SHA algorithm '{self.name}'")

    def create_digest(self, stream: BinaryIO) -> "Digest":
        hasher = hashlib.new(self.name)
        try:
            for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
                hasher.update(chunk)
        except OSError as exc:
            raise wrap_error(exc, "Copying file for digest calculation") from exc
        return Digest(self, hasher.hexdigest())


@dataclass(frozen=True)
class UnknownAlgorithm(Algorithm):
    """An algorithm known only by name; it cannot compute digests."""

    name: str

    def create_digest(self, stream: BinaryIO) -> "Digest":
        raise DigestError(f"Unable to create digest of unknown algorithm '{self.name}'")


SHA1 = ShaAlgorithm("sha1")
SHA256 = ShaAlgorithm("sha256")
SHA512 = ShaAlgorithm("sha512")

_PREFERRED = (SHA512, SHA256, SHA1)
_KNOWN = {algo.name: algo for algo in _PREFERRED}


def _open_for_digest(file_path: str) -> BinaryIO:
    try:
        return open(file_path, "rb")
    except OSError as exc:
        raise wrap_error(exc, "Calculating digest of '%s'", file_path) from exc


@dataclass(frozen=True)
class Digest:
    """A digest value computed with a single algorithm."""

    algorithm: Algorithm
    value: str

    def __post_init__(self) -> None:
        prefix = self.algorithm.name + ":"
        if self.value.startswith(prefix):
            object.__setattr__(self, "value", self.value[len(prefix):])

    def __str__(self) -> str:
        if self.algorithm.name == SHA1.name:
            return self.value
        return f"{self.algorithm.name}:{self.value}"

    def verify(self, stream: BinaryIO) -> None:
        """Raise unless the content of ``stream`` has this digest."""
        try:
            computed = self.algorithm.create_digest(stream)
        except BoshError as exc:
            raise wrap_error(exc, "Computing digest from stream") from exc
        if str(self) != str(computed):
            raise DigestError(
                f"Expected stream to have digest '{self}' but was '{computed}'"
            )

    def verify_file_path(self, file_path: str) -> None:
        """Raise unless the file at ``file_path`` has this digest."""
        with _open_for_digest(file_path) as stream:
            self.verify(stream)


def _is_alphanumeric(text: str) -> bool:
    return bool(text) and all(
        ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch.isdecimal() for ch in text
    )


def _parse_digest(text: str) -> Digest:
    pieces = text.split(":", 1)
    if not all(_is_alphanumeric(piece) for piece in pieces):
        raise DigestError(
            "Unable to parse digest string. Digest and algorithm key can only "
            "contain alpha-numeric characters."
        )
    if len(pieces) == 1:
        # Unprefixed digests are historically sha1.
        pieces = ["sha1", pieces[0]]
    name, value = pieces
    algorithm = _KNOWN.get(name) or UnknownAlgorithm(name)
    return Digest(algorithm, value)


@dataclass(frozen=True)
class MultipleDigest:
    """A set of digests of the same content under different algorithms."""

    digests: tuple[Digest, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "digests", tuple(self.digests))

    @classmethod
    def from_stream(
        cls, stream: BinaryIO, algorithms: Sequence[Algorithm]
    ) -> "MultipleDigest":
        """Digest a seekable stream once per algorithm."""
        if not algorithms:
            raise DigestError("must provide at least one algorithm")
        digests = []
        for algorithm in algorithms:
            stream.seek(0)
            digests.append(algorithm.create_digest(stream))
        return cls(tuple(digests))

    @classmethod
    def from_path(
        cls, file_path: str, algorithms: Sequence[Algorithm]
    ) -> "MultipleDigest":
        """Digest the file at ``file_path`` once per algorithm."""
        with _open_for_digest(file_path) as stream:
            return cls.from_stream(stream, algorithms)

    @classmethod
    def parse(cls, text: str) -> "MultipleDigest":
        """Parse a ``;``-separated digest string such as ``abc;sha256:def``."""
        text = text.removeprefix('"').removesuffix('"')
        digests = [_parse_digest(piece) for piece in text.split(";") if piece]
        if not digests:
            raise DigestError(
                "No digest algorithm found. Supported algorithms: sha1, sha256, sha512"
            )
        result = cls(tuple(digests))
        result._validate()
        return result

    @classmethod
    def from_json(cls, data: str | bytes) -> "MultipleDigest":
        """Parse a JSON string value holding a digest string."""
        value = json.loads(data)
        if not isinstance(value, str):
            raise DigestError("Expected a JSON string holding digests")
        return cls.parse(value)

    def to_json(self) -> str:
        """Render as a JSON string value."""
        if not self.digests:
            raise DigestError("no digests have been provided")
        return json.dumps(str(self))

    def __str__(self) -> str:
        return ";".join(str(digest) for digest in self.digests)

    @property
    def algorithm(self) -> Algorithm:
        """The algorithm of the strongest digest."""
        return self._strongest().algorithm

    def verify(self, stream: BinaryIO) -> None:
        """Raise unless the content of ``stream`` matches the strongest digest."""
        self._validate()
        self._strongest().verify(stream)

    def verify_file_path(self, file_path: str) -> None:
        """Raise unless the file at ``file_path`` matches the strongest digest."""
        with _open_for_digest(file_path) as stream:
            self.verify(stream)

    def digest_for(self, algorithm: Algorithm) -> Digest:
        """Return the digest made with ``algorithm``."""
        for digest in self.digests:
            if digest.algorithm.name == algorithm.name:
                return digest
        raise DigestError("digest-for-algorithm-not-present")

    def _validate(self) -> None:
        if not self.digests:
            raise DigestError("Expected to find at least one digest")
        seen: set[str] = set()
        for digest in self.digests:
            name = digest.algorithm.name
            if name in seen:
                raise DigestError(
                    f"Multiple digests of the same algorithm '{name}' "
                    f"found in digests '{self}'"
                )
            seen.add(name)

    def _strongest(self) -> Digest:
        if not self.digests:
            raise DigestError("no digests have been provided")
        for preferred in _PREFERRED:
            for digest in self.digests:
                if digest.algorithm.name == preferred.name:
                    return digest
        return self.digests[0]


def _names(algorithms: Iterable[Algorithm]) -> list[str]:
    return [algorithm.name for algorithm in algorithms]