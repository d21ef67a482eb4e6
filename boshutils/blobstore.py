"""Blob stores: local, external-command backed, digest-verifying and retrying."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .digest import SHA1, Algorithm, Digest, MultipleDigest
from .errors import BoshError, wrap_error

BLOBSTORE_TYPE_DUMMY = "dummy"
BLOBSTORE_TYPE_LOCAL = "local"

_BLOBSTORE_PATH_PERMISSIONS = 0o770
_LOGGER = logging.getLogger(__name__)


def _new_uuid() -> str:
    return str(uuid.uuid4())


def _remove_all(path: str) -> None:
    if os.path.islink(path) or not os.path.isdir(path):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
    else:
        shutil.rmtree(path)


def _make_temp_file(prefix: str) -> str:
    try:
        handle, name = tempfile.mkstemp(prefix=prefix)
    except OSError as exc:
        raise wrap_error(exc, "Creating temporary file") from exc
    os.close(handle)
    return name


class CommandRunner(ABC):
    """Runs external commands on behalf of a blob store."""

    @abstractmethod
    def command_exists(self, name: str) -> bool:
        """Tell whether the command ``name`` can be run."""

    @abstractmethod
    def run_command(self, name: str, *args: str) -> tuple[str, str, int]:
        """Run ``name`` with ``args``; return stdout, stderr and exit status.

        Raises when the command fails.
        """


class Blobstore(ABC):
    """Stores files as blobs identified by an id."""

    @abstractmethod
    def get(self, blob_id: str) -> str:
        """Fetch a blob into a local file and return that file's path."""

    @abstractmethod
    def clean_up(self, file_name: str) -> None:
        """Remove a file returned by :meth:`get`."""

    @abstractmethod
    def create(self, file_name: str) -> str:
        """Store the file and return the new blob's id."""

    @abstractmethod
    def validate(self) -> None:
        """Raise if the blob store is not usable."""

    @abstractmethod
    def delete(self, blob_id: str) -> None:
        """Remove a blob."""


class DigestBlobstore(ABC):
    """A blob store that checks and reports content digests."""

    @abstractmethod
    def get(self, blob_id: str, digest: Digest | MultipleDigest) -> str:
        """Fetch a blob, verify it against ``digest`` and return its local path."""

    @abstractmethod
    def clean_up(self, file_name: str) -> None:
        """Remove a file returned by :meth:`get`."""

    @abstractmethod
    def create(self, file_name: str) -> tuple[str, MultipleDigest]:
        """Store the file; return the blob id and the file's digests."""

    @abstractmethod
    def validate(self) -> None:
        """Raise if the blob store is not usable."""

    @abstractmethod
    def delete(self, blob_id: str) -> None:
        """Remove a blob."""


@dataclass(frozen=True)
class DummyBlobstore(Blobstore):
    """A blob store that stores nothing and never fails."""

    def get(self, blob_id: str) -> str:
        return ""

    def clean_up(self, file_name: str) -> None:
        return None

    def create(self, file_name: str) -> str:
        return ""

    def validate(self) -> None:
        return None

    def delete(self, blob_id: str) -> None:
        return None


@dataclass
class LocalBlobstore(Blobstore):
    """Keeps blobs as files in the directory given by ``blobstore_path``."""

    options: dict[str, Any]
    uuid_gen: Callable[[], str] = _new_uuid

    @property
    def path(self) -> str:
        return self.options["blobstore_path"]

    def get(self, blob_id: str) -> str:
        file_name = _make_temp_file("bosh-blobstore-external-Get")
        try:
            shutil.copyfile(os.path.join(self.path, blob_id), file_name)
        except OSError as exc:
            _remove_all(file_name)
            raise wrap_error(exc, "Copying file") from exc
        return file_name

    def clean_up(self, file_name: str) -> None:
        try:
            _remove_all(file_name)
        except OSError:
            pass

    def delete(self, blob_id: str) -> None:
        _remove_all(os.path.join(self.path, blob_id))

    def create(self, file_name: str) -> str:
        try:
            blob_id = self.uuid_gen()
        except Exception as exc:
            raise wrap_error(exc, "Generating blobID") from exc

        try:
            os.makedirs(self.path, mode=_BLOBSTORE_PATH_PERMISSIONS, exist_ok=True)
        except OSError as exc:
            raise wrap_error(exc, "Making blobstore path") from exc

        try:
            shutil.copyfile(file_name, os.path.join(self.path, blob_id))
        except OSError as exc:
            raise wrap_error(exc, "Copying file to blobstore path") from exc
        return blob_id

    def validate(self) -> None:
        if "blobstore_path" not in self.options:
            raise BoshError("missing blobstore_path")
        if not isinstance(self.options["blobstore_path"], str):
            raise BoshError("blobstore_path must be a string")


@dataclass
class ExternalBlobstore(Blobstore):
    """Delegates to a ``bosh-blobstore-<provider>`` command."""

    provider: str
    options: dict[str, Any]
    runner: CommandRunner
    config_file_path: str
    uuid_gen: Callable[[], str] = _new_uuid

    @property
    def executable(self) -> str:
        return f"bosh-blobstore-{self.provider}"

    def get(self, blob_id: str) -> str:
        file_name = _make_temp_file("bosh-blobstore-externalBlobstore-Get")
        try:
            self._run("get", blob_id, file_name)
        except BoshError:
            _remove_all(file_name)
            raise
        return file_name

    def clean_up(self, file_name: str) -> None:
        _remove_all(file_name)

    def delete(self, blob_id: str) -> None:
        raise BoshError("externalBlobstore doesn't implement Delete")

    def create(self, file_name: str) -> str:
        file_path = os.path.abspath(file_name)
        try:
            blob_id = self.uuid_gen()
        except Exception as exc:
            raise wrap_error(exc, "Generating UUID") from exc
        try:
            self._run("put", file_path, blob_id)
        except BoshError as exc:
            raise wrap_error(exc, "Making put command") from exc
        return blob_id

    def validate(self) -> None:
        if not self.runner.command_exists(self.executable):
            raise BoshError(f"executable {self.executable} not found in PATH")
        self._write_config_file()

    def _write_config_file(self) -> None:
        try:
            config = json.dumps(self.options, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise wrap_error(exc, "Marshalling JSON") from exc
        try:
            with open(self.config_file_path, "w", encoding="utf-8") as stream:
                stream.write(config)
        except OSError as exc:
            raise wrap_error(exc, "Writing config file") from exc

    def _run(self, method: str, src: str, dst: str) -> None:
        try:
            self.runner.run_command(
                self.executable, "-c", self.config_file_path, method, src, dst
            )
        except Exception as exc:
            raise wrap_error(exc, "Shelling out to %s cli", self.executable) from exc


@dataclass
class DigestVerifiableBlobstore(DigestBlobstore):
    """Verifies fetched blobs and digests created ones."""

    blobstore: Blobstore
    create_algorithms: Sequence[Algorithm]

    def __post_init__(self) -> None:
        self.create_algorithms = tuple(self.create_algorithms)

    def get(self, blob_id: str, digest: Digest | MultipleDigest) -> str:
        try:
            file_name = self.blobstore.get(blob_id)
        except Exception as exc:
            raise wrap_error(exc, "Getting blob from inner blobstore") from exc

        with open(file_name, "rb") as stream:
            try:
                digest.verify(stream)
            except BoshError as exc:
                raise wrap_error(exc, "Checking downloaded blob '%s'", blob_id) from exc
        return file_name

    def delete(self, blob_id: str) -> None:
        self.blobstore.delete(blob_id)

    def clean_up(self, file_name: str) -> None:
        self.blobstore.clean_up(file_name)

    def create(self, file_name: str) -> tuple[str, MultipleDigest]:
        digests = []
        for algorithm in self.create_algorithms:
            with open(file_name, "rb") as stream:
                digests.append(algorithm.create_digest(stream))
        if not digests:
            raise ValueError("no digests have been provided")
        multiple_digest = MultipleDigest(tuple(digests))
        return self.blobstore.create(file_name), multiple_digest

    def validate(self) -> None:
        self.blobstore.validate()


@dataclass
class RetryableBlobstore(DigestBlobstore):
    """Retries gets and creates up to ``max_tries`` times."""

    blobstore: DigestBlobstore
    max_tries: int
    logger: logging.Logger = field(default=_LOGGER)

    def get(self, blob_id: str, digest: Digest | MultipleDigest) -> str:
        last_error: Exception | None = None
        for attempt in range(1, self.max_tries + 1):
            try:
                return self.blobstore.get(blob_id, digest)
            except Exception as exc:
                last_error = exc
                self.logger.info(
                    "Failed to get blob with error '%s', attempt %d out of %d",
                    exc, attempt, self.max_tries,
                )
        raise wrap_error(last_error, "Getting blob from inner blobstore") from last_error

    def clean_up(self, file_name: str) -> None:
        self.blobstore.clean_up(file_name)

    def delete(self, blob_id: str) -> None:
        self.blobstore.delete(blob_id)

    def create(self, file_name: str) -> tuple[str, MultipleDigest]:
        last_error: Exception | None = None
        for attempt in range(1, self.max_tries + 1):
            try:
                return self.blobstore.create(file_name)
            except Exception as exc:
                last_error = exc
                self.logger.info(
                    "Failed to create blob with error %s, attempt %d out of %d",
                    exc, attempt, self.max_tries,
                )
        raise wrap_error(last_error, "Creating blob in inner blobstore") from last_error

    def validate(self) -> None:
        if self.max_tries < 1:
            raise BoshError("Max tries must be > 0")
        self.blobstore.validate()


@dataclass
class Provider:
    """Builds validated, digest-verifying, retrying blob stores by type."""

    runner: CommandRunner
    config_dir: str
    logger: logging.Logger = field(default=_LOGGER)
    uuid_gen: Callable[[], str] = _new_uuid

    def get(self, store_type: str, options: dict[str, Any]) -> DigestBlobstore:
        """Return a blob store of ``store_type`` configured with ``options``."""
        blobstore: Blobstore
        if store_type == BLOBSTORE_TYPE_DUMMY:
            blobstore = DummyBlobstore()
        elif store_type == BLOBSTORE_TYPE_LOCAL:
            blobstore = LocalBlobstore(options, self.uuid_gen)
        else:
            blobstore = ExternalBlobstore(
                store_type,
                options,
                self.runner,
                os.path.join(self.config_dir, f"blobstore-{store_type}.json"),
                self.uuid_gen,
            )

        verifiable = DigestVerifiableBlobstore(blobstore, (SHA1,))
        retryable = RetryableBlobstore(verifiable, 3, self.logger)

        try:
            blobstore.validate()
        except BoshError as exc:
            raise wrap_error(exc, "Validating blobstore") from exc
        return retryable