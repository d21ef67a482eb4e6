# boshutils

Building blocks for storing blobs and checking their contents:

- `boshutils.errors`: error types that chain a message onto its cause.
- `boshutils.digest`: SHA-1, SHA-256 and SHA-512 digests, and sets of digests.
- `boshutils.certpool`: parsing a bundle of PEM certificates.
- `boshutils.assertions`: test assertions for JSON output and file paths.
- `boshutils.copier`, `boshutils.mover`, `boshutils.compressor`: copying files by
  glob filters, moving files across devices, and gzipped tarballs.
- `boshutils.blobstore`: local, external and dummy blob stores, plus wrappers that
  verify digests and retry.

The only runtime dependency is `cryptography`. `certpool` uses it.

## Errors

```python
from boshutils.errors import wrap_error, short_message

try:
    open("/missing")
except OSError as cause:
    err = wrap_error(cause, "Copying blob '%s'", "blob-id")
    print(err)                 # Copying blob 'blob-id': [Errno 2] ...
```

- `BoshError` is the base class of every error the package raises.
- `wrap_error(cause, message, *args)` formats `message % args`. It returns a
  `ComplexError` whose text is `"<message>: <cause>"`.
- `wrap_complex_error(cause, err)` does the same for an error you already have.
  A `None` cause is shown as `<nil cause>`.
- `ComplexError.short_error()` and `short_message(err)` build the same text, but
  use the `short_error()` of each part wherever a part has one.
- `UserError(message)` is an error meant to be shown to the user as it is.
- `MultiError(*errors)` joins the messages of several errors, one per line.

## Digests

```python
from boshutils.digest import MultipleDigest, SHA1, SHA256

digest = MultipleDigest.parse(
    "07e1306432667f916639d47481edc4f2ca456454;"
    "sha256:b1e66f505465c28d705cf587b041a6506cfe749f7aa4159d8a3f45cc53f1fb23"
)
digest.verify_file_path("release.tgz")      # raises on mismatch

with open("release.tgz", "rb") as stream:
    fresh = MultipleDigest.from_stream(stream, [SHA1, SHA256])
print(fresh.to_json())
```

- `ShaAlgorithm` computes digests. The instances `SHA1`, `SHA256` and `SHA512` are
  provided. `UnknownAlgorithm(name)` carries only a name, and its `create_digest`
  raises `DigestError`.
- `Digest(algorithm, value)` holds one digest. A leading `"<algorithm>:"` in `value`
  is dropped. `str()` leaves the prefix off SHA-1 digests and keeps it on all
  others. `verify(stream)` and `verify_file_path(path)` raise `DigestError` on a
  mismatch.
- `MultipleDigest` is a `;`-separated set of digests. Use it as follows:
  - Build one with `parse(text)`, `from_json(data)`, `from_stream(stream, algorithms)`
    or `from_path(path, algorithms)`.
  - When parsing, a digest without a prefix is read as SHA-1, and empty pieces are
    skipped.
  - Algorithm names and values must be alphanumeric. Unknown algorithm names are
    kept.
  - `verify` checks against the strongest digest in the set, in the order SHA-512,
    then SHA-256, then SHA-1, then the first digest. It fails if two digests in the
    set share an algorithm.
  - `digest_for(algorithm)` returns the digest for one algorithm.
  - `to_json()` renders the set as a JSON string.

## Certificates

`cert_pool_from_pem(pem_data)` returns a list of `cryptography.x509.Certificate`. It
raises `BoshError` in these cases:

- a block is not a `CERTIFICATE`;
- a block has headers;
- text outside the blocks is not whitespace;
- a certificate does not parse.

## Test assertions

- `matches_json(obj, expected)` raises `AssertionError` unless `obj` serialises to
  exactly the expected JSON. The JSON is compact and its keys are sorted.
  `expected` may be JSON text or a value.
- `lacks_json_key(obj, key)` raises `AssertionError` if `obj` serialises to an
  object that has `key`.
- `MatchPath(path).match(actual)` compares the two paths after normalising them.
  On Windows, a path with a leading slash is first made absolute. `failure_message`
  and `negated_failure_message` give text to report with.

## File utilities

- `GenericCpCopier().filtered_copy_to_temp(directory, filters)` copies the regular
  files that match the filters into a fresh temporary directory, and returns that
  directory. It sets the directory's mode to 0755. In the filters, `**` matches any
  number of directories, and a filter that names a directory copies all of it.
  - `filtered_multi_copy_to_temp(dirs, filters)` takes a list of `DirToCopy` entries.
    Each has a `directory` and an optional `prefix` to copy under.
  - `clean_up(temp_dir)` removes the directory and only logs a failure.
- `FileMover().move(old, new)` renames the path. If the rename crosses devices, it
  copies and then deletes instead.
- `TarballCompressor` works with gzipped tarballs through the standard `tarfile`
  module:
  - `compress_files_in_dir(directory)` and
    `compress_specific_files_in_dir(directory, files)` return the path of a new
    temporary tarball.
  - `decompress_file_to_dir(tarball, directory, options)` extracts into a directory
    that must already exist. `CompressorOptions` has three fields:
    - `same_owner`: when false, entries are owned by the current user.
    - `path_in_archive`: extract only this path.
    - `strip_components`: drop this many leading path components.
  - `clean_up(tarball)` deletes the tarball.

## Blobstores

```python
from boshutils.blobstore import CommandRunner, Provider
from boshutils.errors import BoshError


class NoCommands(CommandRunner):
    def command_exists(self, name):
        return False

    def run_command(self, name, *args):
        raise BoshError(f"cannot run {name}")


provider = Provider(NoCommands(), "/etc/blobstore")
store = provider.get("local", {"blobstore_path": "/var/blobs"})
blob_id, digest = store.create("/tmp/package.tgz")
path = store.get(blob_id, digest)
store.clean_up(path)
```

- `DummyBlobstore` stores nothing and never fails.
- `LocalBlobstore(options)` keeps blobs as files under `options["blobstore_path"]`,
  which it creates with mode 0770. Blob ids are random UUIDs.
- `ExternalBlobstore(provider, options, runner, config_file_path)` works through a
  `CommandRunner`. It calls `bosh-blobstore-<provider> -c <config> get|put <src>
  <dst>`. `validate()` checks that the command exists and writes `options` to the
  config file as JSON. `delete` is not supported.
- `DigestVerifiableBlobstore(blobstore, algorithms)` verifies each fetched file
  against the given digest. On `create` it returns the blob id together with a
  `MultipleDigest` of the file.
- `RetryableBlobstore(blobstore, max_tries)` retries `get` and `create`, and logs
  each failure with `logging`.
- `Provider(runner, config_dir).get(store_type, options)` builds a store from its
  type and options:
  - `"dummy"` and `"local"` build those stores; any other type is an external store
    whose config is written to `<config_dir>/blobstore-<type>.json`.
  - The store is wrapped to verify SHA-1 digests and to try each get or create up
    to three times.
  - The store is validated before it is returned.

## What this package does not do

The package starts no processes. `CommandRunner` is an abstract class: an external
blob store works only with a runner that you supply. There is no command-line
tool.

## Running the tests

Install the `test` extra and run `pytest` from the project root.