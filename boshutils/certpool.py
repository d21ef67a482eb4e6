"""Build a pool of X.509 certificates from PEM-encoded text."""

from __future__ import annotations

import base64
import binascii
import re
from itertools import count, takewhile

from cryptography import x509

from .errors import BoshError, wrap_error

_BLOCK = re.compile(
    rb"-----BEGIN ([^\r\n-]+)-----[ \t]*\r?\n(.*?)-----END \1-----[ \t]*(?:\r?\n|$)",
    re.DOTALL,
)


def _decode_body(body: bytes) -> tuple[list[bytes], bytes]:
    """Split a PEM body into its header lines and its decoded payload."""
    lines = [line.strip() for line in body.splitlines()]
    headers = list(takewhile(lambda line: b":" in line, lines))
    payload = b"".join(lines[len(headers):])
    return headers, base64.b64decode(payload, validate=True)


def cert_pool_from_pem(pem_data: str | bytes) -> list[x509.Certificate]:
    """Parse every certificate in ``pem_data``.

    Every PEM block must be a certificate without headers; text that is not
    a PEM block is only allowed as surrounding whitespace.
    """
    rest = pem_data.encode("ascii") if isinstance(pem_data, str) else bytes(pem_data)
    certificates: list[x509.Certificate] = []

    for index in count(1):
        if not rest:
            break

        match = _BLOCK.search(rest)
        decoded = None
        if match is not None:
            try:
                decoded = _decode_body(match.group(2))
            except (binascii.Error, ValueError):
                decoded = None

        if decoded is None:
            if rest.strip():
                raise BoshError(f"Parsing certificate {index}: Missing PEM block")
            break

        rest = rest[match.end():]
        headers, der = decoded

        if match.group(1) != b"CERTIFICATE" or headers:
            raise BoshError(f"Parsing certificate {index}: Not a certificate")

        try:
            certificates.append(x509.load_der_x509_certificate(der))
        except ValueError as exc:
            raise wrap_error(exc, "Parsing certificate %d", index) from exc

    return certificates