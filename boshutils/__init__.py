"""Blobstores, content digests, PEM certificates, file utilities and chained errors."""

__version__ = "0.1.0"