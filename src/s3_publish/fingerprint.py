# src/s3_publish/fingerprint.py
"""Content fingerprints comparable with S3 entity tags."""

import hashlib


def fingerprint(data: bytes) -> str:
    """
    Computes the quoted MD5 hex digest of ``data``.

    The surrounding double quotes follow the ETag convention of S3-compatible
    backends, so a manifest value can be compared with a single-part
    object's ETag as is.

    Args:
        data (bytes): The raw file contents.

    Returns:
        str: The digest, e.g. ``'"d41d8cd98f00b204e9800998ecf8427e"'``.
    """
    return '"' + hashlib.md5(data).hexdigest() + '"'
