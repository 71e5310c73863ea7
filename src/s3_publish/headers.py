# src/s3_publish/headers.py
"""Derivation of upload headers for a published file."""

import mimetypes
from typing import Dict, Mapping, Optional

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

# Types that are text even though they do not live under "text/"
_TEXT_LIKE_TYPES = frozenset(
    {
        "application/json",
        "application/javascript",
        "application/x-javascript",
        "application/ecmascript",
        "application/xml",
        "application/xhtml+xml",
        "application/manifest+json",
        "application/ld+json",
        "image/svg+xml",
    }
)


def content_type_for(path: str) -> str:
    """
    Guesses the Content-Type of a file from its name.

    Text-like types get a UTF-8 charset suffix; binary types do not.

    Args:
        path (str): The file path or name.

    Returns:
        str: E.g. ``"text/css; charset=utf-8"`` or ``"image/png"``.
    """
    mime_type: Optional[str]
    mime_type, _ = mimetypes.guess_type(path, strict=False)
    if mime_type is None:
        return DEFAULT_CONTENT_TYPE
    if mime_type.startswith("text/") or mime_type in _TEXT_LIKE_TYPES:
        return f"{mime_type}; charset=utf-8"
    return mime_type


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    lowered: str = name.lower()
    return any(key.lower() == lowered for key in headers)


def build_headers(
    path: str,
    size: int,
    defaults: Mapping[str, str],
    overrides: Mapping[str, str],
) -> Dict[str, str]:
    """
    Merges default and per-file headers and fills in missing entity headers.

    Args:
        path (str): The normalized path, used to guess the Content-Type.
        size (int): The content length in bytes.
        defaults (Mapping[str, str]): Headers configured for every file.
        overrides (Mapping[str, str]): Headers set for this file, which win
            over the defaults.

    Returns:
        Dict[str, str]: The headers to upload with.
    """
    headers: Dict[str, str] = {}
    for source in (defaults, overrides):
        for name, value in source.items():
            # Case-insensitive override keeps a single spelling per header
            for existing in [k for k in headers if k.lower() == name.lower()]:
                del headers[existing]
            headers[name] = value

    if not _has_header(headers, "Content-Type"):
        headers["Content-Type"] = content_type_for(path)
    if not _has_header(headers, "Content-Length"):
        headers["Content-Length"] = str(size)
    return headers
