# src/s3_publish/files.py
"""
File records flowing through a publish run.

A `FileRecord` is what a producer hands to the publisher. The publisher
never annotates it; whatever it decides about a file is returned as a
separate `SyncRecord`.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePath
from typing import Collection, Dict, Iterator, Optional

from s3_publish.diff import Classification

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """
    A local file offered for publishing.

    Attributes:
        relative_path (str): Path relative to the published directory,
            with OS-specific separators.
        contents (bytes, optional): The fully loaded contents, or None for
            entries without contents such as directories.
        is_streamed (bool): Whether the contents are only available as a
            stream. Such files are not supported.
        headers (Dict[str, str]): Per-file headers set by an upstream stage.
    """

    relative_path: str
    contents: Optional[bytes]
    is_streamed: bool = False
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_null(self) -> bool:
        return self.contents is None and not self.is_streamed


class FileState(Enum):
    """What the publisher did with a file."""

    CACHED = "cache"
    UPLOADED = "upload"
    SIMULATED = "simulate"


@dataclass(frozen=True)
class SyncRecord:
    """
    Sync metadata produced for one processed file.

    Attributes:
        path (str): The normalized relative path, used as manifest key.
        destination (str): The remote object key.
        fingerprint (str): The quoted content fingerprint.
        classification (Classification): Relation to the previous run.
        state (FileState): Whether it was cached, uploaded or simulated.
        headers (Dict[str, str]): Headers sent with the upload, if any.
        timestamp (datetime): When the record was produced.
    """

    path: str
    destination: str
    fingerprint: str
    classification: Classification
    state: FileState
    headers: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SyncResult:
    """
    The outcome of processing a file: a record, an error or neither.

    Attributes:
        file (FileRecord): The file as received from the producer.
        record (SyncRecord, optional): Sync metadata, None for skipped files.
        error (Exception, optional): The per-file failure, if any.
    """

    file: FileRecord
    record: Optional[SyncRecord] = None
    error: Optional[Exception] = None


def normalize_path(relative_path: str) -> str:
    """
    Converts a relative path to forward-slash form.

    Args:
        relative_path (str): A path with OS-specific separators.

    Returns:
        str: The path using ``/`` only.
    """
    normalized: str = relative_path.replace("\\", "/")
    if os.sep != "/":
        normalized = normalized.replace(os.sep, "/")
    return normalized


def scan_directory(
    base_dir: Path, exclude: Collection[Path] = ()
) -> Iterator[FileRecord]:
    """
    Lazily yields a record for every regular file below ``base_dir``.

    Files are read one at a time, in sorted order, as the consumer asks
    for them. Hidden files and directories are skipped.

    Args:
        base_dir (Path): The directory to publish.
        exclude (Collection[Path]): Files to leave out, such as the manifest.

    Yields:
        FileRecord: One record per file, contents loaded.
    """
    excluded = {p.resolve() for p in exclude}
    for path in sorted(base_dir.rglob("*")):
        relative: PurePath = path.relative_to(base_dir)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if not path.is_file() or path.resolve() in excluded:
            continue
        logger.debug(f"Reading '{relative}'")
        yield FileRecord(relative_path=str(relative), contents=path.read_bytes())
