# tests/conftest.py
"""
Pytest configuration and fixtures for the s3-publish tests.

This module provides:
- An in-memory `Storage` implementation recording every remote call.
- A factory for validated `Config` objects pointing at a temporary manifest.
- Helpers for building file records and persisted manifests.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

import pytest

from s3_publish.config import Config, ConnectConfig, PublishSettings
from s3_publish.exceptions import CleanupError, UploadError
from s3_publish.files import FileRecord
from s3_publish.fingerprint import fingerprint
from s3_publish.storage import headers_to_put_params

ROOT_DIR: str = "site"
BUCKET: str = "test-bucket"


class FakeStorage:
    """
    Records `put` and `delete_many` calls instead of talking to a bucket.

    Attributes:
        puts (List[Tuple[str, bytes, Dict[str, str]]]): Every upload, in order.
        deletes (List[Tuple[List[str], bool]]): Every delete request.
        fail_keys (Set[str]): Keys whose upload raises `UploadError`.
        fail_delete (bool): Whether `delete_many` raises `CleanupError`.
        errors (Dict[str, Exception]): Exceptions raised by the next upload
            of a key, once each.
    """

    def __init__(self) -> None:
        self.puts: List[Tuple[str, bytes, Dict[str, str]]] = []
        self.deletes: List[Tuple[List[str], bool]] = []
        self.fail_keys: Set[str] = set()
        self.fail_delete: bool = False
        self.errors: Dict[str, Exception] = {}

    @property
    def put_keys(self) -> List[str]:
        return [key for key, _, _ in self.puts]

    async def put(self, key: str, body: bytes, headers: Mapping[str, str]) -> None:
        # Header values are checked the way S3Storage checks them
        headers_to_put_params(headers)
        if key in self.errors:
            raise self.errors.pop(key)
        if key in self.fail_keys:
            raise UploadError(key, "simulated failure")
        self.puts.append((key, body, dict(headers)))

    async def delete_many(self, keys: Sequence[str], quiet: bool = True) -> None:
        if self.fail_delete:
            raise CleanupError("simulated cleanup failure")
        self.deletes.append((list(keys), quiet))


@pytest.fixture(scope="function")
def storage() -> FakeStorage:
    """
    Provide a fresh in-memory storage.

    Returns:
        FakeStorage: A storage with no recorded calls.
    """
    return FakeStorage()


@pytest.fixture(scope="function")
def cache_file(tmp_path: Path) -> Path:
    """
    Provide an isolated manifest location.

    Args:
        tmp_path (Path): The pytest fixture for a temporary directory.

    Returns:
        Path: A manifest path that does not exist yet.
    """
    return tmp_path / ".s3-publish-cache-test"


@pytest.fixture(scope="function")
def make_config(cache_file: Path) -> Callable[..., Config]:
    """
    Provide a factory for configurations using the temporary manifest.

    Args:
        cache_file (Path): The isolated manifest location.

    Returns:
        Callable[..., Config]: Accepts `PublishSettings` overrides and an
            optional ``headers`` mapping.
    """

    def _factory(headers: Optional[Dict[str, str]] = None, **settings: Any) -> Config:
        return Config(
            connect=ConnectConfig(bucket=BUCKET),
            settings=PublishSettings(root_dir=ROOT_DIR, **settings),
            headers=headers or {},
            cache_file_name=str(cache_file),
        )

    return _factory


@pytest.fixture(scope="function")
def write_manifest(cache_file: Path) -> Callable[[Dict[str, str]], None]:
    """
    Provide a helper persisting a manifest as a previous run would.

    Args:
        cache_file (Path): The isolated manifest location.

    Returns:
        Callable[[Dict[str, str]], None]: Writes the given mapping.
    """

    def _writer(manifest: Dict[str, str]) -> None:
        cache_file.write_text(json.dumps(manifest), encoding="utf-8")

    return _writer


@pytest.fixture(scope="function")
def read_manifest(cache_file: Path) -> Callable[[], Dict[str, str]]:
    """
    Provide a helper reading the persisted manifest back.

    Args:
        cache_file (Path): The isolated manifest location.

    Returns:
        Callable[[], Dict[str, str]]: Returns the parsed mapping.
    """

    def _reader() -> Dict[str, str]:
        return json.loads(cache_file.read_text(encoding="utf-8"))

    return _reader


def make_file(path: str, contents: Optional[bytes] = b"", **kwargs: Any) -> FileRecord:
    """
    Build a file record.

    Args:
        path (str): The relative path.
        contents (bytes, optional): The file contents.

    Returns:
        FileRecord: The record.
    """
    return FileRecord(relative_path=path, contents=contents, **kwargs)


def etag(contents: bytes) -> str:
    """Shorthand for the fingerprint a manifest stores for ``contents``."""
    return fingerprint(contents)
