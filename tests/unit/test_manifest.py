# tests/unit/test_manifest.py
"""
Unit tests for the `ManifestStore` component and the fingerprint function.

These tests exercise the store against real files in a temporary directory.
"""

import json
from pathlib import Path
from typing import Dict

from s3_publish.fingerprint import fingerprint
from s3_publish.manifest import ManifestStore


def test_fingerprint_is_quoted_md5() -> None:
    """
    Tests that fingerprints are quoted MD5 hex digests, like S3 ETags.
    """
    assert fingerprint(b"") == '"d41d8cd98f00b204e9800998ecf8427e"'
    assert fingerprint(b"hello") == '"5d41402abc4b2a76b9719d911017c592"'
    assert fingerprint(b"hello") == fingerprint(b"hello")
    assert fingerprint(b"hello") != fingerprint(b"hello!")


def test_manifest_round_trip(tmp_path: Path) -> None:
    """
    Tests that a saved manifest loads back unchanged.

    Arrange:
        - Build a manifest with nested and non-ASCII paths.
    Act:
        - Save it, then load it with a new store.
    Assert:
        - The loaded mapping equals the saved one, including order.

    Args:
        tmp_path (Path): The temporary Path to use.
    """
    path: Path = tmp_path / "cache.json"
    manifest: Dict[str, str] = {
        "a/b.png": '"3858f62230ac3c915f300c664312c63f"',
        "index.html": fingerprint(b"<html></html>"),
        "docs/é.txt": fingerprint(b"accent"),
    }

    ManifestStore().save(manifest, path)
    loaded: Dict[str, str] = ManifestStore().load(path)

    assert loaded == manifest
    assert list(loaded) == list(manifest)
    assert json.loads(path.read_text(encoding="utf-8")) == manifest


def test_manifest_save_overwrites(tmp_path: Path) -> None:
    """
    Tests that saving fully replaces the previous contents.

    Args:
        tmp_path (Path): The temporary Path to use.
    """
    path: Path = tmp_path / "cache.json"
    store: ManifestStore = ManifestStore()
    store.save({"old.txt": '"1"', "other.txt": '"2"'}, path)
    store.save({"new.txt": '"3"'}, path)

    assert store.load(path) == {"new.txt": '"3"'}
    # No temporary files are left behind
    assert [p.name for p in tmp_path.iterdir()] == ["cache.json"]


def test_manifest_load_missing_file(tmp_path: Path) -> None:
    """
    Tests that a missing manifest loads as empty, the first-run condition.

    Args:
        tmp_path (Path): The temporary Path to use.
    """
    assert ManifestStore().load(tmp_path / "absent.json") == {}


def test_manifest_load_malformed(tmp_path: Path) -> None:
    """
    Tests that unparsable or wrongly shaped manifests load as empty.

    Arrange:
        - Write invalid JSON, a JSON list, and an object with non-string values.
    Act/Assert:
        - Each one loads as an empty manifest without raising.

    Args:
        tmp_path (Path): The temporary Path to use.
    """
    store: ManifestStore = ManifestStore()
    path: Path = tmp_path / "cache.json"

    for contents in ["{not json", '["a.png"]', '{"a.png": 1}', ""]:
        path.write_text(contents, encoding="utf-8")
        assert store.load(path) == {}

    path.write_bytes(b"\xff\xfe\x00")
    assert store.load(path) == {}


def test_manifest_load_directory(tmp_path: Path) -> None:
    """
    Tests that an unreadable manifest location loads as empty.

    Args:
        tmp_path (Path): The temporary Path to use.
    """
    assert ManifestStore().load(tmp_path) == {}


def test_manifest_force_reset(tmp_path: Path) -> None:
    """
    Tests that force reset removes the file and tolerates its absence.

    Args:
        tmp_path (Path): The temporary Path to use.
    """
    path: Path = tmp_path / "cache.json"
    store: ManifestStore = ManifestStore()
    store.save({"a.png": '"h1"'}, path)

    assert store.force_reset(path) == {}
    assert not path.exists()
    assert store.force_reset(path) == {}


def test_manifest_save_creates_parent(tmp_path: Path) -> None:
    """
    Tests that saving creates missing parent directories.

    Args:
        tmp_path (Path): The temporary Path to use.
    """
    path: Path = tmp_path / "nested" / "dir" / "cache.json"
    ManifestStore().save({"a.png": '"h1"'}, path)
    assert ManifestStore().load(path) == {"a.png": '"h1"'}
