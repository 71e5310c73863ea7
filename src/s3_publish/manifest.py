# src/s3_publish/manifest.py
"""
Handles the persisted manifest of published objects.

The manifest is a JSON object mapping each normalized relative path to the
quoted fingerprint of the contents last published under it. A missing or
damaged manifest is never fatal: it simply means every file is new.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

from s3_publish.exceptions import ManifestLoadError

logger: logging.Logger = logging.getLogger(__name__)

Manifest = Dict[str, str]


class ManifestStore:
    """
    Loads and persists manifests as UTF-8 JSON files.

    Writes go to a temporary sibling file that is then renamed over the
    target, so a checkpoint interrupted half way leaves the previous
    manifest intact.
    """

    def load(self, path: Path) -> Manifest:
        """
        Reads a manifest, falling back to an empty one.

        Args:
            path (Path): The manifest file.

        Returns:
            Manifest: The stored mapping, or ``{}`` if the file is absent,
                unreadable or malformed.
        """
        try:
            manifest: Manifest = self._read(path)
        except ManifestLoadError as e:
            logger.debug(f"Starting from an empty manifest: {e}")
            return {}
        logger.info(f"Loaded manifest '{path}' with {len(manifest)} entries.")
        return manifest

    def save(self, manifest: Manifest, path: Path) -> None:
        """
        Serializes the manifest, fully replacing the previous file.

        Args:
            manifest (Manifest): The mapping to persist.
            path (Path): The manifest file.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(manifest, fh)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved manifest '{path}' with {len(manifest)} entries.")

    def force_reset(self, path: Path) -> Manifest:
        """
        Deletes the persisted manifest, if any.

        Args:
            path (Path): The manifest file.

        Returns:
            Manifest: A new, empty manifest.
        """
        try:
            path.unlink()
            logger.info(f"Removed manifest '{path}'.")
        except FileNotFoundError:
            pass
        return {}

    def _read(self, path: Path) -> Manifest:
        """
        Reads and validates a manifest file.

        Args:
            path (Path): The manifest file.

        Returns:
            Manifest: The parsed mapping.

        Raises:
            ManifestLoadError: If the file cannot be read or is not a JSON
                object of strings.
        """
        try:
            data: Any = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ManifestLoadError(f"'{path}' does not exist") from e
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise ManifestLoadError(f"'{path}' is unreadable: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise ManifestLoadError(f"'{path}' is not a path -> fingerprint object")
        return data
