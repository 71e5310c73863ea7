# src/s3_publish/diff.py
"""
Diff engine deciding what a publish run uploads and deletes.

The engine compares each observed file against the manifest of the previous
run and builds the manifest of the current one. Once the file stream is
exhausted, paths known to the old manifest but never seen again form the
delete set.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional

from s3_publish.manifest import Manifest

logger: logging.Logger = logging.getLogger(__name__)


class Classification(Enum):
    """How a path relates to the previous run."""

    NEW = "new"
    UNCHANGED = "unchanged"
    REPLACED = "replaced"
    DELETED = "deleted"


@dataclass(frozen=True)
class Decision:
    """
    The outcome of observing a single file.

    Attributes:
        classification (Classification): Relation to the old manifest.
        needs_upload (bool): Whether the file must be sent to the bucket.
    """

    classification: Classification
    needs_upload: bool


@dataclass
class SyncReport:
    """
    Summary of a publish run, per reporting category.

    Attributes:
        new (List[str]): Paths absent from the old manifest.
        ignored (List[str]): Paths whose fingerprint did not change.
        replaced (List[str]): Paths whose fingerprint changed.
        deleted (List[str]): Paths removed from the bucket.
        kept (List[str]): Stale paths left in place because cleaning is off.
        failed (List[str]): Paths whose upload failed.
        cleanup_error (str, optional): Why deleting stale objects failed.
        complete (bool): False when the file stream stopped early, in which
            case stale paths are kept rather than deleted.
    """

    new: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    replaced: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    cleanup_error: Optional[str] = None
    complete: bool = True

    @property
    def ok(self) -> bool:
        return not self.failed and self.cleanup_error is None and self.complete


class DiffEngine:
    """
    Classifies files against the previous manifest and tracks the new one.

    Cached files are recorded in the new manifest as soon as they are
    observed. Files that need an upload are only recorded through
    :meth:`commit` once the upload went through; :meth:`rollback` keeps the
    previous entry for a failed upload so the path is neither lost from the
    manifest nor scheduled for deletion.
    """

    def __init__(self, old_manifest: Mapping[str, str], force: bool = False) -> None:
        """
        Initialize the engine.

        Args:
            old_manifest (Mapping[str, str]): The manifest of the last run.
                Copied, never modified.
            force (bool): Treat every file as needing an upload.
        """
        self._old: Manifest = dict(old_manifest)
        self._new: Manifest = {}
        self._force: bool = force

    @property
    def old_manifest(self) -> Mapping[str, str]:
        return MappingProxyType(self._old)

    @property
    def new_manifest(self) -> Mapping[str, str]:
        return MappingProxyType(self._new)

    def observe(self, path: str, fingerprint: str) -> Decision:
        """
        Classifies a file and records it if it is unchanged.

        Args:
            path (str): The normalized relative path.
            fingerprint (str): The fingerprint of the current contents.

        Returns:
            Decision: The classification and whether to upload.
        """
        previous: Optional[str] = self._old.get(path)
        classification: Classification
        if previous is None:
            classification = Classification.NEW
        elif previous == fingerprint:
            classification = Classification.UNCHANGED
        else:
            classification = Classification.REPLACED

        needs_upload: bool = self._force or classification != Classification.UNCHANGED
        if not needs_upload:
            self._new[path] = fingerprint
        return Decision(classification=classification, needs_upload=needs_upload)

    def commit(self, path: str, fingerprint: str) -> None:
        """
        Records a file whose upload succeeded. Later writes win.

        Args:
            path (str): The normalized relative path.
            fingerprint (str): The fingerprint of the uploaded contents.
        """
        self._new[path] = fingerprint

    def rollback(self, path: str) -> None:
        """
        Keeps the previous state of a path whose upload failed.

        Args:
            path (str): The normalized relative path.
        """
        if path in self._new:
            # Seen earlier in this run: that entry still describes the bucket
            return
        previous: Optional[str] = self._old.get(path)
        if previous is not None:
            self._new[path] = previous

    def retain(self, paths: Iterable[str]) -> None:
        """
        Carries old entries of paths this run never reached into the new manifest.

        Args:
            paths (Iterable[str]): Paths of the old manifest to keep as they were.
        """
        for path in paths:
            previous: Optional[str] = self._old.get(path)
            if previous is not None and path not in self._new:
                self._new[path] = previous

    def delete_set(self) -> List[str]:
        """
        Lists paths of the old manifest that this run never recorded.

        Returns:
            List[str]: The stale paths, in old-manifest order.
        """
        return [path for path in self._old if path not in self._new]

    def report(self) -> SyncReport:
        """
        Builds the per-category report of both manifests.

        Stale paths are reported as deleted; callers that skip the cleanup
        move them elsewhere.

        Returns:
            SyncReport: The new, ignored, replaced and deleted paths.
        """
        report: SyncReport = SyncReport()
        for path, fingerprint in self._new.items():
            previous: Optional[str] = self._old.get(path)
            if previous is None:
                report.new.append(path)
            elif previous == fingerprint:
                report.ignored.append(path)
            else:
                report.replaced.append(path)
        for path in self._old:
            if path not in self._new:
                report.deleted.append(path)
        return report
