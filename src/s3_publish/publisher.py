# src/s3_publish/publisher.py
"""Core orchestration logic for a publish run."""

import asyncio
import logging
from typing import (
    AsyncIterable,
    AsyncIterator,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Union,
)

from s3_publish.config import Config, PublishSettings
from s3_publish.diff import Decision, DiffEngine, SyncReport
from s3_publish.exceptions import (
    CleanupError,
    ConfigurationError,
    PublishError,
    UnsupportedContentError,
    UploadError,
)
from s3_publish.files import (
    FileRecord,
    FileState,
    SyncRecord,
    SyncResult,
    normalize_path,
)
from s3_publish.fingerprint import fingerprint
from s3_publish.headers import build_headers
from s3_publish.manifest import Manifest, ManifestStore
from s3_publish.report import summary_line
from s3_publish.storage import Storage

logger: logging.Logger = logging.getLogger(__name__)

FileSource = Union[Iterable[FileRecord], AsyncIterable[FileRecord]]
ResultCallback = Callable[[SyncResult], None]


async def _iterate(files: FileSource) -> AsyncIterator[FileRecord]:
    """Walks a sync or async iterable of files as an async iterator."""
    if hasattr(files, "__aiter__"):
        async for file in files:  # type: ignore[union-attr]
            yield file
    else:
        for file in files:
            yield file


class Publisher:
    """
    Publishes a stream of files to a bucket, one file at a time.

    The publisher loads the manifest of the previous run on construction,
    uploads files whose fingerprint changed, checkpoints the new manifest
    every few uploads and, in `finish`, persists it and deletes remote
    objects whose local file disappeared.
    """

    def __init__(
        self,
        config: Config,
        storage: Storage,
        store: Optional[ManifestStore] = None,
        shutdown_event: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Initializes the publisher and loads the previous manifest.

        Args:
            config (Config): The validated configuration.
            storage (Storage): The remote storage capability.
            store (ManifestStore, optional): Manifest persistence.
            shutdown_event (asyncio.Event, optional): Stops `publish` early
                when set.
        """
        if not config.connect.bucket:
            raise ConfigurationError("Missing `connect.bucket` config value.")

        self._config: Config = config
        self._storage: Storage = storage
        self._store: ManifestStore = store or ManifestStore()
        self._shutdown_event: Optional[asyncio.Event] = shutdown_event
        self._uploads: int = 0
        self._failed: List[str] = []
        self._finished: bool = False

        old_manifest: Manifest
        if config.settings.force:
            old_manifest = self._store.force_reset(config.cache_file)
        else:
            old_manifest = self._store.load(config.cache_file)
        self._diff: DiffEngine = DiffEngine(old_manifest, force=config.settings.force)

    def destination_key(self, path: str) -> str:
        """
        Builds the remote key for a normalized path.

        Args:
            path (str): The normalized relative path.

        Returns:
            str: ``<root_dir>/<path>``.
        """
        return f"{self._config.settings.root_dir}/{path}"

    def _checkpoint(self) -> None:
        self._store.save(dict(self._diff.new_manifest), self._config.cache_file)

    async def process(self, file: FileRecord) -> Optional[SyncRecord]:
        """
        Classifies one file and uploads it if its contents changed.

        Args:
            file (FileRecord): The file to publish.

        Returns:
            Optional[SyncRecord]: What was done with the file, or None for
                files without contents, which are passed over.

        Raises:
            UnsupportedContentError: If the file contents are streamed.
            UploadError: If preparing or performing the upload fails.
        """
        if self._finished:
            raise PublishError("Cannot process files after the run finished.")
        if file.is_null:
            return None
        if file.is_streamed or file.contents is None:
            raise UnsupportedContentError(
                f"Stream content is not supported: '{file.relative_path}'"
            )

        settings: PublishSettings = self._config.settings
        path: str = settings.path_transform(normalize_path(file.relative_path))
        destination: str = self.destination_key(path)
        etag: str = fingerprint(file.contents)
        decision: Decision = self._diff.observe(path, etag)

        if not decision.needs_upload:
            logger.debug(f"Unchanged, skipping '{path}'")
            return SyncRecord(
                path=path,
                destination=destination,
                fingerprint=etag,
                classification=decision.classification,
                state=FileState.CACHED,
            )

        headers: Dict[str, str]
        try:
            headers = build_headers(
                path, len(file.contents), self._config.headers, file.headers
            )
            if not settings.simulate:
                await self._storage.put(destination, file.contents, headers)
        except Exception as e:
            self._diff.rollback(path)
            if path not in self._failed:
                self._failed.append(path)
            if isinstance(e, UploadError):
                raise
            raise UploadError(destination, f"{type(e).__name__}: {e}") from e

        self._diff.commit(path, etag)
        if path in self._failed:
            # An earlier record for the same path failed, this one went through
            self._failed.remove(path)

        if settings.simulate:
            logger.info(f"[simulate] Would upload '{destination}'")
            return SyncRecord(
                path=path,
                destination=destination,
                fingerprint=etag,
                classification=decision.classification,
                state=FileState.SIMULATED,
                headers=headers,
            )

        self._uploads += 1
        if self._uploads % settings.checkpoint_interval == 0:
            logger.debug(f"Checkpointing manifest after {self._uploads} uploads.")
            self._checkpoint()

        logger.debug(f"Uploaded '{path}' to '{destination}'")
        return SyncRecord(
            path=path,
            destination=destination,
            fingerprint=etag,
            classification=decision.classification,
            state=FileState.UPLOADED,
            headers=headers,
        )

    async def finish(self, complete: bool = True) -> SyncReport:
        """
        Persists the new manifest and removes stale remote objects.

        Must be called exactly once, after the last file. When the stream
        did not run to completion, paths it never reached cannot be told
        apart from removed ones: their old entries are carried into the
        saved manifest and no deletion is issued. Cleanup failures are
        logged and recorded on the report, never raised.

        Args:
            complete (bool): Whether every file of the stream was processed.

        Returns:
            SyncReport: The per-category outcome of the run.
        """
        if self._finished:
            raise PublishError("The publish run has already finished.")
        self._finished = True
        settings: PublishSettings = self._config.settings

        report: SyncReport = self._diff.report()
        stale: List[str] = self._diff.delete_set()
        report.deleted = []
        report.complete = complete
        report.failed = list(self._failed)
        # A failed replacement keeps its old entry, which is not "ignored"
        report.ignored = [p for p in report.ignored if p not in self._failed]

        if not complete:
            self._diff.retain(stale)

        self._checkpoint()
        logger.info(
            f"Saved manifest '{self._config.cache_file}' with "
            f"{len(self._diff.new_manifest)} entries."
        )

        if not complete or settings.no_clean:
            report.kept = stale
            if stale and not complete:
                logger.warning(
                    f"Run stopped early, skipping cleanup of {len(stale)} "
                    "objects that were not reached."
                )
            elif stale:
                logger.info(f"Keeping {len(stale)} stale objects (no-clean).")
            logger.info(f"Publish finished: {summary_line(report)}.")
            return report

        report.deleted = stale
        keys: List[str] = [self.destination_key(path) for path in stale]
        if keys and settings.simulate:
            logger.info(f"[simulate] Would delete {len(keys)} stale objects.")
        elif keys:
            try:
                await self._storage.delete_many(keys, quiet=settings.quiet)
            except CleanupError as e:
                logger.error(f"[Cleanup failed] {e}")
                report.cleanup_error = str(e)
        logger.info(f"Publish finished: {summary_line(report)}.")
        return report

    async def publish(
        self,
        files: FileSource,
        on_result: Optional[ResultCallback] = None,
    ) -> SyncReport:
        """
        Runs a complete publish over a stream of files.

        Files are processed strictly in order. Per-file failures are
        reported through ``on_result`` and do not stop the stream. Whatever
        ends the stream, `finish` runs once so the manifest built so far is
        saved, but remote cleanup only happens when the stream was
        exhausted. Errors raised by the producer propagate afterwards.

        Args:
            files (FileSource): A sync or async iterable of files.
            on_result (ResultCallback, optional): Called for every file.

        Returns:
            SyncReport: The outcome of the run.
        """
        logger.info(
            f"Publishing to 's3://{self._config.connect.bucket}/"
            f"{self._config.settings.root_dir}'."
        )
        complete: bool = False
        processed: int = 0
        try:
            async for file in _iterate(files):
                if self._shutdown_event is not None and self._shutdown_event.is_set():
                    logger.warning(
                        f"Shutdown initiated, stopping after {processed} files."
                    )
                    break

                result: SyncResult
                try:
                    record: Optional[SyncRecord] = await self.process(file)
                    result = SyncResult(file=file, record=record)
                except (UnsupportedContentError, UploadError) as e:
                    logger.error(str(e))
                    result = SyncResult(file=file, error=e)

                processed += 1
                if on_result is not None:
                    on_result(result)
            else:
                complete = True
        finally:
            report: SyncReport = await self.finish(complete=complete)

        return report
