"""
Export orchestration - download a bundle, then optionally delete the cloud copy.

Single export is two calls: start_download() checks the guard, resolves
the bundle and fires the download trigger; finish_download() applies the
operator's answer to the delete prompt. Whether the bytes actually reached
the operator is not observable here. Deletion is gated only on the
explicit confirmation.

Bulk export resolves every selected bundle first, asks for one aggregate
confirmation, then triggers downloads one at a time with pacing delays.
Marking as exported (and deleting) is a separate bulk action that reports a
success/failure partition and never rolls back items that already
succeeded.

Bundle deletion is best-effort everywhere: a failed delete is logged and
the record is still marked exported.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence

from clearance.config import Settings
from clearance.engines.archive.naming import (
    BundleNaming,
    bundle_filename,
    filename_from_reference,
    storage_key_for_filename,
)
from clearance.kernel.errors import (
    AlreadyExported,
    BlobNotFound,
    BlobStoreUnavailable,
    ExportCancelled,
    NothingToExport,
    StoreUnavailable,
    SubmissionNotFound,
)
from clearance.kernel.models.submission import Submission, SubmissionStatus
from clearance.kernel.storage.blob_store import BlobStore
from clearance.kernel.store.submission_store import SubmissionStore
from clearance.logging_config import get_logger
from clearance.orchestration.export_state_machine import (
    ExportEvent,
    ExportState,
    initial_export_state,
    transition,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PreparedDownload:
    """A resolved bundle ready to hand to a download trigger."""

    submission_id: str
    filename: str
    url: str


@dataclass
class ExportSession:
    """Client-held state of one in-progress single export."""

    submission_id: str
    filename: str
    storage_key: str
    download_url: Optional[str]
    state: ExportState


@dataclass
class BulkDownloadResult:
    succeeded: int
    attempted: int
    failed_ids: List[str] = field(default_factory=list)


@dataclass
class BulkMarkResult:
    success: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass
class SweepResult:
    """Outcome of a reconciliation pass over exported records."""

    found: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


DownloadTrigger = Callable[[PreparedDownload], Awaitable[None]]
ConfirmPrompt = Callable[[List[str]], Awaitable[bool]]
ProgressCallback = Callable[[int, int, str], None]


def pacing_delay(index: int, first_delay_seconds: float, steady_delay_seconds: float) -> float:
    """Seconds to wait after the download at position index (0-based)."""
    return first_delay_seconds if index == 0 else steady_delay_seconds


async def run_paced_downloads(
    prepared: Sequence[PreparedDownload],
    trigger: DownloadTrigger,
    confirm: Optional[ConfirmPrompt] = None,
    on_progress: Optional[ProgressCallback] = None,
    first_delay_seconds: float = 1.0,
    steady_delay_seconds: float = 2.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> BulkDownloadResult:
    """
    Trigger downloads sequentially after one aggregate confirmation.

    Failed items are skipped. The pause follows each successful trigger
    except the last, so the first gap is shorter than the rest.

    Raises:
        NothingToExport: prepared is empty
        ExportCancelled: The operator declined the confirmation
    """
    if not prepared:
        raise NothingToExport("No files could be prepared for download")
    if confirm is not None and not await confirm([p.filename for p in prepared]):
        raise ExportCancelled("Download cancelled by user")

    total = len(prepared)
    result = BulkDownloadResult(succeeded=0, attempted=total)
    for index, item in enumerate(prepared):
        if on_progress is not None:
            on_progress(index + 1, total, item.filename)
        try:
            await trigger(item)
        except Exception as exc:
            logger.warning(
                "Bundle download failed",
                extra={"submission_id": item.submission_id, "error": str(exc)},
            )
            result.failed_ids.append(item.submission_id)
            continue
        result.succeeded += 1
        if index < total - 1:
            await sleep(pacing_delay(index, first_delay_seconds, steady_delay_seconds))

    logger.info(
        "Bulk download finished",
        extra={"succeeded": result.succeeded, "attempted": result.attempted},
    )
    return result


class ExportService:
    """
    Coordinates the Submission Store and the Blob Adapter for exports.

    Usage:
        service = ExportService.from_settings(store, blobs, get_settings())
        session = await service.start_download(submission_id)
        session = await service.finish_download(session, delete_cloud_copy=True)
    """

    def __init__(
        self,
        store: SubmissionStore,
        blobs: BlobStore,
        naming: BundleNaming = BundleNaming.ID_ONLY,
        first_delay_seconds: float = 1.0,
        steady_delay_seconds: float = 2.0,
    ):
        self.store = store
        self.blobs = blobs
        self.naming = naming
        self.first_delay_seconds = first_delay_seconds
        self.steady_delay_seconds = steady_delay_seconds

    @classmethod
    def from_settings(cls, store: SubmissionStore, blobs: BlobStore, settings: Settings) -> "ExportService":
        return cls(
            store,
            blobs,
            naming=BundleNaming(settings.bundle_naming),
            first_delay_seconds=settings.export_first_delay_seconds,
            steady_delay_seconds=settings.export_steady_delay_seconds,
        )

    def filename_for(self, submission: Any) -> str:
        """
        Filename the bundle was stored under.

        Read from the zip_file reference written at creation; the configured
        scheme is only a fallback for references that do not end in one.
        """
        stored = filename_from_reference(getattr(submission, "zip_file", None), submission.id)
        if stored:
            return stored
        return bundle_filename(submission.id, submission.name, self.naming)

    def storage_key_for(self, submission: Any) -> str:
        return storage_key_for_filename(self.filename_for(submission))

    def pacing_delay(self, index: int) -> float:
        return pacing_delay(index, self.first_delay_seconds, self.steady_delay_seconds)

    async def list_exportable(
        self,
        include_exported: bool = False,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[Submission]:
        return await self.store.list_exportable(
            include_exported=include_exported,
            date_from=date_from,
            date_to=date_to,
        )

    # Single export

    async def start_download(
        self,
        submission_id: str,
        trigger: Optional[DownloadTrigger] = None,
    ) -> ExportSession:
        """
        Begin exporting one submission.

        An already-exported submission is rejected before any blob call or
        store write.

        Raises:
            SubmissionNotFound: No record under submission_id
            AlreadyExported: The bundle was already exported
            BlobNotFound: The bundle is missing from storage
        """
        record = await self.store.get_by_id(submission_id)
        if record is None:
            raise SubmissionNotFound(submission_id)
        state = transition(initial_export_state(record), ExportEvent.DOWNLOAD_STARTED, submission_id)

        key = self.storage_key_for(record)
        filename = self.filename_for(record)
        url = await self.blobs.resolve(key)
        if trigger is not None:
            await trigger(PreparedDownload(submission_id=submission_id, filename=filename, url=url))

        logger.info("Export download initiated", extra={"submission_id": submission_id})
        return ExportSession(
            submission_id=submission_id,
            filename=filename,
            storage_key=key,
            download_url=url,
            state=state,
        )

    async def resume_session(self, submission_id: str, state: ExportState) -> ExportSession:
        """Rebuild a session held by a stateless client (no blob calls)."""
        record = await self.store.get_by_id(submission_id)
        if record is None:
            raise SubmissionNotFound(submission_id)
        return ExportSession(
            submission_id=submission_id,
            filename=self.filename_for(record),
            storage_key=self.storage_key_for(record),
            download_url=None,
            state=ExportState(state),
        )

    async def finish_download(self, session: ExportSession, delete_cloud_copy: bool) -> ExportSession:
        """
        Apply the operator's answer to the delete prompt.

        Declining returns the session to available with no writes. Confirming
        deletes the bundle (best-effort) and marks the record exported.
        """
        record = await self.store.get_by_id(session.submission_id)
        if record is None:
            raise SubmissionNotFound(session.submission_id)
        if record.is_exported:
            raise AlreadyExported(session.submission_id)

        event = ExportEvent.DELETE_CONFIRMED if delete_cloud_copy else ExportEvent.DELETE_DECLINED
        next_state = transition(session.state, event, session.submission_id)

        if next_state is ExportState.EXPORTED:
            await self._delete_quietly(session.storage_key, session.submission_id)
            await self.store.mark_exported(session.submission_id, True)
            logger.info("Submission exported", extra={"submission_id": session.submission_id})
        else:
            logger.info("Bundle kept after download", extra={"submission_id": session.submission_id})

        return ExportSession(
            submission_id=session.submission_id,
            filename=session.filename,
            storage_key=session.storage_key,
            download_url=session.download_url if next_state is ExportState.AVAILABLE else None,
            state=next_state,
        )

    # Bulk export

    async def prepare_bulk_download(self, submissions: Iterable[Any]) -> List[PreparedDownload]:
        """Resolve bundle URLs for cleared submissions. Exported or unresolvable items are skipped."""
        prepared: List[PreparedDownload] = []
        for submission in submissions:
            if not submission.id or getattr(submission, "is_exported", False):
                continue
            if submission.status != SubmissionStatus.CLEARED.value:
                continue
            try:
                url = await self.blobs.resolve(self.storage_key_for(submission))
            except (BlobNotFound, BlobStoreUnavailable) as exc:
                logger.warning(
                    "Skipping bundle that could not be prepared",
                    extra={"submission_id": submission.id, "error": str(exc)},
                )
                continue
            prepared.append(
                PreparedDownload(
                    submission_id=submission.id,
                    filename=self.filename_for(submission),
                    url=url,
                )
            )
        return prepared

    async def run_bulk_download(
        self,
        prepared: Sequence[PreparedDownload],
        trigger: DownloadTrigger,
        confirm: Optional[ConfirmPrompt] = None,
        on_progress: Optional[ProgressCallback] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> BulkDownloadResult:
        """Bulk download paced with this service's configured delays."""
        return await run_paced_downloads(
            prepared,
            trigger,
            confirm=confirm,
            on_progress=on_progress,
            first_delay_seconds=self.first_delay_seconds,
            steady_delay_seconds=self.steady_delay_seconds,
            sleep=sleep,
        )

    async def bulk_mark_exported(self, submission_ids: Iterable[str], delete_files: bool = True) -> BulkMarkResult:
        """
        Mark each id exported, deleting its bundle first when asked.

        A failed delete does not fail the item. Only a missing record or a
        store failure puts the id in the failed list.
        """
        result = BulkMarkResult()
        for submission_id in submission_ids:
            try:
                record = await self.store.get_by_id(submission_id)
                if record is None:
                    raise SubmissionNotFound(submission_id)
                if record.is_exported:
                    result.success.append(submission_id)
                    continue
                if delete_files:
                    await self._delete_quietly(self.storage_key_for(record), submission_id)
                await self.store.mark_exported(submission_id, True)
            except (SubmissionNotFound, StoreUnavailable) as exc:
                logger.warning(
                    "Mark exported failed",
                    extra={"submission_id": submission_id, "error": str(exc)},
                )
                result.failed.append(submission_id)
                continue
            result.success.append(submission_id)

        logger.info(
            "Bulk mark exported finished",
            extra={"success": len(result.success), "failed": len(result.failed)},
        )
        return result

    async def sweep_orphaned_bundles(self, dry_run: bool = True) -> SweepResult:
        """Find (and unless dry_run, delete) bundles still stored for exported records."""
        result = SweepResult()
        for record in await self.store.list_exported():
            key = self.storage_key_for(record)
            try:
                if not await self.blobs.exists(key):
                    continue
                result.found.append(record.id)
                if not dry_run:
                    await self.blobs.delete(key)
                    result.deleted.append(record.id)
            except BlobStoreUnavailable as exc:
                logger.warning("Sweep failed for bundle", extra={"storage_key": key, "error": str(exc)})
                result.failed.append(record.id)
        return result

    async def _delete_quietly(self, key: str, submission_id: str) -> None:
        try:
            await self.blobs.delete(key)
        except (BlobStoreUnavailable, ValueError) as exc:
            logger.warning(
                "Bundle delete failed; record will still be marked exported",
                extra={"submission_id": submission_id, "storage_key": key, "error": str(exc)},
            )
