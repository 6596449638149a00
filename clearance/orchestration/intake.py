"""
Public intake: documents in, tracking code out.

Order matters. Documents are validated before any network call, the
bundle is uploaded before the record is written, and the record is only
created once the upload has returned a reference. If the record write then
fails, the uploaded bundle is removed again on a best-effort basis.
"""

from typing import Any, Callable, Mapping, Optional

from clearance.config import Settings
from clearance.engines.archive.builder import build_archive
from clearance.engines.archive.naming import BundleNaming, bundle_filename, bundle_storage_key
from clearance.engines.validation.documents import DocumentValidator
from clearance.kernel.documents import DocumentKey, DocumentPayload
from clearance.kernel.errors import (
    BlobStoreUnavailable,
    ClearanceError,
    DocumentValidationError,
    DuplicateKey,
)
from clearance.kernel.identifiers import generate_tracking_id
from clearance.kernel.models.submission import Submission
from clearance.kernel.storage.blob_store import BlobStore
from clearance.kernel.store.submission_store import SubmissionStore
from clearance.logging_config import get_logger

logger = get_logger(__name__)


class IntakeService:
    """Runs the public submission flow end to end."""

    def __init__(
        self,
        store: SubmissionStore,
        blobs: BlobStore,
        validator: DocumentValidator,
        naming: BundleNaming = BundleNaming.ID_ONLY,
        max_id_attempts: int = 5,
        id_factory: Callable[[], str] = generate_tracking_id,
    ):
        self.store = store
        self.blobs = blobs
        self.validator = validator
        self.naming = naming
        self.max_id_attempts = max(1, max_id_attempts)
        self.id_factory = id_factory

    @classmethod
    def from_settings(cls, store: SubmissionStore, blobs: BlobStore, settings: Settings) -> "IntakeService":
        return cls(
            store,
            blobs,
            DocumentValidator(max_bytes=settings.max_document_bytes),
            naming=BundleNaming(settings.bundle_naming),
            max_id_attempts=settings.tracking_id_max_attempts,
        )

    async def allocate_tracking_id(self) -> str:
        """Generate a tracking code not yet used by any record."""
        candidate = ""
        for attempt in range(1, self.max_id_attempts + 1):
            candidate = self.id_factory()
            if not await self.store.exists(candidate):
                return candidate
            logger.warning(
                "Tracking code collision",
                extra={"submission_id": candidate, "attempt": attempt},
            )
        raise DuplicateKey(candidate)

    async def submit(
        self,
        fields: Mapping[str, Any],
        documents: Mapping[DocumentKey, Optional[DocumentPayload]],
    ) -> Submission:
        """
        Create a submission from form fields and the four documents.

        Raises:
            DocumentValidationError: A document is missing, of the wrong type or too large
            ArchiveBuildError: A document could not be read
            StoreUnavailable: Blob upload or record write failed
            DuplicateKey: No free tracking code could be found
        """
        errors = self.validator.errors(documents)
        if errors:
            raise DocumentValidationError(errors)

        submission_id = await self.allocate_tracking_id()
        student_name = fields.get("name")
        archive = await build_archive(
            documents,
            bundle_filename(submission_id, student_name, self.naming),
        )

        key = bundle_storage_key(submission_id, student_name, self.naming)
        reference = await self.blobs.upload(key, archive.data)

        try:
            record = await self.store.create(submission_id, {**fields, "zip_file": reference})
        except (ClearanceError, ValueError):
            await self._discard_bundle(key, submission_id)
            raise

        logger.info(
            "Submission received",
            extra={"submission_id": submission_id, "entries": archive.entries, "bytes": archive.size},
        )
        return record

    async def _discard_bundle(self, key: str, submission_id: str) -> None:
        try:
            await self.blobs.delete(key)
        except BlobStoreUnavailable as exc:
            logger.warning(
                "Orphaned bundle left in storage",
                extra={"submission_id": submission_id, "storage_key": key, "error": str(exc)},
            )
