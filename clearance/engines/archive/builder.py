"""
Archive Builder - packs a submission's documents into one ZIP bundle.

Every present document is read concurrently; the ZIP is written only after
all reads succeed. A single failed read aborts the build and nothing is
returned, so a partial bundle can never be uploaded.
"""

import asyncio
import io
import zipfile
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from clearance.kernel.documents import DocumentKey, DocumentPayload
from clearance.kernel.errors import ArchiveBuildError
from clearance.logging_config import get_logger

logger = get_logger(__name__)

# Entry order inside the bundle
CANONICAL_ORDER: Tuple[DocumentKey, ...] = (
    DocumentKey.APPROVAL_SHEET,
    DocumentKey.FULL_PAPER,
    DocumentKey.LONG_ABSTRACT,
    DocumentKey.JOURNAL_FORMAT,
)


@dataclass(frozen=True)
class BuiltArchive:
    """An in-memory bundle ready for upload."""

    filename: str
    data: bytes
    entries: List[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)


def canonical_entry_name(key: DocumentKey, original_filename: Optional[str]) -> str:
    """approval_sheet.<ext>, keeping the uploaded file's extension as written."""
    name = (original_filename or "").strip()
    if "." in name:
        ext = name.rsplit(".", 1)[-1]
        if ext:
            return f"{key.value}.{ext}"
    return key.value


async def _read_document(key: DocumentKey, payload: DocumentPayload) -> Tuple[DocumentKey, str, bytes]:
    try:
        content = await payload.read()
    except Exception as exc:
        raise ArchiveBuildError(key.value, exc) from exc
    return key, canonical_entry_name(key, payload.filename), content


async def build_archive(
    documents: Mapping[DocumentKey, Optional[DocumentPayload]],
    bundle_filename: str,
) -> BuiltArchive:
    """
    Build a ZIP bundle from the given documents.

    Args:
        documents: Document key to payload; None or missing keys are skipped
        bundle_filename: Name the bundle will be stored and downloaded under

    Returns:
        BuiltArchive holding the ZIP bytes and the entry names written

    Raises:
        ArchiveBuildError: If any document could not be read
    """
    present = [
        (key, documents[key])
        for key in CANONICAL_ORDER
        if documents.get(key) is not None
    ]

    results = await asyncio.gather(
        *(_read_document(key, payload) for key, payload in present),
        return_exceptions=True,
    )
    for outcome in results:
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.warning(
                "Archive build aborted",
                extra={"bundle": bundle_filename, "error": str(outcome)},
            )
            if isinstance(outcome, ArchiveBuildError):
                raise outcome
            raise ArchiveBuildError("unknown", outcome) from outcome

    buffer = io.BytesIO()
    entries: List[str] = []
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for _key, arcname, content in results:
            archive.writestr(arcname, content)
            entries.append(arcname)

    logger.debug(
        "Archive built",
        extra={"bundle": bundle_filename, "entries": entries, "bytes": buffer.tell()},
    )
    return BuiltArchive(filename=bundle_filename, data=buffer.getvalue(), entries=entries)
