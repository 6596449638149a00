"""Bundle blob storage."""

from clearance.kernel.storage.blob_store import (
    BlobStore,
    LocalBlobStore,
    S3BlobStore,
    create_blob_store,
)

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "create_blob_store",
]
