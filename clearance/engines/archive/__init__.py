"""Archive engine - bundle building and naming."""

from clearance.engines.archive.builder import BuiltArchive, build_archive, canonical_entry_name
from clearance.engines.archive.naming import (
    BundleNaming,
    bundle_filename,
    bundle_storage_key,
    filename_from_reference,
    is_bundle_filename,
    sanitize_student_name,
    storage_key_for_filename,
)

__all__ = [
    "BuiltArchive",
    "build_archive",
    "canonical_entry_name",
    "BundleNaming",
    "bundle_filename",
    "bundle_storage_key",
    "filename_from_reference",
    "is_bundle_filename",
    "sanitize_student_name",
    "storage_key_for_filename",
]
