"""
Bundle naming strategies.

Two schemes have been used in production and both remain valid:

- ``id``:           SPUP_Clearance_2025_ABC123.zip
- ``name_and_id``:  Juan_Dela_Cruz_SPUP_Clearance_2025_ABC123.zip

The scheme is configuration (BUNDLE_NAMING) and applies to new bundles.
An existing bundle is found through the filename at the end of the
submission's zip_file reference, which is written once at creation, so
later name edits or a scheme change never move it.
"""

import re
from enum import Enum
from typing import Optional
from urllib.parse import unquote, urlsplit

from clearance.kernel.identifiers import validate_tracking_id

BUNDLE_PREFIX = "submissions"

_DISALLOWED_NAME_CHARS = re.compile(r"[^A-Za-z0-9 ]")
_WHITESPACE_RUN = re.compile(r"\s+")
_NAME_AND_ID_RE = re.compile(r"(?P<name>[A-Za-z0-9]+(?:_[A-Za-z0-9]+)*)_(?P<id>SPUP_Clearance_[0-9]{4}_[A-Z0-9]{6})")


class BundleNaming(str, Enum):
    ID_ONLY = "id"
    NAME_AND_ID = "name_and_id"

    @property
    def requires_name(self) -> bool:
        return self is BundleNaming.NAME_AND_ID


def sanitize_student_name(name: str) -> str:
    """Strip characters outside [A-Za-z0-9 ] and collapse whitespace runs to '_'."""
    cleaned = _DISALLOWED_NAME_CHARS.sub("", name or "")
    return _WHITESPACE_RUN.sub("_", cleaned.strip())


def bundle_filename(
    submission_id: str,
    student_name: Optional[str] = None,
    naming: BundleNaming = BundleNaming.ID_ONLY,
) -> str:
    """Filename of the bundle for a submission under the given scheme.

    A name that sanitizes to nothing falls back to the id-only shape.
    """
    if naming.requires_name:
        safe_name = sanitize_student_name(student_name or "")
        if safe_name:
            return f"{safe_name}_{submission_id}.zip"
    return f"{submission_id}.zip"


def bundle_storage_key(
    submission_id: str,
    student_name: Optional[str] = None,
    naming: BundleNaming = BundleNaming.ID_ONLY,
) -> str:
    return storage_key_for_filename(bundle_filename(submission_id, student_name, naming))


def storage_key_for_filename(filename: str) -> str:
    return f"{BUNDLE_PREFIX}/{filename}"


def filename_from_reference(reference: Optional[str], submission_id: str) -> Optional[str]:
    """
    Bundle filename at the end of a stored reference URL.

    None unless the name is a bundle filename for submission_id.
    """
    if not reference:
        return None
    name = unquote(urlsplit(reference).path.rsplit("/", 1)[-1])
    if tracking_id_from_filename(name) != submission_id:
        return None
    return name


def tracking_id_from_filename(filename: str) -> Optional[str]:
    """Extract the tracking code from a bundle filename in either scheme."""
    if not filename.endswith(".zip"):
        return None
    stem = filename[: -len(".zip")]
    if validate_tracking_id(stem):
        return stem
    match = _NAME_AND_ID_RE.fullmatch(stem)
    if match:
        return match.group("id")
    return None


def is_bundle_filename(filename: str) -> bool:
    """True for filenames produced by either naming scheme."""
    return tracking_id_from_filename(filename) is not None
