"""
Public tracking codes.

Format: SPUP_Clearance_<YYYY>_<XXXXXX> where XXXXXX is six characters from
[A-Z0-9]. Students exchange these out-of-band, so the format must stay
exactly reproducible.
"""

import random
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Optional

TRACKING_ID_PREFIX = "SPUP_Clearance"
SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 6

_TRACKING_ID_RE = re.compile(r"SPUP_Clearance_[0-9]{4}_[A-Z0-9]{6}")


def generate_tracking_id(
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Generate a tracking code for the current calendar year.

    No uniqueness check happens here; the intake flow retries on collision.
    """
    year = (now or datetime.now(timezone.utc)).year
    chooser = rng.choice if rng is not None else secrets.choice
    suffix = "".join(chooser(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{TRACKING_ID_PREFIX}_{year:04d}_{suffix}"


def validate_tracking_id(candidate: Any) -> bool:
    """Return True iff candidate is exactly a well-formed tracking code."""
    if not isinstance(candidate, str):
        return False
    return _TRACKING_ID_RE.fullmatch(candidate) is not None
