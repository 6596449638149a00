"""
Export/archival state machine for a single submission's bundle.

    available --download_started--> download_initiated
    download_initiated --delete_confirmed--> exported
    download_initiated --delete_declined--> available

``exported`` is terminal for the bundle (the record itself is kept). Any
event against an exported submission raises AlreadyExported so callers can
show a rejection instead of attempting a fetch that would fail.

The functions here are pure: state in, state out.
"""

from enum import Enum
from typing import Any, Dict, Tuple

from clearance.kernel.errors import AlreadyExported, InvalidExportTransition


class ExportState(str, Enum):
    AVAILABLE = "available"
    DOWNLOAD_INITIATED = "download_initiated"
    EXPORTED = "exported"


class ExportEvent(str, Enum):
    DOWNLOAD_STARTED = "download_started"
    DELETE_CONFIRMED = "delete_confirmed"
    DELETE_DECLINED = "delete_declined"


# (from_state, event) -> to_state
_TRANSITIONS: Dict[Tuple[ExportState, ExportEvent], ExportState] = {
    (ExportState.AVAILABLE, ExportEvent.DOWNLOAD_STARTED): ExportState.DOWNLOAD_INITIATED,
    # Re-triggering the browser download is allowed while the prompt is open
    (ExportState.DOWNLOAD_INITIATED, ExportEvent.DOWNLOAD_STARTED): ExportState.DOWNLOAD_INITIATED,
    (ExportState.DOWNLOAD_INITIATED, ExportEvent.DELETE_CONFIRMED): ExportState.EXPORTED,
    (ExportState.DOWNLOAD_INITIATED, ExportEvent.DELETE_DECLINED): ExportState.AVAILABLE,
}


def initial_export_state(submission: Any) -> ExportState:
    """Export state implied by a stored record."""
    if getattr(submission, "is_exported", False):
        return ExportState.EXPORTED
    return ExportState.AVAILABLE


def transition(state: ExportState, event: ExportEvent, submission_id: str = "") -> ExportState:
    """
    Apply one event.

    Raises:
        AlreadyExported: If state is exported, whatever the event
        InvalidExportTransition: For any other pair not in the table
    """
    state = ExportState(state)
    event = ExportEvent(event)
    if state is ExportState.EXPORTED:
        raise AlreadyExported(submission_id)
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidExportTransition(
            f"Invalid export transition: {state.value} --{event.value}-->"
        ) from None
