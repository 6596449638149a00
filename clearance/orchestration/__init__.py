"""Orchestration layer - intake flow and the export/archival state machine."""

from clearance.orchestration.export_service import (
    BulkDownloadResult,
    BulkMarkResult,
    ExportService,
    ExportSession,
    PreparedDownload,
    SweepResult,
    run_paced_downloads,
)
from clearance.orchestration.export_state_machine import (
    ExportEvent,
    ExportState,
    initial_export_state,
    transition,
)
from clearance.orchestration.intake import IntakeService

__all__ = [
    "BulkDownloadResult",
    "BulkMarkResult",
    "ExportService",
    "ExportSession",
    "PreparedDownload",
    "SweepResult",
    "run_paced_downloads",
    "ExportEvent",
    "ExportState",
    "initial_export_state",
    "transition",
    "IntakeService",
]
