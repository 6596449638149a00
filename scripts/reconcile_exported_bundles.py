"""Find bundles still in storage for submissions already marked exported.

Export deletes bundles best-effort, so a failed delete leaves the record
exported while the zip remains. Dry run by default; pass --delete to remove
what is found.

Usage:
    python scripts/reconcile_exported_bundles.py [--delete]
"""
import argparse
import asyncio

from clearance.config import get_settings
from clearance.database import async_session_maker, close_db
from clearance.kernel.storage.blob_store import create_blob_store
from clearance.kernel.store.submission_store import SubmissionStore
from clearance.logging_config import configure_logging
from clearance.orchestration.export_service import ExportService


async def main():
    parser = argparse.ArgumentParser(description="Reconcile exported bundles")
    parser.add_argument("--delete", action="store_true", help="delete leftover bundles")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(log_level=settings.log_level, environment=settings.environment, debug=settings.debug)

    service = ExportService.from_settings(
        SubmissionStore(async_session_maker),
        create_blob_store(settings),
        settings,
    )
    try:
        result = await service.sweep_orphaned_bundles(dry_run=not args.delete)
    finally:
        await close_db()

    print(f"Leftover bundles: {len(result.found)}")
    for submission_id in result.found:
        mark = "deleted" if submission_id in result.deleted else "present"
        print(f"  {submission_id}: {mark}")
    for submission_id in result.failed:
        print(f"  {submission_id}: FAILED")
    if result.found and not args.delete:
        print("\nDry run. Re-run with --delete to remove them.")


if __name__ == "__main__":
    asyncio.run(main())
