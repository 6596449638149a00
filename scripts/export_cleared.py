"""Download every cleared, not-yet-exported bundle into a folder, then optionally mark them exported.

Usage:
    CLEARANCE_API=http://localhost:8000/api/v1 CLEARANCE_ADMIN_TOKEN=... \
        python scripts/export_cleared.py ./exports [--from 2025-01-01] [--to 2025-12-31] [--yes]

Without CLEARANCE_ADMIN_TOKEN a token is minted locally for ADMIN_EMAIL
using SECRET_KEY (only works when this machine shares the server's secret).
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path

import httpx

from clearance.config import get_settings
from clearance.kernel.errors import ExportCancelled
from clearance.kernel.identity.jwt import create_access_token
from clearance.orchestration.export_service import PreparedDownload, run_paced_downloads

BASE = os.environ.get("CLEARANCE_API", "http://localhost:8000/api/v1").rstrip("/")


def admin_headers():
    token = os.environ.get("CLEARANCE_ADMIN_TOKEN")
    if not token:
        email = os.environ.get("ADMIN_EMAIL") or get_settings().admin_emails[0]
        token, _ = create_access_token("export-script", email)
    return {"Authorization": f"Bearer {token}"}


async def ask(prompt):
    answer = await asyncio.to_thread(input, prompt)
    return answer.strip().lower() in ("y", "yes")


async def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("folder", type=Path)
    parser.add_argument("--from", dest="date_from")
    parser.add_argument("--to", dest="date_to")
    parser.add_argument("--include-exported", action="store_true")
    parser.add_argument("--yes", action="store_true", help="skip the download confirmation")
    args = parser.parse_args()

    args.folder.mkdir(parents=True, exist_ok=True)
    settings = get_settings()
    headers = admin_headers()

    async with httpx.AsyncClient(timeout=120, headers=headers) as api:
        params = {"include_exported": str(args.include_exported).lower()}
        if args.date_from:
            params["date_from"] = args.date_from
        if args.date_to:
            params["date_to"] = args.date_to
        r = await api.get(f"{BASE}/admin/exports", params=params)
        if r.status_code != 200:
            print(f"Listing failed: {r.status_code} {r.text[:300]}")
            sys.exit(1)
        ids = [s["id"] for s in r.json()]
        if not ids:
            print("No submissions to export")
            return

        r = await api.post(f"{BASE}/admin/exports/prepare", json={"ids": ids})
        if r.status_code != 200:
            print(f"Prepare failed: {r.status_code} {r.text[:300]}")
            sys.exit(1)
        body = r.json()
        prepared = [
            PreparedDownload(submission_id=i["submission_id"], filename=i["filename"], url=i["url"])
            for i in body["items"]
        ]
        for skipped in body.get("skipped", []):
            print(f"  skipped {skipped}")

        async def confirm(filenames):
            if args.yes:
                return True
            print(f"Ready to download {len(filenames)} files:")
            for name in filenames:
                print(f"  {name}")
            return await ask("Proceed? [y/N] ")

        # Bundle URLs are either public local routes or presigned, so no auth header
        async with httpx.AsyncClient(timeout=300, follow_redirects=True) as downloads:

            async def fetch(item):
                target = args.folder / item.filename
                async with downloads.stream("GET", item.url) as resp:
                    resp.raise_for_status()
                    with open(target, "wb") as f:
                        async for chunk in resp.aiter_bytes():
                            f.write(chunk)

            def progress(current, total, filename):
                print(f"  [{current}/{total}] {filename}")

            try:
                result = await run_paced_downloads(
                    prepared,
                    fetch,
                    confirm=confirm,
                    on_progress=progress,
                    first_delay_seconds=settings.export_first_delay_seconds,
                    steady_delay_seconds=settings.export_steady_delay_seconds,
                )
            except ExportCancelled as e:
                print(e)
                return

        print(f"\nDownloaded {result.succeeded}/{result.attempted} into {args.folder}")
        for failed in result.failed_ids:
            print(f"  FAILED {failed}")

        done = [p.submission_id for p in prepared if p.submission_id not in result.failed_ids]
        if not done:
            return
        if not await ask(f"Mark {len(done)} as exported and delete their cloud copies? [y/N] "):
            print("Bundles kept in storage")
            return

        r = await api.post(f"{BASE}/admin/exports/mark-exported", json={"ids": done, "delete_files": True})
        if r.status_code != 200:
            print(f"Mark exported failed: {r.status_code} {r.text[:300]}")
            sys.exit(1)
        outcome = r.json()
        print(f"Marked {len(outcome['success'])} exported, {len(outcome['failed'])} failed")
        for failed in outcome["failed"]:
            print(f"  FAILED {failed}")


if __name__ == "__main__":
    asyncio.run(main())
