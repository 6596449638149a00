"""
System smoke test: full API flow in-process with SQLite.
Verifies health, intake, tracking, admin review, single and bulk export.
Each test gets its own file-backed database and bundle folder.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from clearance.api.deps import get_blob_store
from clearance.database import get_session_factory
from clearance.main import TRACKING_ID_HINT, app

API = "/api/v1"


@pytest_asyncio.fixture
async def client(session_factory, blobs):
    """Async client with test DB, local bundles and rate limit disabled."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_blob_store] = lambda: blobs
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_session_factory, None)
        app.dependency_overrides.pop(get_blob_store, None)


def _form(level="undergrad"):
    data = {
        "level": level,
        "research_type": "Thesis" if level == "undergrad" else "Dissertation",
        "name": "Juan Dela Cruz",
        "email": "juan.delacruz@spup.edu.ph",
        "student_id": "2021-00123",
        "adviser": "Dr. Maria Santos",
        "course": "BS Computer Science",
        "graduation_month": "June",
        "graduation_year": "2025",
        "research_title": "Crop Disease Detection Using Convolutional Networks",
    }
    if level == "undergrad":
        data["group_members"] = (
            '[{"name": "Ana Reyes", "studentID": "2021-00124"}, {"name": "", "studentID": ""}]'
        )
    return data


def _files(skip=()):
    files = {
        "approval_sheet": ("Approval Sheet.pdf", b"%PDF-1.4 approval", "application/pdf"),
        "full_paper": ("thesis.docx", b"PK full paper", "application/octet-stream"),
        "long_abstract": ("abstract.docx", b"PK abstract", "application/octet-stream"),
        "journal_format": ("journal.docx", b"PK journal", "application/octet-stream"),
    }
    return {k: v for k, v in files.items() if k not in skip}


async def _submit(client: AsyncClient, level="undergrad") -> str:
    r = await client.post(f"{API}/submissions", data=_form(level), files=_files())
    assert r.status_code == 201, r.text
    return r.json()["id"]


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Health endpoint responds."""
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert "version" in data


@pytest.mark.asyncio
async def test_submit_and_track(client: AsyncClient):
    """A submission is trackable by the code it returns."""
    submission_id = await _submit(client)
    assert submission_id.startswith("SPUP_Clearance_")

    r = await client.get(f"{API}/submissions/{submission_id}")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "Submitted"
    assert data["group_members"] == [{"name": "Ana Reyes", "student_id": "2021-00124"}]
    assert "email" not in data

    r = await client.get(f"{API}/bundles/{submission_id}.zip")
    assert r.status_code == 200
    assert r.content[:2] == b"PK"


@pytest.mark.asyncio
async def test_tracking_errors(client: AsyncClient):
    r = await client.get(f"{API}/submissions/not-a-code")
    assert r.status_code == 400
    assert r.json()["detail"] == TRACKING_ID_HINT

    r = await client.get(f"{API}/submissions/SPUP_Clearance_2025_ZZZZZZ")
    assert r.status_code == 404
    assert "Please check your submission ID" in r.json()["detail"]


@pytest.mark.asyncio
async def test_missing_document_rejected(client: AsyncClient):
    """A missing document is reported per field and nothing is stored."""
    r = await client.post(
        f"{API}/submissions",
        data=_form("grad"),
        files=_files(skip={"long_abstract"}),
    )
    assert r.status_code == 422
    body = r.json()
    assert "long_abstract" in body["errors"]


@pytest.mark.asyncio
async def test_wrong_document_type_rejected(client: AsyncClient):
    files = _files()
    files["approval_sheet"] = ("approval.docx", b"PK", "application/octet-stream")
    r = await client.post(f"{API}/submissions", data=_form("grad"), files=files)
    assert r.status_code == 422
    assert "approval_sheet" in r.json()["errors"]


@pytest.mark.asyncio
async def test_invalid_form_field(client: AsyncClient):
    data = _form("grad")
    data["email"] = "not-an-email"
    r = await client.post(f"{API}/submissions", data=data, files=_files())
    assert r.status_code == 422
    assert any("email" in e["field"] for e in r.json()["errors"])


@pytest.mark.asyncio
async def test_admin_requires_admin_token(client: AsyncClient, outsider_headers):
    r = await client.get(f"{API}/admin/submissions")
    assert r.status_code == 401

    r = await client.get(f"{API}/admin/submissions", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401

    r = await client.get(f"{API}/admin/submissions", headers=outsider_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied. Admin privileges required."


@pytest.mark.asyncio
async def test_admin_listing_and_edits(client: AsyncClient, admin_headers):
    undergrad_id = await _submit(client, "undergrad")
    grad_id = await _submit(client, "grad")

    r = await client.get(f"{API}/admin/submissions", headers=admin_headers)
    assert r.status_code == 200
    assert {s["id"] for s in r.json()} == {undergrad_id, grad_id}

    r = await client.get(
        f"{API}/admin/submissions",
        params={"level": "grad", "status": "all", "search": "CROP"},
        headers=admin_headers,
    )
    assert [s["id"] for s in r.json()] == [grad_id]

    r = await client.patch(
        f"{API}/admin/submissions/{grad_id}",
        json={"adviser": "Dr. Pedro Garcia"},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["adviser"] == "Dr. Pedro Garcia"
    assert r.json()["name"] == "Juan Dela Cruz"

    r = await client.put(
        f"{API}/admin/submissions/{grad_id}/export-link",
        json={"url": "https://drive.example.com/folder"},
        headers=admin_headers,
    )
    assert r.json()["export_link"] == "https://drive.example.com/folder"
    r = await client.delete(f"{API}/admin/submissions/{grad_id}/export-link", headers=admin_headers)
    assert r.json()["export_link"] is None

    r = await client.patch(
        f"{API}/admin/submissions/{undergrad_id}/status",
        json={"status": "Cleared"},
        headers=admin_headers,
    )
    assert r.json()["status"] == "Cleared"

    r = await client.get(f"{API}/admin/submissions/stats", headers=admin_headers)
    stats = r.json()
    assert stats["total"] == 2
    assert stats["cleared"] == 1
    assert stats["grad"] == 1
    assert stats["exported"] == 0

    r = await client.patch(
        f"{API}/admin/submissions/SPUP_Clearance_2025_ZZZZZZ/status",
        json={"status": "Cleared"},
        headers=admin_headers,
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_single_export_flow(client: AsyncClient, admin_headers):
    """Download, confirm delete, then the bundle is gone and re-export is refused."""
    submission_id = await _submit(client)
    await client.patch(
        f"{API}/admin/submissions/{submission_id}/status",
        json={"status": "Cleared"},
        headers=admin_headers,
    )

    r = await client.post(f"{API}/admin/exports/{submission_id}/download", headers=admin_headers)
    assert r.status_code == 200, r.text
    session = r.json()
    assert session["state"] == "download_initiated"
    assert session["session_token"]
    assert session["download_url"].endswith(f"/bundles/{submission_id}.zip")

    r = await client.post(
        f"{API}/admin/exports/{submission_id}/confirm",
        json={"session_token": session["session_token"], "delete_cloud_copy": False},
        headers=admin_headers,
    )
    assert r.json()["state"] == "available"

    r = await client.post(
        f"{API}/admin/exports/{submission_id}/confirm",
        json={"session_token": session["session_token"], "delete_cloud_copy": True},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["state"] == "exported"

    r = await client.get(f"{API}/admin/submissions/{submission_id}", headers=admin_headers)
    record = r.json()
    assert record["is_exported"] is True
    assert record["exported_at"] is not None
    assert record["can_download"] is False
    assert record["zip_file"] is None

    r = await client.get(f"{API}/bundles/{submission_id}.zip")
    assert r.status_code == 404

    r = await client.post(f"{API}/admin/exports/{submission_id}/download", headers=admin_headers)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_confirm_without_download_keeps_bundle(client: AsyncClient, admin_headers, jwt_manager):
    """The delete prompt can only be answered for a download that was started."""
    submission_id = await _submit(client)
    other_id = await _submit(client)
    confirm_url = f"{API}/admin/exports/{submission_id}/confirm"

    r = await client.post(confirm_url, json={"delete_cloud_copy": True}, headers=admin_headers)
    assert r.status_code == 422

    r = await client.post(
        confirm_url,
        json={"session_token": "garbage", "delete_cloud_copy": True},
        headers=admin_headers,
    )
    assert r.status_code == 409

    # The admin's own bearer token is not a download session
    access_token = admin_headers["Authorization"].split(" ", 1)[1]
    r = await client.post(
        confirm_url,
        json={"session_token": access_token, "delete_cloud_copy": True},
        headers=admin_headers,
    )
    assert r.status_code == 409

    # A session for another submission does not carry over
    r = await client.post(f"{API}/admin/exports/{other_id}/download", headers=admin_headers)
    other_token = r.json()["session_token"]
    r = await client.post(
        confirm_url,
        json={"session_token": other_token, "delete_cloud_copy": True},
        headers=admin_headers,
    )
    assert r.status_code == 409

    r = await client.get(f"{API}/admin/submissions/{submission_id}", headers=admin_headers)
    assert r.json()["is_exported"] is False
    r = await client.get(f"{API}/bundles/{submission_id}.zip")
    assert r.status_code == 200

    assert jwt_manager.verify_export_session_token(other_token) == other_id
    assert jwt_manager.verify_access_token(other_token) is None


@pytest.mark.asyncio
async def test_bulk_export_flow(client: AsyncClient, admin_headers):
    first = await _submit(client, "grad")
    second = await _submit(client, "undergrad")
    pending = await _submit(client, "grad")
    for submission_id in (first, second):
        await client.patch(
            f"{API}/admin/submissions/{submission_id}/status",
            json={"status": "Cleared"},
            headers=admin_headers,
        )

    r = await client.get(f"{API}/admin/exports", headers=admin_headers)
    assert {s["id"] for s in r.json()} == {first, second}

    r = await client.post(
        f"{API}/admin/exports/prepare",
        json={"ids": [first, second, pending]},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["attempted"] == 2
    assert body["skipped"] == [pending]
    assert body["items"][-1]["delay_after_seconds"] == 0

    r = await client.post(
        f"{API}/admin/exports/mark-exported",
        json={"ids": [first, second, "SPUP_Clearance_2025_ZZZZZZ"]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    outcome = r.json()
    assert outcome["success"] == [first, second]
    assert outcome["failed"] == ["SPUP_Clearance_2025_ZZZZZZ"]

    r = await client.get(f"{API}/admin/exports", headers=admin_headers)
    assert r.json() == []

    r = await client.post(
        f"{API}/admin/exports/prepare",
        json={"ids": [first, second]},
        headers=admin_headers,
    )
    assert r.status_code == 404
