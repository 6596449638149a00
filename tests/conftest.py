"""
Pytest fixtures for clearance tests.

Environment is set before anything from clearance is imported so the
module-level settings, engine and rate limiter all see the test values.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="clearance-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'app.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_STORAGE_PATH"] = os.path.join(_TMP_DIR, "bundles")
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ["ADMIN_EMAILS"] = '["admin@spup.edu.ph"]'
os.environ["EXPORT_FIRST_DELAY_SECONDS"] = "0"
os.environ["EXPORT_STEADY_DELAY_SECONDS"] = "0"

from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clearance.config import get_settings

get_settings.cache_clear()

from clearance.kernel.documents import DocumentKey, InMemoryDocument
from clearance.kernel.identity.jwt import JWTManager
from clearance.kernel.models import Base
from clearance.kernel.storage.blob_store import LocalBlobStore
from clearance.kernel.store.submission_store import SubmissionStore


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh file-backed SQLite database per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    await engine.dispose()


@pytest.fixture
def store(session_factory) -> SubmissionStore:
    return SubmissionStore(session_factory)


@pytest.fixture
def blobs(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(
        root=str(tmp_path / "bundles"),
        public_base_url="http://test",
        api_prefix="/api/v1",
    )


@pytest.fixture
def documents() -> Dict[DocumentKey, InMemoryDocument]:
    """Four valid documents."""
    return {
        DocumentKey.APPROVAL_SHEET: InMemoryDocument("Approval Sheet.pdf", b"%PDF-1.4 approval"),
        DocumentKey.FULL_PAPER: InMemoryDocument("thesis-final.docx", b"PK full paper"),
        DocumentKey.LONG_ABSTRACT: InMemoryDocument("abstract.docx", b"PK long abstract"),
        DocumentKey.JOURNAL_FORMAT: InMemoryDocument("journal.DOCX", b"PK journal"),
    }


@pytest.fixture
def undergrad_fields() -> dict:
    """Form fields for an undergraduate group submission."""
    return {
        "level": "undergrad",
        "research_type": "Thesis",
        "name": "Juan Dela Cruz",
        "email": "juan.delacruz@spup.edu.ph",
        "student_id": "2021-00123",
        "adviser": "Dr. Maria Santos",
        "course": "BS Computer Science",
        "graduation_month": "June",
        "graduation_year": "2025",
        "research_title": "Crop Disease Detection Using Convolutional Networks",
        "group_members": [
            {"name": "Ana Reyes", "student_id": "2021-00124"},
            {"name": "Ben Cruz", "student_id": "2021-00125"},
        ],
    }


@pytest.fixture
def grad_fields() -> dict:
    """Form fields for a graduate submission."""
    return {
        "level": "grad",
        "research_type": "Dissertation",
        "name": "Rosa Villanueva",
        "email": "rosa.villanueva@spup.edu.ph",
        "student_id": "G-2019-0042",
        "adviser": "Dr. Pedro Garcia",
        "course": "PhD Education",
        "graduation_month": "March",
        "graduation_year": "2025",
        "research_title": "Teacher Retention in Rural Schools",
    }


@pytest.fixture
def jwt_manager() -> JWTManager:
    """JWT manager using the test secret."""
    return JWTManager()


@pytest.fixture
def admin_headers(jwt_manager: JWTManager) -> dict:
    token, _ = jwt_manager.create_access_token("admin-uid", "admin@spup.edu.ph")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def outsider_headers(jwt_manager: JWTManager) -> dict:
    token, _ = jwt_manager.create_access_token("student-uid", "someone@spup.edu.ph")
    return {"Authorization": f"Bearer {token}"}
