"""
Submission Store Adapter.

Creates, reads, queries and partially updates submission records keyed by
tracking code. Every operation opens its own session and commits, so two
administrators editing the same record simply race: the last update to
reach the database wins.

Backend failures surface as StoreUnavailable. There is no local retry.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clearance.engines.query.filters import FilterCriteria, apply_search_term, within_date_range
from clearance.kernel.errors import (
    DuplicateKey,
    InvalidTrackingId,
    StoreUnavailable,
    SubmissionNotFound,
)
from clearance.kernel.identifiers import validate_tracking_id
from clearance.kernel.models.submission import Level, ResearchType, Submission, SubmissionStatus
from clearance.logging_config import get_logger

logger = get_logger(__name__)


class _Remove:
    """Marker meaning 'delete this field' in a partial update."""

    _instance: Optional["_Remove"] = None

    def __new__(cls) -> "_Remove":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "REMOVE"

    def __bool__(self) -> bool:
        return False


REMOVE = _Remove()

# Fields an administrator may edit after creation
EDITABLE_FIELDS = frozenset({
    "level",
    "research_type",
    "name",
    "email",
    "student_id",
    "adviser",
    "course",
    "graduation_month",
    "graduation_year",
    "research_title",
    "group_members",
})

# Fields that may be cleared to absence
REMOVABLE_FIELDS = frozenset({"group_members", "exported_at", "export_link"})

UPDATABLE_FIELDS = EDITABLE_FIELDS | {"status", "is_exported", "exported_at", "export_link"}

CREATE_FIELDS = EDITABLE_FIELDS | {"zip_file"}


def _member_value(member: Any, *names: str) -> str:
    for name in names:
        if isinstance(member, Mapping):
            value = member.get(name)
        else:
            value = getattr(member, name, None)
        if value is not None:
            return str(value).strip()
    return ""


def normalize_group_members(level: Optional[str], members: Optional[Iterable[Any]]) -> Optional[List[Dict[str, str]]]:
    """
    Keep only fully filled members, and only for undergraduate submissions.

    Returns None (field absent) rather than an empty list.
    """
    if level != Level.UNDERGRADUATE.value or not members:
        return None
    cleaned = []
    for member in members:
        name = _member_value(member, "name")
        student_id = _member_value(member, "student_id", "studentID")
        if name and student_id:
            cleaned.append({"name": name, "student_id": student_id})
    return cleaned or None


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class SubmissionStore:
    """
    Persistence for Submission records.

    Usage:
        store = SubmissionStore(async_session_maker)
        record = await store.get_by_id("SPUP_Clearance_2025_ABC123")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Submission store call failed: %s", exc)
            raise StoreUnavailable("Submission store is unavailable") from exc

    async def create(self, submission_id: str, fields: Mapping[str, Any]) -> Submission:
        """
        Write a new record under submission_id.

        Raises:
            InvalidTrackingId: If the id is not a well-formed tracking code
            DuplicateKey: If a record already exists under the id
            StoreUnavailable: On backend failure
        """
        if not validate_tracking_id(submission_id):
            raise InvalidTrackingId(submission_id)
        unknown = set(fields) - CREATE_FIELDS
        if unknown:
            raise ValueError(f"Unknown submission fields: {sorted(unknown)}")
        if not fields.get("zip_file"):
            raise ValueError("zip_file is required")

        level = _enum_value(fields.get("level"))
        Level(level)
        research_type = _enum_value(fields.get("research_type"))
        ResearchType(research_type)

        values = {k: _enum_value(v) for k, v in fields.items() if k != "group_members"}
        record = Submission(
            **values,
            id=submission_id,
            group_members=normalize_group_members(level, fields.get("group_members")),
            status=SubmissionStatus.SUBMITTED.value,
            is_exported=False,
            submitted_at=datetime.now(timezone.utc),
        )

        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
                await session.refresh(record)
        except IntegrityError as exc:
            raise DuplicateKey(submission_id) from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Submission create failed: %s", exc)
            raise StoreUnavailable("Submission store is unavailable") from exc

        logger.info("Submission created", extra={"submission_id": submission_id})
        return record

    async def get_by_id(self, submission_id: str) -> Optional[Submission]:
        """Point lookup. None means 'not found' and is not an error."""
        async with self._session() as session:
            return await session.get(Submission, submission_id)

    async def exists(self, submission_id: str) -> bool:
        return await self.get_by_id(submission_id) is not None

    async def query_all(self, criteria: Optional[FilterCriteria] = None) -> List[Submission]:
        """
        Equality filters run in SQL, newest first; the search term is then
        applied in Python over the retrieved rows.
        """
        criteria = criteria or FilterCriteria()
        q = select(Submission)
        for field, value in criteria.equality_constraints().items():
            q = q.where(getattr(Submission, field) == value)
        q = q.order_by(Submission.submitted_at.desc())

        async with self._session() as session:
            result = await session.execute(q)
            rows = list(result.scalars().all())
        return apply_search_term(rows, criteria.search_term)

    async def list_exportable(
        self,
        include_exported: bool = False,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[Submission]:
        """Cleared submissions whose bundle has not been exported yet."""
        q = select(Submission).where(Submission.status == SubmissionStatus.CLEARED.value)
        if not include_exported:
            q = q.where(Submission.is_exported.is_(False))
        q = q.order_by(Submission.submitted_at.desc())

        async with self._session() as session:
            result = await session.execute(q)
            rows = list(result.scalars().all())
        return [s for s in rows if within_date_range(s, date_from, date_to)]

    async def list_exported(self) -> List[Submission]:
        q = select(Submission).where(Submission.is_exported.is_(True)).order_by(Submission.submitted_at.desc())
        async with self._session() as session:
            result = await session.execute(q)
            return list(result.scalars().all())

    async def _mutate(self, submission_id: str, mutate: Callable[[Submission], None]) -> Submission:
        async with self._session() as session:
            record = await session.get(Submission, submission_id)
            if record is None:
                raise SubmissionNotFound(submission_id)
            mutate(record)
            await session.commit()
            await session.refresh(record)
            return record

    async def update_fields(self, submission_id: str, partial: Mapping[str, Any]) -> Submission:
        """
        Merge only the provided fields into the record.

        Pass REMOVE as a value to clear a field to absence rather than
        writing an empty value. group_members is normalized against the
        record's level, so an empty or all-blank list is stored as absent.
        """
        unknown = set(partial) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        for field, value in partial.items():
            if value is REMOVE and field not in REMOVABLE_FIELDS:
                raise ValueError(f"Field cannot be removed: {field}")

        def apply(record: Submission) -> None:
            for field, value in partial.items():
                if field != "group_members":
                    setattr(record, field, None if value is REMOVE else _enum_value(value))
            if "group_members" in partial:
                members = partial["group_members"]
                record.group_members = (
                    None if members is REMOVE else normalize_group_members(record.level, members)
                )

        record = await self._mutate(submission_id, apply)
        logger.info(
            "Submission updated",
            extra={"submission_id": submission_id, "fields": sorted(partial)},
        )
        return record

    async def update_details(self, submission_id: str, details: Mapping[str, Any]) -> Submission:
        """Admin edit of descriptive fields; group members are re-normalized."""
        unknown = set(details) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")
        if "level" in details:
            Level(_enum_value(details["level"]))
        if "research_type" in details:
            ResearchType(_enum_value(details["research_type"]))

        def apply(record: Submission) -> None:
            for field, value in details.items():
                if field != "group_members":
                    setattr(record, field, _enum_value(value))
            members = details["group_members"] if "group_members" in details else record.group_members
            record.group_members = normalize_group_members(record.level, members)

        record = await self._mutate(submission_id, apply)
        logger.info(
            "Submission details edited",
            extra={"submission_id": submission_id, "fields": sorted(details)},
        )
        return record

    async def update_status(self, submission_id: str, status: str) -> Submission:
        status = SubmissionStatus(_enum_value(status)).value
        return await self.update_fields(submission_id, {"status": status})

    async def mark_exported(self, submission_id: str, exported: bool = True) -> Submission:
        """Set is_exported; exported_at is written in the same update."""
        if exported:
            return await self.update_fields(
                submission_id,
                {"is_exported": True, "exported_at": datetime.now(timezone.utc)},
            )
        return await self.update_fields(submission_id, {"is_exported": False, "exported_at": REMOVE})

    async def set_export_link(self, submission_id: str, url: str) -> Submission:
        return await self.update_fields(submission_id, {"export_link": url})

    async def clear_export_link(self, submission_id: str) -> Submission:
        return await self.update_fields(submission_id, {"export_link": REMOVE})
