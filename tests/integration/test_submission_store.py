"""Integration tests for SubmissionStore over SQLite."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from clearance.engines.query.filters import FilterCriteria
from clearance.kernel.errors import DuplicateKey, InvalidTrackingId, StoreUnavailable, SubmissionNotFound
from clearance.kernel.models.submission import Submission
from clearance.kernel.store.submission_store import REMOVE, SubmissionStore, normalize_group_members

ID_A = "SPUP_Clearance_2025_AAAAAA"
ID_B = "SPUP_Clearance_2025_BBBBBB"
ID_C = "SPUP_Clearance_2025_CCCCCC"


def _with_zip(fields, submission_id):
    return {**fields, "zip_file": f"http://test/api/v1/bundles/{submission_id}.zip"}


async def _set_submitted_at(session_factory, submission_id, when):
    async with session_factory() as session:
        await session.execute(
            update(Submission).where(Submission.id == submission_id).values(submitted_at=when)
        )
        await session.commit()


class TestNormalizeGroupMembers:
    def test_drops_blank_members(self):
        members = [
            {"name": " Ana ", "student_id": "1"},
            {"name": "", "student_id": "2"},
            {"name": "Ben", "studentID": "3"},
            {"name": "Cy", "student_id": "  "},
        ]
        assert normalize_group_members("undergrad", members) == [
            {"name": "Ana", "student_id": "1"},
            {"name": "Ben", "student_id": "3"},
        ]

    def test_absent_not_empty(self):
        assert normalize_group_members("undergrad", []) is None
        assert normalize_group_members("undergrad", [{"name": "", "student_id": ""}]) is None
        assert normalize_group_members("grad", [{"name": "Ana", "student_id": "1"}]) is None


class TestSubmissionStore:
    """Tests for SubmissionStore."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store: SubmissionStore, undergrad_fields):
        created = await store.create(ID_A, _with_zip(undergrad_fields, ID_A))

        assert created.status == "Submitted"
        assert created.is_exported is False
        assert created.exported_at is None

        fetched = await store.get_by_id(ID_A)
        assert fetched is not None
        assert fetched.name == "Juan Dela Cruz"
        assert fetched.zip_file.endswith(f"{ID_A}.zip")
        assert len(fetched.group_members) == 2

    @pytest.mark.asyncio
    async def test_get_missing_is_none(self, store: SubmissionStore):
        assert await store.get_by_id(ID_A) is None
        assert await store.exists(ID_A) is False

    @pytest.mark.asyncio
    async def test_duplicate_key(self, store: SubmissionStore, grad_fields):
        await store.create(ID_A, _with_zip(grad_fields, ID_A))
        with pytest.raises(DuplicateKey):
            await store.create(ID_A, _with_zip(grad_fields, ID_A))

    @pytest.mark.asyncio
    async def test_create_rejects_malformed_id(self, store: SubmissionStore, grad_fields):
        with pytest.raises(InvalidTrackingId):
            await store.create("not-an-id", _with_zip(grad_fields, "x"))

    @pytest.mark.asyncio
    async def test_graduate_group_members_absent(self, store: SubmissionStore, grad_fields):
        """A grad record never reads back with a list of blank members."""
        fields = {**grad_fields, "group_members": [{"name": "", "student_id": ""}]}
        await store.create(ID_A, _with_zip(fields, ID_A))

        fetched = await store.get_by_id(ID_A)
        assert fetched.group_members is None
        assert fetched.members == []

    @pytest.mark.asyncio
    async def test_query_all_filters_and_orders(self, store, session_factory, undergrad_fields, grad_fields):
        await store.create(ID_A, _with_zip(undergrad_fields, ID_A))
        await store.create(ID_B, _with_zip(undergrad_fields, ID_B))
        await store.create(ID_C, _with_zip(grad_fields, ID_C))
        base = datetime(2025, 6, 1, tzinfo=timezone.utc)
        await _set_submitted_at(session_factory, ID_A, base)
        await _set_submitted_at(session_factory, ID_B, base + timedelta(hours=1))
        await _set_submitted_at(session_factory, ID_C, base + timedelta(hours=2))
        for submission_id in (ID_A, ID_B, ID_C):
            await store.update_status(submission_id, "Cleared")

        result = await store.query_all(FilterCriteria(level="undergrad", status="Cleared"))
        assert [s.id for s in result] == [ID_B, ID_A]

        everything = await store.query_all(FilterCriteria(level="all", status="all"))
        assert [s.id for s in everything] == [ID_C, ID_B, ID_A]

        none = await store.query_all(
            FilterCriteria(level="undergrad", status="Cleared", search_term="asdf")
        )
        assert none == []

        by_title = await store.query_all(FilterCriteria(search_term="RETENTION"))
        assert [s.id for s in by_title] == [ID_C]

    @pytest.mark.asyncio
    async def test_update_fields_and_remove_marker(self, store: SubmissionStore, grad_fields):
        await store.create(ID_A, _with_zip(grad_fields, ID_A))

        updated = await store.set_export_link(ID_A, "https://drive.example.com/archive")
        assert updated.export_link == "https://drive.example.com/archive"
        assert updated.name == grad_fields["name"]

        cleared = await store.clear_export_link(ID_A)
        assert cleared.export_link is None

    @pytest.mark.asyncio
    async def test_remove_marker_only_for_optional_fields(self, store: SubmissionStore, grad_fields):
        await store.create(ID_A, _with_zip(grad_fields, ID_A))
        with pytest.raises(ValueError):
            await store.update_fields(ID_A, {"name": REMOVE})
        with pytest.raises(ValueError):
            await store.update_fields(ID_A, {"zip_file": "elsewhere"})

    @pytest.mark.asyncio
    async def test_update_fields_normalizes_group_members(self, store: SubmissionStore, undergrad_fields):
        await store.create(ID_A, _with_zip(undergrad_fields, ID_A))

        emptied = await store.update_fields(ID_A, {"group_members": []})
        assert emptied.group_members is None

        await store.update_fields(ID_A, {"group_members": [{"name": "Ana", "student_id": "1"}]})
        blanks = await store.update_fields(
            ID_A,
            {"group_members": [{"name": "", "student_id": ""}, {"name": " ", "studentID": " "}]},
        )
        assert blanks.group_members is None

        kept = await store.update_fields(
            ID_A,
            {"group_members": [{"name": " Ana ", "studentID": "1"}, {"name": "", "student_id": "2"}]},
        )
        assert kept.group_members == [{"name": "Ana", "student_id": "1"}]

        removed = await store.update_fields(ID_A, {"group_members": REMOVE})
        assert removed.group_members is None

    @pytest.mark.asyncio
    async def test_update_fields_drops_members_for_graduate(self, store: SubmissionStore, grad_fields):
        await store.create(ID_A, _with_zip(grad_fields, ID_A))

        updated = await store.update_fields(ID_A, {"group_members": [{"name": "Ana", "student_id": "1"}]})
        assert updated.group_members is None
        assert (await store.get_by_id(ID_A)).group_members is None

    @pytest.mark.asyncio
    async def test_mark_exported_sets_timestamp_together(self, store: SubmissionStore, grad_fields):
        await store.create(ID_A, _with_zip(grad_fields, ID_A))

        exported = await store.mark_exported(ID_A, True)
        assert exported.is_exported is True
        assert exported.exported_at is not None

        reverted = await store.mark_exported(ID_A, False)
        assert reverted.is_exported is False
        assert reverted.exported_at is None

    @pytest.mark.asyncio
    async def test_update_missing_record(self, store: SubmissionStore):
        with pytest.raises(SubmissionNotFound):
            await store.update_status(ID_A, "Cleared")

    @pytest.mark.asyncio
    async def test_update_details_renormalizes_members(self, store: SubmissionStore, undergrad_fields):
        await store.create(ID_A, _with_zip(undergrad_fields, ID_A))

        edited = await store.update_details(ID_A, {"level": "grad", "course": "MAEd"})
        assert edited.level == "grad"
        assert edited.course == "MAEd"
        assert edited.group_members is None

        edited = await store.update_details(
            ID_A,
            {"level": "undergrad", "group_members": [{"name": "Ana", "student_id": "1"}, {"name": "", "student_id": ""}]},
        )
        assert edited.group_members == [{"name": "Ana", "student_id": "1"}]

    @pytest.mark.asyncio
    async def test_list_exportable(self, store, session_factory, undergrad_fields, grad_fields):
        await store.create(ID_A, _with_zip(undergrad_fields, ID_A))
        await store.create(ID_B, _with_zip(undergrad_fields, ID_B))
        await store.create(ID_C, _with_zip(grad_fields, ID_C))
        await _set_submitted_at(session_factory, ID_C, datetime(2024, 1, 1, tzinfo=timezone.utc))
        await store.update_status(ID_A, "Cleared")
        await store.update_status(ID_C, "Cleared")
        await store.update_status(ID_B, "Cleared")
        await store.mark_exported(ID_B, True)

        assert {s.id for s in await store.list_exportable()} == {ID_A, ID_C}
        assert {s.id for s in await store.list_exportable(include_exported=True)} == {ID_A, ID_B, ID_C}
        recent = await store.list_exportable(date_from=datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert [s.id for s in recent] == [ID_A]
        assert [s.id for s in await store.list_exported()] == [ID_B]

    @pytest.mark.asyncio
    async def test_backend_failure_is_store_unavailable(self, store, session_factory, grad_fields):
        await store.create(ID_A, _with_zip(grad_fields, ID_A))
        async with session_factory() as session:
            await session.run_sync(lambda s: Submission.__table__.drop(s.connection()))
            await session.commit()

        with pytest.raises(StoreUnavailable):
            await store.get_by_id(ID_A)
