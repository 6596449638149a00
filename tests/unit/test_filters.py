"""Unit tests for the filter query engine."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from clearance.engines.query.filters import (
    FilterCriteria,
    apply_search_term,
    filter_submissions,
    summarize,
    within_date_range,
)

BASE = datetime(2025, 5, 1, tzinfo=timezone.utc)


@dataclass
class Row:
    id: str
    level: str
    status: str
    course: str
    name: str
    student_id: str
    research_title: str
    email: str
    submitted_at: datetime
    is_exported: bool = False
    exported_at: Optional[datetime] = None


def _rows():
    return [
        Row("A", "undergrad", "Cleared", "BSCS", "Ana Reyes", "2021-1", "Crop Disease", "ana@spup.edu.ph", BASE),
        Row("B", "undergrad", "Submitted", "BSCS", "Ben Cruz", "2021-2", "Flood Maps", "ben@spup.edu.ph", BASE + timedelta(days=1)),
        Row("C", "grad", "Cleared", "MAEd", "Carla Lim", "G-3", "Teacher Retention", "carla@spup.edu.ph", BASE + timedelta(days=2)),
        Row("D", "undergrad", "Cleared", "BSIT", "Dan Yu", "2021-4", "Crop Yield", "dan@spup.edu.ph", BASE + timedelta(days=3), True),
    ]


class TestFilterCriteria:
    def test_blank_and_all_mean_no_constraint(self):
        criteria = FilterCriteria(level="all", status="", course="  ", search_term=" ")
        assert criteria.equality_constraints() == {}
        assert criteria.search_term is None

    def test_constraints(self):
        criteria = FilterCriteria(level="undergrad", status="Cleared", course="BSCS")
        assert criteria.equality_constraints() == {
            "level": "undergrad",
            "status": "Cleared",
            "course": "BSCS",
        }


class TestFilterSubmissions:
    """Tests for filter_submissions."""

    def test_equality_conjunction_newest_first(self):
        result = filter_submissions(_rows(), FilterCriteria(level="undergrad", status="Cleared"))
        assert [r.id for r in result] == ["D", "A"]

    def test_no_criteria_returns_all_newest_first(self):
        assert [r.id for r in filter_submissions(_rows(), FilterCriteria())] == ["D", "C", "B", "A"]

    def test_unmatched_search_is_empty(self):
        criteria = FilterCriteria(level="undergrad", status="Cleared", search_term="asdf")
        assert filter_submissions(_rows(), criteria) == []

    def test_search_is_case_insensitive_across_fields(self):
        rows = _rows()
        assert [r.id for r in apply_search_term(rows, "CROP")] == ["A", "D"]
        assert [r.id for r in apply_search_term(rows, "g-3")] == ["C"]
        assert [r.id for r in apply_search_term(rows, "ben@spup")] == ["B"]
        assert [r.id for r in apply_search_term(rows, "lim")] == ["C"]

    def test_deterministic(self):
        rows = _rows()
        criteria = FilterCriteria(search_term="spup")
        assert filter_submissions(rows, criteria) == filter_submissions(rows, criteria)
        assert [r.id for r in rows] == ["A", "B", "C", "D"]


class TestDateRangeAndSummary:
    def test_within_date_range(self):
        row = _rows()[1]
        assert within_date_range(row, BASE, BASE + timedelta(days=1))
        assert not within_date_range(row, BASE + timedelta(days=2), None)
        # Naive bounds are read as UTC
        assert within_date_range(row, datetime(2025, 5, 1), datetime(2025, 5, 3))

    def test_summarize(self):
        assert summarize(_rows()) == {
            "total": 4,
            "submitted": 1,
            "cleared": 3,
            "undergrad": 3,
            "grad": 1,
            "exported": 1,
        }
