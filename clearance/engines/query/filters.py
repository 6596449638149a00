"""
Status/Filter Query Engine.

Equality filters on level, status and course are what the store pushes
down to SQL. The free-text search is applied in Python after retrieval:
it is a case-insensitive substring match over name, student ID, research
title and email, OR-ed together. Because it runs after retrieval it cannot
be combined with store-side pagination without re-filtering every page.

Everything here is pure so it can be tested without a database.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, field_validator

from clearance.kernel.models.submission import Level, SubmissionStatus

ALL = "all"
SEARCH_FIELDS = ("name", "student_id", "research_title", "email")


class FilterCriteria(BaseModel):
    """Admin listing filters. None, '' and 'all' all mean 'no constraint'."""

    level: Optional[str] = None
    status: Optional[str] = None
    course: Optional[str] = None
    search_term: Optional[str] = None

    @field_validator("level", "status", "course", "search_term")
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def equality_constraints(self) -> Dict[str, str]:
        """Field -> required value for every active equality filter."""
        constraints: Dict[str, str] = {}
        if self.level and self.level != ALL:
            constraints["level"] = self.level
        if self.status and self.status != ALL:
            constraints["status"] = self.status
        if self.course and self.course != ALL:
            constraints["course"] = self.course
        return constraints


def _as_utc(value: Optional[datetime]) -> datetime:
    # SQLite hands back naive datetimes
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def matches_search(submission: Any, term: str) -> bool:
    needle = term.lower()
    for attr in SEARCH_FIELDS:
        value = getattr(submission, attr, None) or ""
        if needle in str(value).lower():
            return True
    return False


def apply_search_term(submissions: Iterable[Any], search_term: Optional[str]) -> List[Any]:
    """Client-side search pass; keeps input order."""
    items = list(submissions)
    term = (search_term or "").strip()
    if not term:
        return items
    return [s for s in items if matches_search(s, term)]


def order_newest_first(submissions: Iterable[Any]) -> List[Any]:
    return sorted(submissions, key=lambda s: _as_utc(getattr(s, "submitted_at", None)), reverse=True)


def filter_submissions(submissions: Sequence[Any], criteria: FilterCriteria) -> List[Any]:
    """
    Apply equality filters, newest-first ordering and the search pass.

    Deterministic and side-effect free: the same input list and criteria
    always produce the same output list.
    """
    constraints = criteria.equality_constraints()
    selected = [
        s for s in submissions
        if all(getattr(s, field, None) == value for field, value in constraints.items())
    ]
    return apply_search_term(order_newest_first(selected), criteria.search_term)


def within_date_range(
    submission: Any,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> bool:
    submitted = _as_utc(getattr(submission, "submitted_at", None))
    if date_from is not None and submitted < _as_utc(date_from):
        return False
    if date_to is not None and submitted > _as_utc(date_to):
        return False
    return True


def summarize(submissions: Iterable[Any]) -> Dict[str, int]:
    """Dashboard counters."""
    counts = {
        "total": 0,
        "submitted": 0,
        "cleared": 0,
        "undergrad": 0,
        "grad": 0,
        "exported": 0,
    }
    for s in submissions:
        counts["total"] += 1
        if s.status == SubmissionStatus.SUBMITTED.value:
            counts["submitted"] += 1
        elif s.status == SubmissionStatus.CLEARED.value:
            counts["cleared"] += 1
        if s.level == Level.UNDERGRADUATE.value:
            counts["undergrad"] += 1
        elif s.level == Level.GRADUATE.value:
            counts["grad"] += 1
        if getattr(s, "is_exported", False):
            counts["exported"] += 1
    return counts
