"""Query engine - admin listing filters and dashboard counters."""

from clearance.engines.query.filters import (
    FilterCriteria,
    apply_search_term,
    filter_submissions,
    summarize,
    within_date_range,
)

__all__ = [
    "FilterCriteria",
    "apply_search_term",
    "filter_submissions",
    "summarize",
    "within_date_range",
]
