"""
periods.py: Per-period views of the subject forest.

A grade belongs to one period through its period_id. The view of a period
keeps only that period's grades, or, for a cumulative period, the grades of
that period and of every period that starts before it. A synthetic
"full-year" period spanning the whole school year keeps every grade.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.history import full_year_range, start_of_day
from core.models import Period, Subject

logger = logging.getLogger(__name__)

FULL_YEAR_ID = "full-year"


def sort_periods(periods: List[Period]) -> List[Period]:
    return sorted(periods, key=lambda p: p.start_at)


def full_year_period(periods: Optional[List[Period]] = None, today=None) -> Period:
    start_at, end_at = full_year_range(periods, today)
    return Period(id=FULL_YEAR_ID, name="Full Year", start_at=start_at, end_at=end_at)


def _filter_grades(subjects: List[Subject], period_ids) -> List[Subject]:
    wanted = set(period_ids)
    return [
        replace(s, grades=[g for g in s.grades if g.period_id in wanted])
        for s in subjects
    ]


def organize_subjects_by_period(
    subjects: List[Subject], periods: List[Period], today=None
) -> List[Dict[str, Any]]:
    """
    One {"period", "subjects"} entry per period in start order, then the
    full-year entry. The input forest is left untouched.
    """
    ordered = sort_periods(periods)
    organized = []
    for index, period in enumerate(ordered):
        if period.is_cumulative:
            relevant = [p.id for p in ordered[: index + 1]]
        else:
            relevant = [period.id]
        organized.append({"period": period, "subjects": _filter_grades(subjects, relevant)})

    organized.append({
        "period": full_year_period(ordered, today),
        "subjects": [replace(s, grades=list(s.grades)) for s in subjects],
    })
    logger.debug("Organized %d subjects over %d periods", len(subjects), len(ordered))
    return organized


def subjects_for_period(
    subjects: List[Subject], periods: List[Period], period_id: str, today=None
) -> Tuple[Period, List[Subject]]:
    """The period and its view of the forest. Raises ValueError for an unknown id."""
    for entry in organize_subjects_by_period(subjects, periods, today):
        if entry["period"].id == period_id:
            return entry["period"], entry["subjects"]
    raise ValueError(f"Unknown period: {period_id}")


def period_range(period: Period) -> Tuple[datetime, datetime]:
    """First and last day of a period."""
    start = start_of_day(period.start_at)
    end = start_of_day(period.end_at)
    return start.to_pydatetime(), end.to_pydatetime()
