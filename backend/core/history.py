"""
history.py: Point-in-time reconstruction of averages.

Computes:
- average_over_time: one value per day, recomputed only on grade days and
  on the last day of the range (other days are None placeholders)
- get_grade_dates: distinct passed_at values of a subject subtree
- create_date_range: inclusive day-stepped sequence (pandas.date_range)
- full_year_range: school-year span from the periods, Sep 1 - Jun 30 by default
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Set, Tuple

import pandas as pd

from core.averages import average
from core.models import Period, Subject
from core.tree import find_subject, get_children

logger = logging.getLogger(__name__)

ONE_DAY = pd.Timedelta(days=1)

# (month, day) bounds of the default school year
SCHOOL_YEAR_START = (9, 1)
SCHOOL_YEAR_END = (6, 30)


# ── Helpers ─────────────────────────────────────────────────────────

def to_timestamp(value) -> pd.Timestamp:
    """Coerce a date-like value to a naive UTC pandas Timestamp."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def start_of_day(value) -> pd.Timestamp:
    return to_timestamp(value).normalize()


def subjects_as_of(subjects: List[Subject], cutoff) -> List[Subject]:
    """Copy of the forest keeping only grades passed strictly before `cutoff`."""
    cutoff = to_timestamp(cutoff)
    return [
        replace(s, grades=[g for g in s.grades if to_timestamp(g.passed_at) < cutoff])
        for s in subjects
    ]


# ── Date helpers ────────────────────────────────────────────────────

def create_date_range(start, end, interval_days: int = 1) -> List[datetime]:
    """Inclusive sequence from `start` to `end`, stepping `interval_days` days."""
    if interval_days < 1:
        raise ValueError("interval_days must be at least 1.")
    dates = pd.date_range(to_timestamp(start), to_timestamp(end), freq=f"{interval_days}D")
    return [ts.to_pydatetime() for ts in dates]


def get_grade_dates(subjects: List[Subject], subject_id: Optional[str] = None) -> List[datetime]:
    """
    Distinct passed_at values, sorted.

    With a subject_id only that subject and its descendants are scanned,
    otherwise the whole forest.
    """
    if subject_id is not None:
        ids = {subject_id, *get_children(subjects, subject_id)}
        scanned = [s for s in subjects if s.id in ids]
    else:
        scanned = subjects

    dates = {grade.passed_at for subject in scanned for grade in subject.grades}
    return sorted(dates)


def full_year_range(
    periods: Optional[List[Period]] = None, today=None
) -> Tuple[datetime, datetime]:
    """
    Day span of the whole school year.

    With periods it runs from the earliest period start to the end of the
    last-starting period. Without any, it is the September 1 - June 30 year
    that contains `today`.
    """
    if periods:
        ordered = sorted(periods, key=lambda p: p.start_at)
        start = start_of_day(ordered[0].start_at)
        end = start_of_day(ordered[-1].end_at)
        return start.to_pydatetime(), end.to_pydatetime()

    today = start_of_day(today if today is not None else pd.Timestamp.now(tz="UTC"))
    year = today.year if today.month >= SCHOOL_YEAR_START[0] else today.year - 1
    return (
        datetime(year, *SCHOOL_YEAR_START),
        datetime(year + 1, *SCHOOL_YEAR_END),
    )


# ── Reconstruction ──────────────────────────────────────────────────

def average_over_time(
    subjects: List[Subject],
    subject_id: Optional[str],
    start_date,
    end_date,
) -> List[Optional[float]]:
    """
    Average of `subject_id` (global when None) as of each day of the range.

    A day's value counts every grade passed on or before that day. Only days
    that carry a grade, and the final day, are computed; the rest are None
    so callers can forward-fill.
    """
    days = pd.date_range(start_of_day(start_date), start_of_day(end_date), freq="D")
    if len(days) == 0:
        return []

    if subject_id is not None and find_subject(subjects, subject_id) is None:
        return [None] * len(days)

    grade_days: Set[pd.Timestamp] = {start_of_day(d) for d in get_grade_dates(subjects, subject_id)}

    averages: List[Optional[float]] = []
    last_index = len(days) - 1
    for index, day in enumerate(days):
        if day not in grade_days and index != last_index:
            averages.append(None)
            continue
        filtered = subjects_as_of(subjects, day + ONE_DAY)
        averages.append(average(subject_id, filtered))

    logger.debug(
        "average_over_time(%s): %d days, %d computed",
        subject_id, len(days), sum(1 for a in averages if a is not None),
    )
    return averages
