"""
common.py: Payload parsing and response cleanup shared by the routers.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional, Tuple

import numpy as np
from fastapi import HTTPException

from core.history import full_year_range, start_of_day
from core.models import Period, Subject
from core.parser import parse_periods, parse_subjects, validate_subject_tree
from core.periods import period_range, subjects_for_period

logger = logging.getLogger(__name__)

MAX_HISTORY_DAYS = int(os.getenv("MAX_HISTORY_DAYS", "1100"))


def sanitize(obj):
    """Recursively turn records, datetimes and numpy scalars into JSON-safe values."""
    if isinstance(obj, dict):
        return {k: sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize(v) for v in obj]
    if hasattr(obj, "to_dict") and not isinstance(obj, type):
        return obj.to_dict()
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def subjects_from_payload(payload: dict) -> List[Subject]:
    """Extract and validate the subject forest from a request payload."""
    data = payload.get("subjects")
    if data is None:
        raise HTTPException(400, "No subjects provided.")
    try:
        return validate_subject_tree(parse_subjects(data))
    except ValueError as exc:
        logger.warning("Rejected subject payload: %s", exc)
        raise HTTPException(400, str(exc))


def periods_from_payload(payload: dict) -> List[Period]:
    try:
        return parse_periods(payload.get("periods"))
    except ValueError as exc:
        logger.warning("Rejected period payload: %s", exc)
        raise HTTPException(400, str(exc))


def scoped_subjects_from_payload(payload: dict) -> Tuple[List[Subject], List[Period], Optional[Period]]:
    """
    Subjects, periods and the selected period. With a `period_id` the
    subjects are that period's view of the forest.
    """
    subjects = subjects_from_payload(payload)
    periods = periods_from_payload(payload)
    period_id = payload.get("period_id")
    if not period_id:
        return subjects, periods, None

    try:
        period, subjects = subjects_for_period(subjects, periods, period_id)
    except ValueError as exc:
        raise HTTPException(404, str(exc))
    return subjects, periods, period


def date_range_from_payload(
    payload: dict, periods: List[Period], period: Optional[Period] = None
) -> Tuple[datetime, datetime]:
    """
    Explicit start_date/end_date, else the selected period, else the full
    school year. Every range is held to MAX_HISTORY_DAYS.
    """
    start, end = payload.get("start_date"), payload.get("end_date")
    if (start is None) != (end is None):
        raise HTTPException(400, "Provide both start_date and end_date, or neither.")

    if start is None:
        start, end = period_range(period) if period else full_year_range(periods)

    try:
        start, end = start_of_day(start), start_of_day(end)
    except ValueError as exc:
        raise HTTPException(400, f"Invalid date: {exc}")
    if end < start:
        raise HTTPException(400, "end_date is before start_date.")

    days = (end - start).days + 1
    if days > MAX_HISTORY_DAYS:
        logger.warning("Rejected history range of %d days", days)
        raise HTTPException(400, f"Date range exceeds {MAX_HISTORY_DAYS} days.")
    return start.to_pydatetime(), end.to_pydatetime()
