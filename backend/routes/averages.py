"""
Averages routes: engine endpoints over a posted subject forest.

Every POST body carries {"subjects": [...]} and may add {"periods": [...],
"period_id": "..."} to work on one period's view of the forest.
"""

import logging

from fastapi import APIRouter, HTTPException

from core.averages import average, get_subject_averages
from core.custom_averages import (
    custom_average_impact,
    custom_average_subject_ids,
    custom_average_value,
)
from core.history import average_over_time, create_date_range
from core.impact import grade_impact, subject_impact
from core.parser import SAMPLE_DATA_DIR, parse_custom_average, parse_upload, validate_subject_tree
from core.periods import organize_subjects_by_period
from core.ranking import (
    get_best_grade,
    get_best_grade_in_subject,
    get_best_subject,
    get_subject_average_comparison,
    get_worst_grade,
    get_worst_grade_in_subject,
    get_worst_subject,
)
from core.trends import get_best_trend_subject, get_subject_trend, get_worst_trend_subject
from routes.common import (
    date_range_from_payload,
    periods_from_payload,
    sanitize,
    scoped_subjects_from_payload,
    subjects_from_payload,
)

router = APIRouter()
logger = logging.getLogger(__name__)

SAMPLE_FILE = SAMPLE_DATA_DIR / "sample_subjects.csv"


@router.post("/average")
async def subject_average(payload: dict):
    """Average of one subject, or the global average when no subject_id is given."""
    subjects, _, _ = scoped_subjects_from_payload(payload)
    subject_id = payload.get("subject_id")
    if subject_id is not None and not any(s.id == subject_id for s in subjects):
        raise HTTPException(404, f"Subject '{subject_id}' not found.")
    value = average(subject_id, subjects)
    return sanitize({"subject_id": subject_id, "average": value})


@router.post("/subjects")
async def subject_averages(payload: dict):
    """Average of every subject that has data."""
    subjects, _, _ = scoped_subjects_from_payload(payload)
    return sanitize({"averages": get_subject_averages(subjects)})


@router.post("/periods")
async def periods_overview(payload: dict):
    """Global average of each period's view, then of the full year."""
    subjects = subjects_from_payload(payload)
    periods = periods_from_payload(payload)
    return sanitize({
        "periods": [
            {"period": entry["period"], "average": average(None, entry["subjects"])}
            for entry in organize_subjects_by_period(subjects, periods)
        ]
    })


@router.post("/ranking")
async def ranking(payload: dict):
    """Best/worst subject and grade, optionally restricted to one subtree."""
    subjects, _, _ = scoped_subjects_from_payload(payload)
    is_main_subject = bool(payload.get("is_main_subject", False))
    subject_id = payload.get("subject_id")

    if subject_id is not None:
        if not any(s.id == subject_id for s in subjects):
            raise HTTPException(404, f"Subject '{subject_id}' not found.")
        best_grade = get_best_grade_in_subject(subjects, subject_id)
        worst_grade = get_worst_grade_in_subject(subjects, subject_id)
    else:
        best_grade = get_best_grade(subjects)
        worst_grade = get_worst_grade(subjects)

    return sanitize({
        "best_subject": get_best_subject(subjects, is_main_subject),
        "worst_subject": get_worst_subject(subjects, is_main_subject),
        "best_grade": best_grade,
        "worst_grade": worst_grade,
    })


@router.post("/comparison/{subject_id}")
async def comparison(subject_id: str, payload: dict):
    """Subject average against the plain mean of the other subjects."""
    subjects, _, _ = scoped_subjects_from_payload(payload)
    try:
        result = get_subject_average_comparison(
            subjects,
            subject_id,
            is_main_subject=bool(payload.get("is_main_subject", False)),
            subjects_id=payload.get("subjects_id"),
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    if result is None:
        raise HTTPException(404, f"No comparison available for subject '{subject_id}'.")
    return sanitize(result)


@router.post("/over-time")
async def over_time(payload: dict):
    """Daily average series; days without a grade are null except the last one."""
    subjects, periods, period = scoped_subjects_from_payload(payload)
    start, end = date_range_from_payload(payload, periods, period)
    subject_id = payload.get("subject_id")
    averages = average_over_time(subjects, subject_id, start, end)
    dates = create_date_range(start, end, 1)
    return sanitize({
        "subject_id": subject_id,
        "series": [{"date": d, "average": a} for d, a in zip(dates, averages)],
    })


@router.post("/impact/grade/{grade_id}")
async def impact_of_grade(grade_id: str, payload: dict):
    """Leave-one-out impact of a grade on a subject (or the global) average."""
    subjects, _, _ = scoped_subjects_from_payload(payload)
    result = grade_impact(grade_id, payload.get("subject_id"), subjects)
    if result is None:
        raise HTTPException(404, f"No impact available for grade '{grade_id}'.")
    return sanitize(result)


@router.post("/impact/subject/{subject_id}")
async def impact_of_subject(subject_id: str, payload: dict):
    """Leave-one-out impact of a subtree on another subject (or the global) average."""
    subjects, _, _ = scoped_subjects_from_payload(payload)
    result = subject_impact(subject_id, payload.get("impacted_subject_id"), subjects)
    if result is None:
        raise HTTPException(404, f"No impact available for subject '{subject_id}'.")
    return sanitize(result)


@router.post("/trends")
async def trends(payload: dict):
    """Trend of the target (global by default) plus the best and worst trending subjects."""
    subjects, periods, period = scoped_subjects_from_payload(payload)
    start, end = date_range_from_payload(payload, periods, period)
    is_main_subject = bool(payload.get("is_main_subject", False))
    return sanitize({
        "trend": get_subject_trend(subjects, payload.get("subject_id"), start, end),
        "best_trend": get_best_trend_subject(subjects, start, end, is_main_subject),
        "worst_trend": get_worst_trend_subject(subjects, start, end, is_main_subject),
    })


@router.post("/custom")
async def custom(payload: dict):
    """Value, covered subjects and global-average impact of a custom average."""
    subjects, _, _ = scoped_subjects_from_payload(payload)
    try:
        custom_average = parse_custom_average(payload.get("custom_average"))
    except (ValueError, KeyError) as exc:
        raise HTTPException(400, f"Invalid custom average: {exc}")

    return sanitize({
        "custom_average": custom_average,
        "average": custom_average_value(custom_average, subjects),
        "subject_ids": custom_average_subject_ids(custom_average, subjects),
        "impact": custom_average_impact(custom_average, subjects),
    })


@router.get("/sample")
async def sample():
    """Bundled sample forest, ready to post back to the other endpoints."""
    subjects = validate_subject_tree(parse_upload(str(SAMPLE_FILE)))
    return sanitize({"subjects": subjects})
