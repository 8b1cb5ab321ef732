"""
trends.py: Linear trend of reconstructed average series.

The slope is in average points (0-20 scale) per day, fitted by ordinary
least squares (scipy.stats.linregress) on the non-null points only.
"""

from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from scipy import stats as sp_stats

from core.history import average_over_time, create_date_range, start_of_day
from core.models import Subject


def get_trend(data: Iterable[Dict[str, Any]]) -> float:
    """
    OLS slope of `average` against days elapsed since the first point.

    Entries with a None average are dropped. Fewer than two points, or all
    points on the same day, give 0.
    """
    points = [d for d in data if d.get("average") is not None]
    if len(points) < 2:
        return 0.0

    first = start_of_day(points[0]["date"])
    x = np.array(
        [(start_of_day(p["date"]) - first).total_seconds() / 86400 for p in points],
        dtype=float,
    )
    y = np.array([p["average"] for p in points], dtype=float)

    n = len(points)
    denominator = n * np.sum(x * x) - np.sum(x) ** 2
    if denominator == 0:
        return 0.0

    return float(sp_stats.linregress(x, y).slope)


def _series(subjects: List[Subject], subject_id: Optional[str], start_date, end_date) -> List[Dict[str, Any]]:
    averages = average_over_time(subjects, subject_id, start_date, end_date)
    dates = create_date_range(start_of_day(start_date), start_of_day(end_date), 1)
    return [{"date": d, "average": a} for d, a in zip(dates, averages)]


def get_subject_trend(
    subjects: List[Subject], subject_id: Optional[str], start_date, end_date
) -> float:
    """Trend of one subject (global when subject_id is None) over the range."""
    return get_trend(_series(subjects, subject_id, start_date, end_date))


def _extremal_trend_subject(
    subjects: List[Subject], start_date, end_date, is_main_subject: bool, best: bool
) -> Optional[Dict[str, Any]]:
    candidates = [s for s in subjects if s.is_main_subject] if is_main_subject else subjects

    chosen: Optional[Dict[str, Any]] = None
    for subject in candidates:
        series = _series(subjects, subject.id, start_date, end_date)
        if all(point["average"] is None for point in series):
            continue
        trend = get_trend(series)
        if chosen is None or (trend > chosen["trend"] if best else trend < chosen["trend"]):
            chosen = {"subject": subject, "trend": trend}

    return chosen


def get_best_trend_subject(
    subjects: List[Subject], start_date, end_date, is_main_subject: bool = False
) -> Optional[Dict[str, Any]]:
    """Subject with the steepest rising trend: {"subject", "trend"} or None."""
    return _extremal_trend_subject(subjects, start_date, end_date, is_main_subject, best=True)


def get_worst_trend_subject(
    subjects: List[Subject], start_date, end_date, is_main_subject: bool = False
) -> Optional[Dict[str, Any]]:
    return _extremal_trend_subject(subjects, start_date, end_date, is_main_subject, best=False)
