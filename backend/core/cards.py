"""
cards.py: Dashboard card values computed from the averaging engine.

Each card kind is a `Calculator` member mapped to one function. Averages are
reported x100 scaled on a 2000 scale (14.5/20 -> value=1450, out_of=2000),
the same fixed-point convention as the stored grades.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.averages import average
from core.custom_averages import add_general_average_to_subjects, custom_average_value
from core.history import average_over_time, full_year_range
from core.impact import grade_impact
from core.models import CustomAverage, Period, Subject
from core.periods import period_range, subjects_for_period
from core.ranking import (
    get_best_grade,
    get_best_subject,
    get_subject_average_comparison,
    get_worst_grade,
    get_worst_subject,
)

logger = logging.getLogger(__name__)

AVERAGE_OUT_OF = 2000

# Window length in days for each growth time range; None means the whole series.
TIME_RANGES = {
    "since_start": None,
    "this_week": 7,
    "this_month": 30,
    "this_year": 365,
}


class Calculator(str, Enum):
    GLOBAL_AVERAGE = "global_average"
    CUSTOM_AVERAGE = "custom_average"
    BEST_GRADE = "best_grade"
    WORST_GRADE = "worst_grade"
    BEST_SUBJECT = "best_subject"
    WORST_SUBJECT = "worst_subject"
    GRADE_IMPACT = "grade_impact"


def _scaled(value: Optional[float]) -> Optional[float]:
    return value * 100 if value is not None else None


def _find_custom_average(
    custom_averages: Optional[List[CustomAverage]], custom_average_id: Optional[str]
) -> Optional[CustomAverage]:
    if not custom_averages or not custom_average_id:
        return None
    return next((ca for ca in custom_averages if ca.id == custom_average_id), None)


def growth_percentage(series: List[Optional[float]], time_range: str = "since_start") -> float:
    """Relative change between the first value inside the window and the last value."""
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range: {time_range}")
    if not series or series[-1] is None:
        return 0.0

    window = TIME_RANGES[time_range]
    start_index = 0 if window is None else max(len(series) - window, 0)
    first = next((v for v in series[start_index:] if v is not None), None)
    if first is None or first == 0:
        return 0.0
    return ((series[-1] - first) / first) * 100


# ── Calculators ─────────────────────────────────────────────────────

def _global_average(
    subjects: List[Subject],
    params: Dict[str, Any],
    period: Optional[Period] = None,
    periods: Optional[List[Period]] = None,
    **_,
) -> Dict[str, Any]:
    time_range = params.get("time_range", "since_start")

    start_date, end_date = params.get("start_date"), params.get("end_date")
    if start_date is None or end_date is None:
        start_date, end_date = period_range(period) if period else full_year_range(periods)
    growth = growth_percentage(
        average_over_time(subjects, None, start_date, end_date), time_range
    )

    return {
        "value": _scaled(average(None, subjects)),
        "out_of": AVERAGE_OUT_OF,
        "growth_percentage": growth,
        "metadata": {"time_range": time_range},
    }


def _custom_average(
    subjects: List[Subject],
    params: Dict[str, Any],
    custom_averages: Optional[List[CustomAverage]] = None,
    **_,
) -> Dict[str, Any]:
    custom_average = _find_custom_average(custom_averages, params.get("custom_average_id"))
    if custom_average is None:
        return {"value": None}

    custom_value = custom_average_value(custom_average, subjects)
    if custom_value is None:
        return {"value": None}

    comparison_type = "same"
    comparison_percentage = 0.0
    global_value = average(None, subjects)
    if global_value is not None and global_value != 0:
        diff = ((custom_value - global_value) / global_value) * 100
        if diff > 0:
            comparison_type = "higher"
        elif diff < 0:
            comparison_type = "lower"
        comparison_percentage = abs(round(diff, 2))

    return {
        "value": _scaled(custom_value),
        "out_of": AVERAGE_OUT_OF,
        "comparison_type": comparison_type,
        "comparison_percentage": comparison_percentage,
        "custom_average_name": custom_average.name,
    }


def _grade_card(descriptor: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if descriptor is None:
        return {"value": None, "out_of": AVERAGE_OUT_OF}
    return {
        "value": descriptor["grade"],
        "out_of": descriptor["out_of"],
        "subject_name": descriptor["subject"].name,
        "grade_name": descriptor["name"],
    }


def _best_grade(subjects: List[Subject], params: Dict[str, Any], **_) -> Dict[str, Any]:
    return _grade_card(get_best_grade(subjects))


def _worst_grade(subjects: List[Subject], params: Dict[str, Any], **_) -> Dict[str, Any]:
    return _grade_card(get_worst_grade(subjects))


def _subject_card(subjects: List[Subject], subject: Optional[Subject]) -> Dict[str, Any]:
    if subject is None:
        return {"value": None, "out_of": AVERAGE_OUT_OF}

    comparison = get_subject_average_comparison(subjects, subject.id, is_main_subject=True)
    percentage_change = comparison["percentage_change"] if comparison else None
    return {
        "value": _scaled(average(subject.id, subjects)),
        "out_of": AVERAGE_OUT_OF,
        "subject_name": subject.name,
        "comparison_percentage": abs(percentage_change) if percentage_change else None,
    }


def _best_subject(subjects: List[Subject], params: Dict[str, Any], **_) -> Dict[str, Any]:
    return _subject_card(subjects, get_best_subject(subjects, is_main_subject=True))


def _worst_subject(subjects: List[Subject], params: Dict[str, Any], **_) -> Dict[str, Any]:
    return _subject_card(subjects, get_worst_subject(subjects, is_main_subject=True))


def _grade_impact(
    subjects: List[Subject],
    params: Dict[str, Any],
    custom_averages: Optional[List[CustomAverage]] = None,
    **_,
) -> Dict[str, Any]:
    grade_id = params.get("grade_id")
    if not grade_id:
        return {"value": None}

    target_subject_id = params.get("subject_id")
    custom_average = _find_custom_average(custom_averages, params.get("custom_average_id"))
    if custom_average is not None:
        subjects = add_general_average_to_subjects(subjects, custom_average)
        target_subject_id = custom_average.id

    impact = grade_impact(grade_id, target_subject_id, subjects)
    return {
        "value": impact["difference"] if impact else 0,
        "metadata": {"percentage_change": impact["percentage_change"] if impact else None},
    }


CALCULATORS: Dict[Calculator, Callable[..., Dict[str, Any]]] = {
    Calculator.GLOBAL_AVERAGE: _global_average,
    Calculator.CUSTOM_AVERAGE: _custom_average,
    Calculator.BEST_GRADE: _best_grade,
    Calculator.WORST_GRADE: _worst_grade,
    Calculator.BEST_SUBJECT: _best_subject,
    Calculator.WORST_SUBJECT: _worst_subject,
    Calculator.GRADE_IMPACT: _grade_impact,
}


def compute_card(
    calculator,
    subjects: List[Subject],
    params: Optional[Dict[str, Any]] = None,
    custom_averages: Optional[List[CustomAverage]] = None,
    periods: Optional[List[Period]] = None,
) -> Dict[str, Any]:
    """
    Run one card calculator.

    A `period_id` in params restricts the forest to that period's view first.
    Raises ValueError for an unknown calculator name or period.
    """
    calculator = Calculator(calculator)
    params = params or {}
    periods = periods or []

    period = None
    if params.get("period_id"):
        period, subjects = subjects_for_period(subjects, periods, params["period_id"])

    logger.debug("Computing %s card over %d subjects", calculator.value, len(subjects))
    result = CALCULATORS[calculator](
        subjects, params, custom_averages=custom_averages, period=period, periods=periods
    )
    result["calculator"] = calculator.value
    return result
