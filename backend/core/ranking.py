"""
ranking.py: Extremal subjects/grades and subject-vs-others comparisons.

Subjects are ranked by their tree-weighted average; grades are ranked by
their raw value/outOf ratio, ignoring subject weights entirely.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np

from core.averages import average, calculate_average_for_subject, percentage_change
from core.models import DEFAULT_COEFFICIENT, Grade, Subject
from core.tree import find_subject, get_children

logger = logging.getLogger(__name__)


class ComparisonScopeError(ValueError):
    """Raised when a comparison is scoped both to main subjects and to an explicit id list."""


# ── Helpers ─────────────────────────────────────────────────────────

def _grade_coefficient(grade: Grade) -> int:
    return grade.coefficient if grade.coefficient is not None else DEFAULT_COEFFICIENT


def _subject_coefficient(subject: Subject) -> int:
    return subject.coefficient if subject.coefficient is not None else DEFAULT_COEFFICIENT


def _grade_descriptor(grade: Grade, subject: Subject) -> Dict[str, Any]:
    return {
        "grade": grade.value,
        "out_of": grade.out_of,
        "subject": subject,
        "name": grade.name,
        "coefficient": grade.coefficient,
        "passed_at": grade.passed_at,
        "created_at": grade.created_at,
    }


# ── Subjects ────────────────────────────────────────────────────────

def _extremal_subject(
    subjects: List[Subject], is_main_subject: bool, best: bool
) -> Optional[Subject]:
    candidates = [s for s in subjects if s.is_main_subject] if is_main_subject else subjects

    chosen: Optional[Subject] = None
    chosen_average: Optional[float] = None
    for subject in candidates:
        value = calculate_average_for_subject(subject, subjects)
        if value is None:
            continue
        if chosen is None:
            chosen, chosen_average = subject, value
            continue

        better = value > chosen_average if best else value < chosen_average
        tied = value == chosen_average
        if better or (tied and _subject_coefficient(subject) > _subject_coefficient(chosen)):
            chosen, chosen_average = subject, value

    return chosen


def get_best_subject(subjects: List[Subject], is_main_subject: bool = False) -> Optional[Subject]:
    """Highest average; ties go to the highest coefficient, then to list order."""
    return _extremal_subject(subjects, is_main_subject, best=True)


def get_worst_subject(subjects: List[Subject], is_main_subject: bool = False) -> Optional[Subject]:
    """Lowest average; ties go to the highest coefficient, then to list order."""
    return _extremal_subject(subjects, is_main_subject, best=False)


# ── Grades ──────────────────────────────────────────────────────────

def _extremal_grade(subjects: List[Subject], best: bool) -> Optional[Dict[str, Any]]:
    chosen = None
    chosen_ratio = None
    for subject in subjects:
        for grade in subject.grades:
            if grade.out_of == 0:
                continue
            ratio = grade.value / grade.out_of
            if chosen is None:
                chosen, chosen_ratio = (grade, subject), ratio
                continue

            better = ratio > chosen_ratio if best else ratio < chosen_ratio
            tied = ratio == chosen_ratio
            if better or (tied and _grade_coefficient(grade) > _grade_coefficient(chosen[0])):
                chosen, chosen_ratio = (grade, subject), ratio

    if chosen is None:
        return None
    return _grade_descriptor(*chosen)


def get_best_grade(subjects: List[Subject]) -> Optional[Dict[str, Any]]:
    return _extremal_grade(subjects, best=True)


def get_worst_grade(subjects: List[Subject]) -> Optional[Dict[str, Any]]:
    return _extremal_grade(subjects, best=False)


def _subtree(subjects: List[Subject], subject_id: str) -> List[Subject]:
    ids = {subject_id, *get_children(subjects, subject_id)}
    return [s for s in subjects if s.id in ids]


def get_best_grade_in_subject(subjects: List[Subject], subject_id: str) -> Optional[Dict[str, Any]]:
    """Best grade among the subject and all of its descendants."""
    if find_subject(subjects, subject_id) is None:
        return None
    return _extremal_grade(_subtree(subjects, subject_id), best=True)


def get_worst_grade_in_subject(subjects: List[Subject], subject_id: str) -> Optional[Dict[str, Any]]:
    if find_subject(subjects, subject_id) is None:
        return None
    return _extremal_grade(_subtree(subjects, subject_id), best=False)


# ── Comparison ──────────────────────────────────────────────────────

def get_subject_average_comparison(
    subjects: List[Subject],
    subject_id_to_compare: str,
    is_main_subject: bool = False,
    subjects_id: Optional[List[str]] = None,
) -> Optional[Dict[str, Any]]:
    """
    Compare one subject's average with the plain mean of the others.

    The others are the explicit `subjects_id` list, the other main subjects
    (`is_main_subject=True`), or every other subject. Returns None when either
    side has no data.
    """
    if is_main_subject and subjects_id is not None:
        raise ComparisonScopeError(
            "Pass either is_main_subject or subjects_id, not both."
        )

    subject_average = average(subject_id_to_compare, subjects)
    if subject_average is None:
        return None

    if subjects_id is not None:
        wanted = set(subjects_id)
        others = [s for s in subjects if s.id in wanted]
    elif is_main_subject:
        others = [s for s in subjects if s.is_main_subject]
    else:
        others = list(subjects)
    others = [s for s in others if s.id != subject_id_to_compare]

    other_averages = [
        value
        for value in (calculate_average_for_subject(s, subjects) for s in others)
        if value is not None
    ]
    if not other_averages:
        logger.debug("No other subject to compare %s with", subject_id_to_compare)
        return None

    comparison_average = float(np.mean(other_averages))
    difference = subject_average - comparison_average

    return {
        "subject_average": subject_average,
        "comparison_average": comparison_average,
        "difference": difference,
        "percentage_change": percentage_change(difference, comparison_average),
    }
