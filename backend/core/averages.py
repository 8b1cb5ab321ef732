"""
averages.py: Recursive weighted averages over the subject tree.

Every term is accumulated in percentage space (value / outOf) and weighted by
its coefficient; the result is projected back onto a 0-20 scale. A subject
with nothing to average yields None, never 0.

Computes:
- average(subject_id, subjects): one subject, or the whole forest when
  subject_id is None
- calculate_average_for_subject / calculate_average_for_subjects
- get_subject_averages: every subject that has data
"""

from typing import Any, Dict, List, Optional

from core.models import Subject
from core.tree import find_subject, get_all_non_display_subjects, get_root_subjects

SCALE = 20


def percentage_change(difference: float, baseline: float) -> Optional[float]:
    """Change relative to `baseline` in percent, None on a zero baseline."""
    if baseline == 0:
        return None
    return (difference / baseline) * 100


def average(subject_id: Optional[str], subjects: List[Subject]) -> Optional[float]:
    """Average of one subject (0-20), or the global average when subject_id is None."""
    if subject_id is None:
        return calculate_average_for_subjects(get_root_subjects(subjects), subjects)

    subject = find_subject(subjects, subject_id)
    if subject is None:
        return None

    return calculate_average_for_subject(subject, subjects)


def calculate_average_for_subject(subject: Subject, subjects: List[Subject]) -> Optional[float]:
    total_weighted_percentages = 0.0
    total_coefficients = 0.0

    # Own grades
    for grade in subject.grades:
        value = grade.value / 100
        out_of = grade.out_of / 100
        if out_of == 0:
            continue
        coefficient = grade.weight
        total_weighted_percentages += (value / out_of) * coefficient
        total_coefficients += coefficient

    # Child units, display subjects being transparent
    for child in get_all_non_display_subjects(subject, subjects):
        if child.id == subject.id:
            continue
        child_average = calculate_average_for_subject(child, subjects)
        if child_average is None:
            continue
        coefficient = child.weight
        total_weighted_percentages += (child_average / SCALE) * coefficient
        total_coefficients += coefficient

    if total_coefficients == 0:
        return None

    return (total_weighted_percentages / total_coefficients) * SCALE


def calculate_average_for_subjects(
    subjects: List[Subject], all_subjects: List[Subject]
) -> Optional[float]:
    """
    Weighted average of a set of subjects (usually the roots).

    Each subject is expanded through get_all_non_display_subjects first: a
    display subject is replaced by its weighting units, a regular subject
    counts itself plus its direct non-display children.
    """
    total_weighted_percentages = 0.0
    total_coefficients = 0.0

    for subject in subjects:
        for unit in get_all_non_display_subjects(subject, all_subjects):
            unit_average = calculate_average_for_subject(unit, all_subjects)
            if unit_average is None:
                continue
            coefficient = unit.weight
            total_weighted_percentages += (unit_average / SCALE) * coefficient
            total_coefficients += coefficient

    if total_coefficients == 0:
        return None

    return (total_weighted_percentages / total_coefficients) * SCALE


def get_subject_averages(subjects: List[Subject]) -> List[Dict[str, Any]]:
    """Average of every subject, skipping those without data."""
    averages = []
    for subject in subjects:
        value = calculate_average_for_subject(subject, subjects)
        if value is None:
            continue
        averages.append({
            "id": subject.id,
            "average": value,
            "is_main_subject": subject.is_main_subject,
        })
    return averages
