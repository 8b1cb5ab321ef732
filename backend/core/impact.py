"""
impact.py: Leave-one-out deltas for a grade or a subject subtree.

Both functions work on a deep copy of the forest so the caller's grade lists
are never touched.
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from core.averages import average, percentage_change
from core.models import Subject
from core.tree import get_children

logger = logging.getLogger(__name__)


def _delta(with_value: Optional[float], without_value: Optional[float]) -> Optional[Dict[str, Any]]:
    if with_value is None or without_value is None:
        return None
    difference = with_value - without_value
    return {
        "difference": difference,
        "percentage_change": percentage_change(difference, without_value),
    }


def grade_impact(
    grade_id: str, subject_id: Optional[str], subjects: List[Subject]
) -> Optional[Dict[str, Any]]:
    """
    How much one grade moves the average of `subject_id` (global when None).

    difference = average with the grade - average without it. Returns None
    when the grade is unknown or either average has no data.
    """
    clone = copy.deepcopy(subjects)

    owner = next(
        (s for s in clone if any(g.id == grade_id for g in s.grades)),
        None,
    )
    if owner is None:
        return None

    with_grade = average(subject_id, clone)
    owner.grades = [g for g in owner.grades if g.id != grade_id]
    without_grade = average(subject_id, clone)

    logger.debug(
        "grade_impact(%s on %s): with=%s without=%s",
        grade_id, subject_id, with_grade, without_grade,
    )
    return _delta(with_grade, without_grade)


def subject_impact(
    impacting_subject_id: Union[str, Iterable[str]],
    impacted_subject_id: Optional[str],
    subjects: List[Subject],
) -> Optional[Dict[str, Any]]:
    """
    How much one or several subtrees move the average of `impacted_subject_id`.

    Each impacting subject is removed together with all of its descendants.
    """
    if isinstance(impacting_subject_id, str):
        impacting_ids = [impacting_subject_id]
    else:
        impacting_ids = list(impacting_subject_id)

    clone = copy.deepcopy(subjects)
    known_ids = {s.id for s in clone}

    removed = set()
    for subject_id in impacting_ids:
        if subject_id not in known_ids:
            continue
        removed.add(subject_id)
        removed.update(get_children(clone, subject_id))

    if not removed:
        return None

    with_subjects = average(impacted_subject_id, clone)
    remaining = [s for s in clone if s.id not in removed]
    without_subjects = average(impacted_subject_id, remaining)

    logger.debug(
        "subject_impact(%s on %s): with=%s without=%s",
        impacting_ids, impacted_subject_id, with_subjects, without_subjects,
    )
    return _delta(with_subjects, without_subjects)
