"""
custom_averages.py: Subject views for user-defined averages.

The engine knows nothing about CustomAverage records. These helpers build an
adapted copy of the forest with one virtual subject on top, whose average is
the custom (or general) average, and feed it to the regular functions.
"""

from dataclasses import replace
from typing import Dict, List, Optional

from core.averages import average
from core.impact import subject_impact
from core.models import DEFAULT_COEFFICIENT, CustomAverage, Subject
from core.tree import get_children, get_parents

GENERAL_AVERAGE_ID = "general-average"


def build_general_average_subject(
    subject_id: str = GENERAL_AVERAGE_ID, name: str = "General average"
) -> Subject:
    return Subject(
        id=subject_id,
        name=name,
        parent_id=None,
        coefficient=DEFAULT_COEFFICIENT,
        is_display_subject=False,
        is_main_subject=False,
        grades=[],
    )


def add_general_average_to_subjects(
    subjects: List[Subject], custom_average: Optional[CustomAverage] = None
) -> List[Subject]:
    """
    Return a new forest topped by a virtual subject.

    Without a custom average every root moves under the virtual subject. With
    one, only the listed subjects do, each with its custom coefficient, and
    their descendants follow only when `include_children` is set.
    """
    if custom_average is None:
        virtual = build_general_average_subject()
        adapted = [
            replace(s, parent_id=virtual.id) if s.parent_id is None else replace(s)
            for s in subjects
        ]
        return [virtual] + adapted

    virtual = build_general_average_subject(custom_average.id, custom_average.name)
    by_id: Dict[str, Subject] = {s.id: s for s in subjects}
    listed_ids = [entry.id for entry in custom_average.subjects if entry.id in by_id]
    excluded_ids = {
        child_id
        for entry in custom_average.subjects
        if entry.id in by_id and not entry.include_children
        for child_id in get_children(subjects, entry.id)
    }

    adapted: Dict[str, Subject] = {}
    for entry in custom_average.subjects:
        original = by_id.get(entry.id)
        if original is None:
            continue

        coefficient = original.coefficient
        if entry.custom_coefficient is not None:
            coefficient = int(round(entry.custom_coefficient * 100))
        adapted[entry.id] = replace(original, parent_id=virtual.id, coefficient=coefficient)

        if not entry.include_children:
            continue
        for child_id in get_children(subjects, entry.id):
            # An explicitly listed descendant keeps its own entry.
            if child_id in listed_ids or child_id in adapted or child_id in excluded_ids:
                continue
            adapted[child_id] = replace(by_id[child_id])

    return [virtual] + list(adapted.values())


def custom_average_value(custom_average: CustomAverage, subjects: List[Subject]) -> Optional[float]:
    """The custom average on the usual 0-20 scale, or None without data."""
    view = add_general_average_to_subjects(subjects, custom_average)
    return average(custom_average.id, view)


def custom_average_subject_ids(custom_average: CustomAverage, subjects: List[Subject]) -> List[str]:
    """Ids of the subjects a custom average covers, in forest order."""
    covered = []
    for subject in subjects:
        for entry in custom_average.subjects:
            if entry.id == subject.id:
                covered.append(subject.id)
                break
            if entry.include_children and entry.id in get_parents(subjects, subject.id):
                covered.append(subject.id)
                break
    return covered


def custom_average_impact(custom_average: CustomAverage, subjects: List[Subject]) -> Optional[float]:
    """Combined impact of the covered subjects on the global average."""
    covered = custom_average_subject_ids(custom_average, subjects)
    if not covered:
        return None
    impact = subject_impact(covered, None, subjects)
    return impact["difference"] if impact else None
