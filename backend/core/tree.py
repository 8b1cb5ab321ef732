"""
tree.py: Parent/child resolution over a flat subject list.

The forest is given as a flat list where each subject points at its parent
through `parent_id`. Nothing here guards against cycles; run
`core.parser.validate_subject_tree` at ingestion.
"""

from typing import Dict, List, Optional

from core.models import Subject


def find_subject(subjects: List[Subject], subject_id: Optional[str]) -> Optional[Subject]:
    """Return the subject with this id, or None."""
    if subject_id is None:
        return None
    for subject in subjects:
        if subject.id == subject_id:
            return subject
    return None


def get_direct_children(subjects: List[Subject], subject_id: str) -> List[Subject]:
    return [s for s in subjects if s.parent_id == subject_id]


def get_children(subjects: List[Subject], subject_id: str) -> List[str]:
    """
    Ids of every subject below `subject_id`, at any depth.

    Depth-first: each direct child is followed by its own descendants.
    """
    children: List[str] = []
    for child in get_direct_children(subjects, subject_id):
        children.append(child.id)
        children.extend(get_children(subjects, child.id))
    return children


def get_parents(subjects: List[Subject], subject_id: str) -> List[str]:
    """Ancestor ids of `subject_id`, nearest first, excluding the subject itself."""
    by_id: Dict[str, Subject] = {s.id: s for s in subjects}
    parents: List[str] = []
    current = by_id.get(subject_id)
    while current is not None and current.parent_id is not None:
        parents.append(current.parent_id)
        current = by_id.get(current.parent_id)
    return parents


def get_all_non_display_subjects(subject: Subject, subjects: List[Subject]) -> List[Subject]:
    """
    The weighting units directly owed to `subject`.

    The subject itself is included unless it is a display subject. A display
    child is skipped but its own units are spliced in; a regular child is
    included as-is and its descendants are only reached when that child is
    averaged in turn.
    """
    result: List[Subject] = []
    if not subject.is_display_subject:
        result.append(subject)

    for child in get_direct_children(subjects, subject.id):
        if child.is_display_subject:
            result.extend(get_all_non_display_subjects(child, subjects))
        else:
            result.append(child)

    return result


def get_root_subjects(subjects: List[Subject]) -> List[Subject]:
    return [s for s in subjects if s.parent_id is None]
