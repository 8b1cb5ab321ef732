"""
Tests for core/tree.py: children, parents and display-subject transparency.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.models import Subject
from core.tree import (
    find_subject,
    get_all_non_display_subjects,
    get_children,
    get_parents,
    get_root_subjects,
)


@pytest.fixture
def forest():
    """
    R
    ├── G (display)
    │   ├── A
    │   │   └── C
    │   └── D (display)
    │       └── E
    └── B
    """
    return [
        Subject(id="R"),
        Subject(id="G", parent_id="R", is_display_subject=True),
        Subject(id="A", parent_id="G"),
        Subject(id="B", parent_id="R"),
        Subject(id="C", parent_id="A"),
        Subject(id="D", parent_id="G", is_display_subject=True),
        Subject(id="E", parent_id="D"),
    ]


class TestGetChildren:

    def test_depth_first_order(self, forest):
        assert get_children(forest, "R") == ["G", "A", "C", "D", "E", "B"]

    def test_leaf_has_no_children(self, forest):
        assert get_children(forest, "E") == []

    def test_unknown_subject(self, forest):
        assert get_children(forest, "missing") == []


class TestGetParents:

    def test_nearest_first(self, forest):
        assert get_parents(forest, "E") == ["D", "G", "R"]

    def test_root_has_no_parents(self, forest):
        assert get_parents(forest, "R") == []

    def test_unknown_subject(self, forest):
        assert get_parents(forest, "missing") == []


class TestGetAllNonDisplaySubjects:

    def test_display_children_are_transparent(self, forest):
        root = find_subject(forest, "R")
        ids = [s.id for s in get_all_non_display_subjects(root, forest)]
        assert ids == ["R", "A", "E", "B"]

    def test_regular_child_descendants_not_flattened(self, forest):
        root = find_subject(forest, "R")
        ids = [s.id for s in get_all_non_display_subjects(root, forest)]
        assert "C" not in ids

    def test_display_subject_excludes_itself(self, forest):
        group = find_subject(forest, "G")
        ids = [s.id for s in get_all_non_display_subjects(group, forest)]
        assert ids == ["A", "E"]

    def test_leaf(self, forest):
        leaf = find_subject(forest, "C")
        assert get_all_non_display_subjects(leaf, forest) == [leaf]


class TestHelpers:

    def test_roots(self, forest):
        assert [s.id for s in get_root_subjects(forest)] == ["R"]

    def test_find_missing(self, forest):
        assert find_subject(forest, "nope") is None
        assert find_subject(forest, None) is None
