"""
Tests for core/parser.py: record parsing, file loading, tree validation.
"""

import json
import os
import sys
from datetime import datetime

import pytest

# Ensure backend/ is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.averages import average
from core.parser import (
    SubjectTreeError,
    parse_custom_average,
    parse_periods,
    parse_subjects,
    parse_upload,
    validate_subject_tree,
)
from core.models import Subject

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_subjects.csv")


@pytest.fixture
def records():
    return [
        {
            "id": "maths",
            "name": "Maths",
            "parentId": None,
            "coefficient": 300,
            "isDisplaySubject": False,
            "isMainSubject": True,
            "grades": [
                {
                    "id": "g1",
                    "name": "Test",
                    "value": 1550,
                    "outOf": 2000,
                    "coefficient": None,
                    "passedAt": "2024-10-01T08:00:00Z",
                    "createdAt": "2024-10-02T12:00:00+02:00",
                    "subjectId": "maths",
                },
            ],
        },
        {"id": "algebra", "name": "Algebra", "parent_id": "maths", "is_display_subject": True},
    ]


class TestParseSubjects:

    def test_camel_case_fields(self, records):
        subjects = parse_subjects(records)
        maths = subjects[0]
        assert maths.coefficient == 300
        assert maths.is_main_subject is True
        assert maths.parent_id is None

    def test_snake_case_fields(self, records):
        algebra = parse_subjects(records)[1]
        assert algebra.parent_id == "maths"
        assert algebra.is_display_subject is True
        assert algebra.coefficient == 100
        assert algebra.grades == []

    def test_grade_fields(self, records):
        grade = parse_subjects(records)[0].grades[0]
        assert grade.value == 1550
        assert grade.out_of == 2000
        assert grade.coefficient is None
        assert grade.weight == 1.0
        assert grade.subject_id == "maths"

    def test_dates_are_naive_utc(self, records):
        grade = parse_subjects(records)[0].grades[0]
        assert grade.passed_at == datetime(2024, 10, 1, 8, 0)
        assert grade.created_at == datetime(2024, 10, 2, 10, 0)

    def test_grade_without_date(self, records):
        del records[0]["grades"][0]["passedAt"]
        with pytest.raises(ValueError):
            parse_subjects(records)

    def test_subject_without_id(self):
        with pytest.raises(ValueError):
            parse_subjects([{"name": "nameless"}])

    def test_bad_number(self, records):
        records[0]["grades"][0]["value"] = "fifteen"
        with pytest.raises(ValueError):
            parse_subjects(records)

    def test_none(self):
        with pytest.raises(ValueError):
            parse_subjects(None)


class TestParseCustomAverage:

    def test_defaults(self):
        ca = parse_custom_average({
            "id": "ca1",
            "name": "Sciences",
            "subjects": [
                {"id": "maths", "customCoefficient": 2},
                {"id": "physics", "includeChildren": False},
                {"id": "chemistry", "customCoefficient": None, "includeChildren": None},
            ],
        })
        assert ca.subjects[0].custom_coefficient == 2.0
        assert ca.subjects[0].include_children is True
        assert ca.subjects[1].include_children is False
        assert ca.subjects[2].custom_coefficient is None
        assert ca.subjects[2].include_children is True

    def test_missing_id(self):
        with pytest.raises(ValueError):
            parse_custom_average({"name": "x"})


class TestParsePeriods:

    def test_fields(self):
        periods = parse_periods([
            {"id": "t1", "name": "Term 1", "startAt": "2024-09-02T00:00:00Z",
             "endAt": "2024-12-20T00:00:00Z", "isCumulative": True},
            {"id": "t2", "name": "Term 2", "start_at": "2025-01-06", "end_at": "2025-03-28"},
        ])
        assert periods[0].is_cumulative is True
        assert periods[0].start_at == datetime(2024, 9, 2)
        assert periods[1].is_cumulative is False
        assert periods[1].end_at == datetime(2025, 3, 28)

    def test_missing_list(self):
        assert parse_periods(None) == []

    def test_end_before_start(self):
        with pytest.raises(ValueError):
            parse_periods([{"id": "t1", "startAt": "2025-01-06", "endAt": "2024-12-20"}])

    def test_missing_bounds(self):
        with pytest.raises(ValueError):
            parse_periods([{"id": "t1", "startAt": "2025-01-06"}])

    def test_duplicate_ids(self):
        record = {"id": "t1", "startAt": "2024-09-02", "endAt": "2024-12-20"}
        with pytest.raises(ValueError):
            parse_periods([record, dict(record)])

    def test_grade_period_id(self, records):
        records[0]["grades"][0]["periodId"] = "t1"
        assert parse_subjects(records)[0].grades[0].period_id == "t1"

    def test_grade_without_period(self, records):
        assert parse_subjects(records)[0].grades[0].period_id is None


class TestParseUpload:

    def test_sample_csv(self):
        subjects = parse_upload(SAMPLE_CSV)
        ids = [s.id for s in subjects]
        assert ids == ["sciences", "maths", "physics", "chemistry", "french", "oral", "history", "sport"]

    def test_sample_csv_fields(self):
        subjects = {s.id: s for s in parse_upload(SAMPLE_CSV)}
        assert subjects["sciences"].is_display_subject is True
        assert subjects["sciences"].grades == []
        assert subjects["physics"].parent_id == "sciences"
        assert subjects["maths"].coefficient == 400
        assert len(subjects["maths"].grades) == 3
        assert subjects["french"].grades[1].coefficient is None
        assert subjects["history"].grades == []

    def test_sample_csv_is_a_valid_forest(self):
        subjects = validate_subject_tree(parse_upload(SAMPLE_CSV))
        assert average(None, subjects) is not None
        assert average("history", subjects) is None

    def test_json_file(self, tmp_path, records):
        path = tmp_path / "subjects.json"
        path.write_text(json.dumps({"subjects": records}))
        subjects = parse_upload(str(path))
        assert [s.id for s in subjects] == ["maths", "algebra"]

    def test_json_list(self, tmp_path, records):
        path = tmp_path / "subjects.json"
        path.write_text(json.dumps(records))
        assert len(parse_upload(str(path))) == 2

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "subjects.xml"
        path.write_text("<subjects/>")
        with pytest.raises(ValueError):
            parse_upload(str(path))

    def test_missing_file(self):
        with pytest.raises(Exception):
            parse_upload("nonexistent_file.csv")


class TestValidateSubjectTree:

    def test_valid(self):
        subjects = [Subject(id="a"), Subject(id="b", parent_id="a")]
        assert validate_subject_tree(subjects) is subjects

    def test_duplicate_ids(self):
        with pytest.raises(SubjectTreeError):
            validate_subject_tree([Subject(id="a"), Subject(id="a")])

    def test_unknown_parent(self):
        with pytest.raises(SubjectTreeError):
            validate_subject_tree([Subject(id="a", parent_id="ghost")])

    def test_cycle(self):
        subjects = [
            Subject(id="root"),
            Subject(id="a", parent_id="c"),
            Subject(id="b", parent_id="a"),
            Subject(id="c", parent_id="b"),
        ]
        with pytest.raises(SubjectTreeError):
            validate_subject_tree(subjects)

    def test_self_parent(self):
        with pytest.raises(SubjectTreeError):
            validate_subject_tree([Subject(id="a", parent_id="a")])

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_subject_tree([Subject(id="a", parent_id="ghost")])
