"""
Tests for the HTTP layer: routes/averages.py, routes/cards.py, routes/common.py and main.py.
"""

import os
import sys
from datetime import datetime

import numpy as np
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from main import app
from routes.common import sanitize

client = TestClient(app)


def _grade(grade_id, value, subject_id, passed_at="2024-03-01T09:00:00Z", coefficient=100):
    return {
        "id": grade_id,
        "name": grade_id,
        "value": value,
        "outOf": 2000,
        "coefficient": coefficient,
        "passedAt": passed_at,
        "subjectId": subject_id,
    }


@pytest.fixture
def subjects():
    return [
        {"id": "maths", "name": "Maths", "isMainSubject": True,
         "grades": [_grade("m1", 1000, "maths")]},
        {"id": "physics", "name": "Physics", "isMainSubject": True,
         "grades": [_grade("p1", 1600, "physics", "2024-03-04T09:00:00Z")]},
    ]


@pytest.fixture
def periods():
    return [
        {"id": "early", "name": "Early March", "startAt": "2024-03-01", "endAt": "2024-03-03"},
        {"id": "late", "name": "Late March", "startAt": "2024-03-04", "endAt": "2024-03-31"},
    ]


class TestApp:

    def test_health(self):
        res = client.get("/api/health")
        assert res.status_code == 200
        assert res.json()["status"] == "ok"

    def test_config(self):
        body = client.get("/api/config").json()
        assert body["scale"] == 20
        assert body["max_history_days"] > 0


class TestAverageRoutes:

    def test_subject_average(self, subjects):
        res = client.post("/api/averages/average", json={"subjects": subjects, "subject_id": "maths"})
        assert res.status_code == 200
        assert res.json()["average"] == pytest.approx(10)

    def test_global_average(self, subjects):
        res = client.post("/api/averages/average", json={"subjects": subjects})
        assert res.json()["average"] == pytest.approx(13)

    def test_unknown_subject(self, subjects):
        res = client.post("/api/averages/average", json={"subjects": subjects, "subject_id": "art"})
        assert res.status_code == 404

    def test_missing_subjects(self):
        res = client.post("/api/averages/average", json={})
        assert res.status_code == 400

    def test_cyclic_tree(self):
        cyclic = [
            {"id": "a", "parentId": "b"},
            {"id": "b", "parentId": "a"},
        ]
        res = client.post("/api/averages/average", json={"subjects": cyclic})
        assert res.status_code == 400

    def test_subject_averages(self, subjects):
        body = client.post("/api/averages/subjects", json={"subjects": subjects}).json()
        ids = [row["id"] for row in body["averages"]]
        assert ids == ["maths", "physics"]

    def test_ranking(self, subjects):
        body = client.post("/api/averages/ranking", json={"subjects": subjects}).json()
        assert body["best_subject"]["id"] == "physics"
        assert body["worst_subject"]["id"] == "maths"
        assert body["best_grade"]["grade"] == 1600

    def test_comparison(self, subjects):
        res = client.post("/api/averages/comparison/maths", json={"subjects": subjects})
        assert res.status_code == 200
        assert res.json()["difference"] == pytest.approx(-6)

    def test_comparison_with_both_scopes(self, subjects):
        res = client.post(
            "/api/averages/comparison/maths",
            json={"subjects": subjects, "is_main_subject": True, "subjects_id": ["physics"]},
        )
        assert res.status_code == 400

    def test_over_time(self, subjects):
        res = client.post(
            "/api/averages/over-time",
            json={"subjects": subjects, "start_date": "2024-03-01", "end_date": "2024-03-05"},
        )
        series = res.json()["series"]
        assert len(series) == 5
        assert series[0]["average"] == pytest.approx(10)
        assert series[1]["average"] is None
        assert series[-1]["average"] == pytest.approx(13)

    def test_over_time_range_too_long(self, subjects):
        res = client.post(
            "/api/averages/over-time",
            json={"subjects": subjects, "start_date": "2000-01-01", "end_date": "2024-01-01"},
        )
        assert res.status_code == 400

    def test_over_time_needs_both_dates(self, subjects):
        res = client.post(
            "/api/averages/over-time", json={"subjects": subjects, "start_date": "2024-03-01"},
        )
        assert res.status_code == 400

    def test_over_time_defaults_to_school_year(self, subjects):
        res = client.post("/api/averages/over-time", json={"subjects": subjects})
        assert res.status_code == 200
        assert len(res.json()["series"]) in (303, 304)

    def test_over_time_derived_range_too_long(self):
        old = [{"id": "maths", "grades": [_grade("m1", 1000, "maths", "1900-01-01T00:00:00Z")]}]
        periods = [{"id": "all", "startAt": "1900-01-01", "endAt": "2024-06-30"}]
        res = client.post("/api/averages/over-time", json={"subjects": old, "periods": periods})
        assert res.status_code == 400

    def test_over_time_of_period(self, subjects, periods):
        subjects[0]["grades"][0]["periodId"] = "early"
        res = client.post("/api/averages/over-time", json={
            "subjects": subjects, "periods": periods, "period_id": "early", "subject_id": "maths",
        })
        series = res.json()["series"]
        assert len(series) == 3
        assert series[-1]["average"] == pytest.approx(10)

    def test_unknown_period(self, subjects, periods):
        res = client.post("/api/averages/average", json={
            "subjects": subjects, "periods": periods, "period_id": "nope",
        })
        assert res.status_code == 404

    def test_invalid_periods(self, subjects):
        res = client.post("/api/averages/average", json={
            "subjects": subjects, "periods": [{"id": "p", "startAt": "2024-03-01"}],
        })
        assert res.status_code == 400

    def test_periods_overview(self, subjects, periods):
        subjects[0]["grades"][0]["periodId"] = "early"
        subjects[1]["grades"][0]["periodId"] = "late"
        body = client.post("/api/averages/periods", json={"subjects": subjects, "periods": periods}).json()
        rows = {row["period"]["id"]: row["average"] for row in body["periods"]}
        assert rows == {"early": pytest.approx(10), "late": pytest.approx(16), "full-year": pytest.approx(13)}

    def test_grade_impact(self, subjects):
        res = client.post("/api/averages/impact/grade/p1", json={"subjects": subjects})
        assert res.status_code == 200
        assert res.json()["difference"] == pytest.approx(3)

    def test_subject_impact(self, subjects):
        res = client.post("/api/averages/impact/subject/maths", json={"subjects": subjects})
        assert res.json()["difference"] == pytest.approx(-3)

    def test_custom_average(self, subjects):
        res = client.post("/api/averages/custom", json={
            "subjects": subjects,
            "custom_average": {"id": "ca", "name": "Physics", "subjects": [{"id": "physics"}]},
        })
        body = res.json()
        assert body["average"] == pytest.approx(16)
        assert body["subject_ids"] == ["physics"]
        assert body["impact"] == pytest.approx(3)

    def test_custom_average_invalid(self, subjects):
        res = client.post("/api/averages/custom", json={"subjects": subjects})
        assert res.status_code == 400

    def test_sample_round_trip(self):
        sample = client.get("/api/averages/sample").json()
        assert len(sample["subjects"]) == 8
        res = client.post("/api/averages/average", json={"subjects": sample["subjects"]})
        assert res.status_code == 200
        assert res.json()["average"] is not None


class TestCardRoutes:

    def test_list_calculators(self):
        body = client.get("/api/cards/").json()
        assert "global_average" in body["calculators"]

    def test_best_grade_card(self, subjects):
        res = client.post("/api/cards/best_grade", json={"subjects": subjects})
        assert res.status_code == 200
        assert res.json()["value"] == 1600

    def test_global_average_card(self, subjects):
        res = client.post("/api/cards/global_average", json={
            "subjects": subjects,
            "params": {"start_date": "2024-03-01", "end_date": "2024-03-05"},
        })
        body = res.json()
        assert body["value"] == pytest.approx(1300)
        assert body["growth_percentage"] == pytest.approx(30)

    def test_unknown_calculator(self, subjects):
        res = client.post("/api/cards/median_grade", json={"subjects": subjects})
        assert res.status_code == 400

    def test_card_of_period(self, subjects, periods):
        subjects[1]["grades"][0]["periodId"] = "late"
        res = client.post("/api/cards/best_grade", json={
            "subjects": subjects, "periods": periods, "params": {"period_id": "late"},
        })
        assert res.json()["value"] == 1600

    def test_card_unknown_period(self, subjects, periods):
        res = client.post("/api/cards/best_grade", json={
            "subjects": subjects, "periods": periods, "params": {"period_id": "nope"},
        })
        assert res.status_code == 400


class TestSanitize:

    def test_numpy_and_dates(self):
        cleaned = sanitize({"a": np.float64(1.5), "b": [np.int64(2)], "c": datetime(2024, 3, 1)})
        assert cleaned == {"a": 1.5, "b": [2], "c": "2024-03-01T00:00:00"}

    def test_nan_becomes_none(self):
        assert sanitize([float("nan"), np.float64("inf")]) == [None, None]
