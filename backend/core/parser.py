"""
parser.py: Subject forest ingestion and validation.

Supports:
- JSON-like records (camelCase or snake_case field names), periods included
- JSON files (a list of subjects, or {"subjects": [...]})
- CSV files in long format, one row per grade (pandas)
- Tree validation: duplicate ids, dangling parents, cycles
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from core.models import (
    DEFAULT_COEFFICIENT,
    CustomAverage,
    CustomAverageSubject,
    Grade,
    Period,
    Subject,
)

logger = logging.getLogger(__name__)

SAMPLE_DATA_DIR = Path(__file__).parent.parent / "sample_data"


class SubjectTreeError(ValueError):
    """The subject records do not form a valid forest."""


# Accepted spellings for each field, first match wins
SUBJECT_ALIASES = {
    "id": ["id", "subject_id", "subjectId"],
    "name": ["name", "subject_name", "subjectName"],
    "parent_id": ["parent_id", "parentId", "parent"],
    "coefficient": ["coefficient", "subject_coefficient", "subjectCoefficient"],
    "is_display_subject": ["is_display_subject", "isDisplaySubject", "display"],
    "is_main_subject": ["is_main_subject", "isMainSubject", "main"],
    "grades": ["grades"],
}

GRADE_ALIASES = {
    "id": ["id", "grade_id", "gradeId"],
    "name": ["name", "grade_name", "gradeName"],
    "value": ["value", "score"],
    "out_of": ["out_of", "outOf", "max_score"],
    "coefficient": ["coefficient", "grade_coefficient", "gradeCoefficient"],
    "passed_at": ["passed_at", "passedAt", "date"],
    "created_at": ["created_at", "createdAt"],
    "subject_id": ["subject_id", "subjectId"],
    "period_id": ["period_id", "periodId"],
}

PERIOD_ALIASES = {
    "id": ["id", "period_id", "periodId"],
    "name": ["name", "period_name", "periodName"],
    "start_at": ["start_at", "startAt"],
    "end_at": ["end_at", "endAt"],
    "is_cumulative": ["is_cumulative", "isCumulative"],
    "user_id": ["user_id", "userId"],
}

CUSTOM_AVERAGE_ALIASES = {
    "id": ["id"],
    "name": ["name"],
    "user_id": ["user_id", "userId"],
    "is_main_average": ["is_main_average", "isMainAverage"],
    "subjects": ["subjects"],
    "custom_coefficient": ["custom_coefficient", "customCoefficient"],
    "include_children": ["include_children", "includeChildren"],
}


# ── Helpers ─────────────────────────────────────────────────────────

def _pick(record: Dict[str, Any], aliases: List[str], default=None):
    for alias in aliases:
        if alias in record:
            value = record[alias]
            if value is None or (isinstance(value, float) and pd.isna(value)):
                return default
            return value
    return default


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, float) and pd.isna(value)) or str(value).strip() == ""


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _to_int(value: Any, field: str) -> int:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid number for '{field}': {value!r}")


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO string / datetime / Timestamp -> naive UTC datetime."""
    if _blank(value):
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


# ── Records ─────────────────────────────────────────────────────────

def parse_grade(record: Dict[str, Any], subject_id: Optional[str] = None) -> Grade:
    grade_id = _pick(record, GRADE_ALIASES["id"])
    if _blank(grade_id):
        raise ValueError("Grade record without an id.")

    passed_at = parse_datetime(_pick(record, GRADE_ALIASES["passed_at"]))
    if passed_at is None:
        raise ValueError(f"Grade '{grade_id}' has no passedAt date.")

    coefficient = _pick(record, GRADE_ALIASES["coefficient"])
    period_id = _pick(record, GRADE_ALIASES["period_id"])
    return Grade(
        id=str(grade_id),
        name=str(_pick(record, GRADE_ALIASES["name"], "")),
        value=_to_int(_pick(record, GRADE_ALIASES["value"]), "value"),
        out_of=_to_int(_pick(record, GRADE_ALIASES["out_of"]), "outOf"),
        coefficient=_to_int(coefficient, "coefficient") if not _blank(coefficient) else None,
        passed_at=passed_at,
        created_at=parse_datetime(_pick(record, GRADE_ALIASES["created_at"])),
        subject_id=str(_pick(record, GRADE_ALIASES["subject_id"], subject_id)),
        period_id=None if _blank(period_id) else str(period_id),
    )


def parse_subject(record: Dict[str, Any]) -> Subject:
    subject_id = _pick(record, SUBJECT_ALIASES["id"])
    if _blank(subject_id):
        raise ValueError("Subject record without an id.")
    subject_id = str(subject_id)

    parent_id = _pick(record, SUBJECT_ALIASES["parent_id"])
    coefficient = _pick(record, SUBJECT_ALIASES["coefficient"])
    grades = _pick(record, SUBJECT_ALIASES["grades"], []) or []

    return Subject(
        id=subject_id,
        name=str(_pick(record, SUBJECT_ALIASES["name"], "")),
        parent_id=None if _blank(parent_id) else str(parent_id),
        coefficient=_to_int(coefficient, "coefficient") if not _blank(coefficient) else DEFAULT_COEFFICIENT,
        is_display_subject=_to_bool(_pick(record, SUBJECT_ALIASES["is_display_subject"], False)),
        is_main_subject=_to_bool(_pick(record, SUBJECT_ALIASES["is_main_subject"], False)),
        grades=[parse_grade(g, subject_id) for g in grades],
    )


def parse_subjects(records: Iterable[Dict[str, Any]]) -> List[Subject]:
    """Convert JSON-like subject dicts (grades embedded) into Subject objects."""
    if records is None:
        raise ValueError("No subjects provided.")
    return [parse_subject(r) for r in records]


def parse_custom_average(record: Dict[str, Any]) -> CustomAverage:
    if not isinstance(record, dict) or _blank(record.get("id")):
        raise ValueError("Custom average record without an id.")

    entries = []
    for entry in _pick(record, CUSTOM_AVERAGE_ALIASES["subjects"], []) or []:
        if isinstance(entry, str):
            entries.append(CustomAverageSubject(id=entry))
            continue
        custom_coefficient = _pick(entry, CUSTOM_AVERAGE_ALIASES["custom_coefficient"])
        include_children = _pick(entry, CUSTOM_AVERAGE_ALIASES["include_children"])
        entries.append(CustomAverageSubject(
            id=str(entry["id"]),
            custom_coefficient=float(custom_coefficient) if custom_coefficient is not None else None,
            include_children=True if include_children is None else _to_bool(include_children),
        ))

    return CustomAverage(
        id=str(record["id"]),
        name=str(_pick(record, CUSTOM_AVERAGE_ALIASES["name"], "")),
        subjects=entries,
        user_id=_pick(record, CUSTOM_AVERAGE_ALIASES["user_id"]),
        is_main_average=_to_bool(_pick(record, CUSTOM_AVERAGE_ALIASES["is_main_average"], False)),
    )


def parse_period(record: Dict[str, Any]) -> Period:
    period_id = _pick(record, PERIOD_ALIASES["id"])
    if _blank(period_id):
        raise ValueError("Period record without an id.")

    start_at = parse_datetime(_pick(record, PERIOD_ALIASES["start_at"]))
    end_at = parse_datetime(_pick(record, PERIOD_ALIASES["end_at"]))
    if start_at is None or end_at is None:
        raise ValueError(f"Period '{period_id}' needs both startAt and endAt.")
    if end_at < start_at:
        raise ValueError(f"Period '{period_id}' ends before it starts.")

    return Period(
        id=str(period_id),
        name=str(_pick(record, PERIOD_ALIASES["name"], "")),
        start_at=start_at,
        end_at=end_at,
        is_cumulative=_to_bool(_pick(record, PERIOD_ALIASES["is_cumulative"], False)),
        user_id=_pick(record, PERIOD_ALIASES["user_id"]),
    )


def parse_periods(records: Optional[Iterable[Dict[str, Any]]]) -> List[Period]:
    """Period dicts -> Period objects; a missing list means no periods."""
    periods = [parse_period(r) for r in records or []]
    ids = [p.id for p in periods]
    if len(ids) != len(set(ids)):
        raise ValueError("Duplicate period id.")
    return periods


# ── Files ───────────────────────────────────────────────────────────

def subjects_from_dataframe(df: pd.DataFrame) -> List[Subject]:
    """
    Build subjects from a long table: one row per grade, subject columns
    repeated on every row. Rows without a grade id only declare a subject.
    """
    cols = {str(c).lower().strip(): c for c in df.columns}
    subject_col = cols.get("subject_id") or cols.get("subjectid")
    if subject_col is None:
        raise ValueError("No 'subject_id' column found in data.")
    grade_col = cols.get("grade_id") or cols.get("gradeid")

    subjects = []
    for subject_id, group in df.groupby(subject_col, sort=False):
        first = group.iloc[0].to_dict()
        record = {k: v for k, v in first.items() if k not in ("grade_id", "grade_name")}
        record["id"] = str(subject_id)
        record.pop("subject_id", None)
        record["name"] = _pick(first, ["subject_name", "name"], "")
        record["coefficient"] = _pick(first, ["subject_coefficient"])

        grades = []
        if grade_col is not None:
            for _, row in group.iterrows():
                if _blank(row.get(grade_col)):
                    continue
                grades.append({
                    "id": row[grade_col],
                    "name": row.get("grade_name", ""),
                    "value": row.get("value"),
                    "out_of": row.get("out_of"),
                    "coefficient": row.get("grade_coefficient"),
                    "passed_at": row.get("passed_at"),
                    "created_at": row.get("created_at"),
                    "period_id": row.get("period_id"),
                    "subject_id": str(subject_id),
                })
        record["grades"] = grades
        subjects.append(parse_subject(record))

    return subjects


def parse_upload(file_path: str) -> List[Subject]:
    """Load a subject forest from a .json or .csv file."""
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".json":
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        if isinstance(payload, dict):
            payload = payload.get("subjects")
        return parse_subjects(payload)

    elif ext == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=True)
        return subjects_from_dataframe(df)

    else:
        raise ValueError(f"Unsupported file type: {ext}")


# ── Validation ──────────────────────────────────────────────────────

def validate_subject_tree(subjects: List[Subject]) -> List[Subject]:
    """
    Check the forest once at ingestion; the engine never re-checks.

    Raises SubjectTreeError on duplicate ids, a parent_id that points outside
    the collection, or a parent cycle.
    """
    by_id: Dict[str, Subject] = {}
    for subject in subjects:
        if subject.id in by_id:
            logger.warning("Duplicate subject id %s", subject.id)
            raise SubjectTreeError(f"Duplicate subject id: {subject.id}")
        by_id[subject.id] = subject

    for subject in subjects:
        if subject.parent_id is not None and subject.parent_id not in by_id:
            logger.warning("Subject %s has unknown parent %s", subject.id, subject.parent_id)
            raise SubjectTreeError(
                f"Subject '{subject.id}' references unknown parent '{subject.parent_id}'."
            )

    # Walk up from each subject; ids proven acyclic are cached in `safe`.
    safe = set()
    for subject in subjects:
        path = []
        seen = set()
        current: Optional[Subject] = subject
        while current is not None and current.id not in safe:
            if current.id in seen:
                logger.warning("Cycle through subject %s", current.id)
                raise SubjectTreeError(f"Cyclic parent chain through subject '{current.id}'.")
            seen.add(current.id)
            path.append(current.id)
            current = by_id.get(current.parent_id) if current.parent_id is not None else None
        safe.update(path)

    return subjects
