"""
models.py: In-memory records handed to the averaging engine.

Values, outOf and coefficients are fixed-point integers scaled x100
(15.5/20 -> value=1550, out_of=2000). The engine divides by 100 when it
does the percentage math.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

DEFAULT_COEFFICIENT = 100


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Grade:
    id: str
    name: str
    value: int
    out_of: int
    passed_at: datetime
    subject_id: str
    coefficient: Optional[int] = None
    created_at: Optional[datetime] = None
    period_id: Optional[str] = None

    @property
    def weight(self) -> float:
        """Real-unit coefficient (100 -> 1.0)."""
        coefficient = self.coefficient if self.coefficient is not None else DEFAULT_COEFFICIENT
        return coefficient / 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "value": self.value,
            "outOf": self.out_of,
            "coefficient": self.coefficient,
            "passedAt": _iso(self.passed_at),
            "createdAt": _iso(self.created_at),
            "subjectId": self.subject_id,
            "periodId": self.period_id,
        }


@dataclass
class Subject:
    id: str
    name: str = ""
    parent_id: Optional[str] = None
    coefficient: Optional[int] = DEFAULT_COEFFICIENT
    is_display_subject: bool = False
    is_main_subject: bool = False
    grades: List[Grade] = field(default_factory=list)

    @property
    def weight(self) -> float:
        coefficient = self.coefficient if self.coefficient is not None else DEFAULT_COEFFICIENT
        return coefficient / 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parentId": self.parent_id,
            "coefficient": self.coefficient,
            "isDisplaySubject": self.is_display_subject,
            "isMainSubject": self.is_main_subject,
            "grades": [g.to_dict() for g in self.grades],
        }


@dataclass
class CustomAverageSubject:
    id: str
    # Real units (2 means weight 2.0), unlike Subject.coefficient.
    custom_coefficient: Optional[float] = None
    include_children: bool = True


@dataclass
class CustomAverage:
    id: str
    name: str
    subjects: List[CustomAverageSubject] = field(default_factory=list)
    user_id: Optional[str] = None
    is_main_average: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "userId": self.user_id,
            "isMainAverage": self.is_main_average,
            "subjects": [
                {
                    "id": s.id,
                    "customCoefficient": s.custom_coefficient,
                    "includeChildren": s.include_children,
                }
                for s in self.subjects
            ],
        }


@dataclass
class Period:
    """A slice of the school year; grades point at one through period_id."""

    id: str
    name: str
    start_at: datetime
    end_at: datetime
    # Also keeps the grades of every earlier period.
    is_cumulative: bool = False
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "startAt": _iso(self.start_at),
            "endAt": _iso(self.end_at),
            "isCumulative": self.is_cumulative,
            "userId": self.user_id,
        }
