from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

ATTENDANCE_PRESENT = "present"
ATTENDANCE_ABSENT = "absent"
ATTENDANCE_UNMARKED = "unmarked"
ATTENDANCE_CHOICES = (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT, ATTENDANCE_UNMARKED)

DEFAULT_TOTAL_WEEKS = 12
DEFAULT_CREDIT = 1.5
QUIZ_MAX = 15.0
VIVA_MAX = 15.0
ATTENDANCE_MAX = 100.0


def normalize_attendance(value: Optional[str]) -> Optional[str]:
    """Map UI attendance values to a stored status; `unmarked` means no record."""
    status = str(value or "").strip().lower()
    if not status or status == ATTENDANCE_UNMARKED:
        return None
    if status not in (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT):
        raise ValueError(f"unknown attendance status: {value!r}")
    return status


@dataclass(frozen=True)
class GradeWeights:
    lab: float = 0.60
    quiz: float = 0.15
    viva: float = 0.15
    attendance: float = 0.10

    def __post_init__(self):
        parts = (self.lab, self.quiz, self.viva, self.attendance)
        if any(w < 0 for w in parts):
            raise ValueError("grade weights must be non-negative")
        if not math.isclose(sum(parts), 1.0, abs_tol=1e-9):
            raise ValueError(f"grade weights must sum to 1.0, got {sum(parts)}")


@dataclass(frozen=True)
class CourseRubric:
    credit: float = DEFAULT_CREDIT
    total_weeks: int = DEFAULT_TOTAL_WEEKS
    final_week: Optional[int] = None
    quiz_max: float = QUIZ_MAX
    viva_max: float = VIVA_MAX
    weights: GradeWeights = field(default_factory=GradeWeights)

    def __post_init__(self):
        if self.credit <= 0:
            raise ValueError("course credit must be positive")
        if self.total_weeks < 1:
            raise ValueError("total_weeks must be at least 1")

    @property
    def lab_max(self) -> float:
        return float(self.credit) * 100.0

    @property
    def lab_max_per_week(self) -> float:
        return self.lab_max / self.total_weeks

    @property
    def quiz_viva_week(self) -> int:
        # Quiz and viva are only read from this week's record.
        return int(self.final_week or self.total_weeks)

    @property
    def expected_weeks(self) -> range:
        return range(1, self.total_weeks + 1)


@dataclass(frozen=True)
class WeeklyRecord:
    week: int
    lab_marks: float = 0.0
    quiz_score: float = 0.0
    viva_score: float = 0.0
    attendance: Optional[str] = None

    @property
    def has_attendance(self) -> bool:
        return self.attendance in (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT)


@dataclass(frozen=True)
class GradeBreakdown:
    raw_lab_total: float
    quiz_score: float
    viva_score: float
    capped_lab: float
    capped_quiz: float
    capped_viva: float
    attendance_pct: float
    present_count: int
    absent_count: int
    weighted_lab: float
    weighted_quiz: float
    weighted_viva: float
    weighted_attendance: float
    total_percentage: float


@dataclass(frozen=True)
class GradeResult:
    letter_grade: str
    total_percentage: float
    behavior_tag: str = ""
    mode: str = "complete"

    def as_dict(self) -> dict:
        return {
            "letter_grade": self.letter_grade,
            "total_percentage": self.total_percentage,
            "behavior_tag": self.behavior_tag,
            "mode": self.mode,
        }
