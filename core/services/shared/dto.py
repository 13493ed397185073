from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict


class WeightedScoresPayload(TypedDict):
    lab: str
    quiz: str
    viva: str
    attendance: str


class ActualScoresPayload(TypedDict):
    totalLabMarks: float
    quizScore: float
    vivaScore: float
    attendancePercentage: str


class MaxScoresPayload(TypedDict):
    lab: float
    quiz: float
    viva: float


class WeekSnapshotPayload(TypedDict):
    week: int
    labMarks: float
    attendance: str


class PredictionRequest(TypedDict):
    totalPercentage: float
    weightedScores: WeightedScoresPayload
    actualScores: ActualScoresPayload
    maxScores: MaxScoresPayload
    weeklyLabMarks: List[WeekSnapshotPayload]
    expectedWeeks: int
    recordedWeeks: int


class PredictionResponse(TypedDict):
    finalGrade: str


class WeekRowPayload(TypedDict):
    week: int
    lab_marks: float
    quiz_score: float
    viva_score: float
    attendance: str


@dataclass(slots=True)
class EnrollmentSnapshot:
    id: int
    course_id: int
    student_id: int
    teacher_id: Optional[int]
    credit: float
    total_weeks: int
    final_grade: Optional[str] = None
    total_marks: Optional[float] = None
    behavior_tag: str = ""
    grading_mode: str = ""


@dataclass(slots=True)
class GradeCalculationResult:
    enrollment_id: int
    letter_grade: str
    total_percentage: float
    behavior_tag: str
    mode: str
    breakdown: Dict[str, Any]
