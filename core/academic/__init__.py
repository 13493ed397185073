"""Academic domain modules for lab grade aggregation and classification."""

from .grade_calculator import (
    DEFAULT_GRADE_SCALE,
    aggregate_weekly_records,
    get_grade_letter,
    is_complete,
    missing_weeks,
)
from .classifier import GradeClassifier
from .policy import BEHAVIOR_TAGS, HeuristicPredictivePolicy, PredictivePolicy, parse_final_grade
from .records import CourseRubric, GradeBreakdown, GradeResult, GradeWeights, WeeklyRecord

__all__ = [
    "DEFAULT_GRADE_SCALE",
    "aggregate_weekly_records",
    "get_grade_letter",
    "is_complete",
    "missing_weeks",
    "GradeClassifier",
    "BEHAVIOR_TAGS",
    "HeuristicPredictivePolicy",
    "PredictivePolicy",
    "parse_final_grade",
    "CourseRubric",
    "GradeBreakdown",
    "GradeResult",
    "GradeWeights",
    "WeeklyRecord",
]
