from __future__ import annotations

import logging
import time
from typing import Sequence

from core.academic.grade_calculator import get_grade_letter, missing_weeks, validate_percentage
from core.academic.policy import (
    DEFAULT_STRONG_WEEK_RATIO,
    PredictivePolicy,
    build_prediction_request,
    first_week_is_strong,
    parse_final_grade,
)
from core.academic.records import CourseRubric, GradeBreakdown, GradeResult, WeeklyRecord
from core.services.shared.errors import PredictionUnavailableError

logger = logging.getLogger(__name__)

MODE_COMPLETE = "complete"
MODE_PREDICTED = "predicted"


class GradeClassifier:
    """
    Turn an aggregated percentage into a letter grade.

    With a record for every expected week the fixed rubric decides and the
    policy is never consulted. With any week missing the decision belongs to
    the predictive policy; its failures surface as PredictionUnavailableError
    and are never papered over with the rubric.
    """

    def __init__(self, policy: PredictivePolicy | None = None, *, strong_week_ratio: float = DEFAULT_STRONG_WEEK_RATIO):
        self.policy = policy
        self.strong_week_ratio = float(strong_week_ratio)

    def classify(
        self,
        breakdown: GradeBreakdown,
        records: Sequence[WeeklyRecord],
        rubric: CourseRubric,
    ) -> GradeResult:
        total = validate_percentage(breakdown.total_percentage)
        missing = missing_weeks(records, rubric)
        if not missing:
            return GradeResult(letter_grade=get_grade_letter(total), total_percentage=total, mode=MODE_COMPLETE)
        return self._predict(breakdown, records, rubric, missing)

    def _predict(
        self,
        breakdown: GradeBreakdown,
        records: Sequence[WeeklyRecord],
        rubric: CourseRubric,
        missing: Sequence[int],
    ) -> GradeResult:
        if self.policy is None:
            raise PredictionUnavailableError("No predictive policy configured for partial records.")

        request = build_prediction_request(breakdown, records, rubric)
        t0 = time.time()
        try:
            response = self.policy.predict(request)
        except PredictionUnavailableError:
            raise
        except Exception as exc:
            raise PredictionUnavailableError(f"Predictive policy failed: {exc!r}") from exc

        raw = response.get("finalGrade") if isinstance(response, dict) else None
        try:
            letter, tag = parse_final_grade(raw)
        except ValueError as exc:
            raise PredictionUnavailableError(f"Malformed prediction: {exc}") from exc

        if letter == "F" and first_week_is_strong(records, rubric, self.strong_week_ratio):
            raise PredictionUnavailableError("Policy returned F despite a strong first week.")

        logger.info(
            "[GRADE PREDICT] total=%.2f missing_weeks=%s grade=%s tag=%s ms=%s",
            breakdown.total_percentage,
            len(missing),
            letter,
            tag,
            int(max((time.time() - t0) * 1000, 0)),
        )
        return GradeResult(
            letter_grade=letter,
            total_percentage=breakdown.total_percentage,
            behavior_tag=tag,
            mode=MODE_PREDICTED,
        )
