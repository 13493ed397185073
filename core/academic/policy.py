"""Predictive grading policies used when an enrollment has missing weeks."""

from __future__ import annotations

import re
import statistics
from typing import List, Protocol, Sequence, Tuple

from core.academic.grade_calculator import GRADE_LETTERS, cap_score, get_grade_letter, weighted_score
from core.academic.records import (
    ATTENDANCE_MAX,
    CourseRubric,
    GradeBreakdown,
    WeeklyRecord,
)
from core.services.shared.dto import PredictionRequest, PredictionResponse

TAG_HIGH_ACHIEVER = "High Achiever"
TAG_CONSISTENT = "Consistent Performer"
TAG_IMPROVING = "Improving"
TAG_AVERAGE = "Average/Stable"
TAG_AT_RISK = "At Risk"
BEHAVIOR_TAGS = (TAG_HIGH_ACHIEVER, TAG_CONSISTENT, TAG_IMPROVING, TAG_AVERAGE, TAG_AT_RISK)

DEFAULT_STRONG_WEEK_RATIO = 0.7

_FINAL_GRADE_RE = re.compile(r"^\s*([A-Za-z])\s*:\s*(.+?)\s*$")


class PredictivePolicy(Protocol):
    def predict(self, request: PredictionRequest) -> PredictionResponse:
        ...


def normalize_tag(raw: str) -> str:
    return re.sub(r"\s*/\s*", "/", re.sub(r"\s+", " ", str(raw or "").strip()))


def parse_final_grade(raw: object) -> Tuple[str, str]:
    """Split `"<LETTER>:<TAG>"` into its parts. Raises ValueError when malformed."""
    match = _FINAL_GRADE_RE.match(str(raw or ""))
    if not match:
        raise ValueError(f"finalGrade not in '<LETTER>:<TAG>' form: {raw!r}")
    letter = match.group(1).upper()
    if letter not in GRADE_LETTERS:
        raise ValueError(f"unknown grade letter: {letter!r}")
    tag = normalize_tag(match.group(2))
    by_lower = {t.lower(): t for t in BEHAVIOR_TAGS}
    if tag.lower() not in by_lower:
        raise ValueError(f"unknown behavior tag: {tag!r}")
    return letter, by_lower[tag.lower()]


def week_ratio(record: WeeklyRecord, rubric: CourseRubric) -> float:
    per_week = rubric.lab_max_per_week
    if per_week <= 0:
        return 0.0
    return cap_score(record.lab_marks, per_week) / per_week


def first_week_is_strong(
    records: Sequence[WeeklyRecord],
    rubric: CourseRubric,
    threshold: float = DEFAULT_STRONG_WEEK_RATIO,
) -> bool:
    if not records:
        return False
    first = min(records, key=lambda r: int(r.week))
    return week_ratio(first, rubric) >= threshold


def build_prediction_request(
    breakdown: GradeBreakdown,
    records: Sequence[WeeklyRecord],
    rubric: CourseRubric,
) -> PredictionRequest:
    ordered = sorted(records, key=lambda r: int(r.week))
    return {
        "totalPercentage": breakdown.total_percentage,
        "weightedScores": {
            "lab": f"{breakdown.weighted_lab:.2f}",
            "quiz": f"{breakdown.weighted_quiz:.2f}",
            "viva": f"{breakdown.weighted_viva:.2f}",
            "attendance": f"{breakdown.weighted_attendance:.2f}",
        },
        "actualScores": {
            "totalLabMarks": breakdown.raw_lab_total,
            "quizScore": breakdown.quiz_score,
            "vivaScore": breakdown.viva_score,
            "attendancePercentage": f"{breakdown.attendance_pct:.2f}",
        },
        "maxScores": {
            "lab": rubric.lab_max,
            "quiz": rubric.quiz_max,
            "viva": rubric.viva_max,
        },
        "weeklyLabMarks": [
            {"week": int(r.week), "labMarks": float(r.lab_marks or 0), "attendance": r.attendance or "unmarked"}
            for r in ordered
        ],
        "expectedWeeks": rubric.total_weeks,
        "recordedWeeks": len({int(r.week) for r in ordered}),
    }


class HeuristicPredictivePolicy:
    """
    Rule-based stand-in for the LLM evaluator.

    Missing weeks are not counted as zeros: the lab component is projected
    from the average ratio of the weeks seen so far. A strong first week
    rules out F, a decline over the later half drops one band, and steady
    attendance with low week-to-week variance reads as consistency.
    """

    decline_threshold = 0.15
    improve_threshold = 0.15
    consistency_stdev = 0.12

    def __init__(self, *, strong_week_ratio: float = DEFAULT_STRONG_WEEK_RATIO):
        self.strong_week_ratio = float(strong_week_ratio)

    def _rubric(self, request: PredictionRequest) -> CourseRubric:
        lab_max = float(request["maxScores"]["lab"] or 0)
        # Lab maximum is credit * 100.
        credit = lab_max / 100.0 if lab_max > 0 else 1.5
        return CourseRubric(
            credit=credit,
            total_weeks=max(int(request.get("expectedWeeks") or 1), 1),
            quiz_max=float(request["maxScores"]["quiz"] or 15),
            viva_max=float(request["maxScores"]["viva"] or 15),
        )

    def _ratios(self, request: PredictionRequest, rubric: CourseRubric) -> List[float]:
        return [
            week_ratio(WeeklyRecord(week=int(w["week"]), lab_marks=float(w["labMarks"] or 0)), rubric)
            for w in request.get("weeklyLabMarks") or []
        ]

    def _projected_percentage(self, request: PredictionRequest, rubric: CourseRubric, ratios: List[float]) -> float:
        weights = rubric.weights
        if ratios:
            lab_ratio = sum(ratios) / len(ratios)
        else:
            lab_ratio = float(request["actualScores"]["totalLabMarks"] or 0) / rubric.lab_max
        lab_ratio = min(max(lab_ratio, 0.0), 1.0)

        quiz = float(request["actualScores"]["quizScore"] or 0)
        viva = float(request["actualScores"]["vivaScore"] or 0)
        if quiz or viva:
            quiz_part = weighted_score(cap_score(quiz, rubric.quiz_max), rubric.quiz_max, weights.quiz)
            viva_part = weighted_score(cap_score(viva, rubric.viva_max), rubric.viva_max, weights.viva)
        else:
            # Final assessments not held yet: assume they track lab performance.
            quiz_part = lab_ratio * 100.0 * weights.quiz
            viva_part = lab_ratio * 100.0 * weights.viva

        att_pct = cap_score(request["actualScores"]["attendancePercentage"], ATTENDANCE_MAX)
        has_attendance = any(
            (w.get("attendance") or "unmarked") != "unmarked" for w in request.get("weeklyLabMarks") or []
        )
        att_part = (att_pct / 100.0 if has_attendance else lab_ratio) * 100.0 * weights.attendance

        return min(lab_ratio * 100.0 * weights.lab + quiz_part + viva_part + att_part, 100.0)

    @staticmethod
    def _trend(ratios: List[float]) -> float:
        if len(ratios) < 2:
            return 0.0
        half = len(ratios) // 2
        early = ratios[: len(ratios) - half]
        late = ratios[len(ratios) - half:]
        return (sum(late) / len(late)) - (sum(early) / len(early))

    @staticmethod
    def _shift(letter: str, steps: int) -> str:
        idx = GRADE_LETTERS.index(letter) + steps
        return GRADE_LETTERS[min(max(idx, 0), len(GRADE_LETTERS) - 1)]

    def predict(self, request: PredictionRequest) -> PredictionResponse:
        rubric = self._rubric(request)
        ratios = self._ratios(request, rubric)
        letter = get_grade_letter(round(self._projected_percentage(request, rubric, ratios), 2))

        trend = self._trend(ratios)
        declining = trend <= -self.decline_threshold
        improving = trend >= self.improve_threshold
        if declining:
            letter = self._shift(letter, 1)

        strong_start = bool(ratios) and ratios[0] >= self.strong_week_ratio
        if strong_start and letter == "F":
            letter = "D"

        att_pct = cap_score(request["actualScores"]["attendancePercentage"], ATTENDANCE_MAX)
        steady = len(ratios) >= 2 and statistics.pstdev(ratios) <= self.consistency_stdev

        if improving:
            tag = TAG_IMPROVING
        elif declining or letter in ("D", "F"):
            tag = TAG_AT_RISK
        elif letter == "A":
            tag = TAG_HIGH_ACHIEVER
        elif steady and att_pct >= 80:
            tag = TAG_CONSISTENT
        else:
            tag = TAG_AVERAGE

        return {"finalGrade": f"{letter}:{tag}"}
