from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from core.academic.records import (
    ATTENDANCE_ABSENT,
    ATTENDANCE_MAX,
    ATTENDANCE_PRESENT,
    CourseRubric,
    GradeBreakdown,
    WeeklyRecord,
)
from core.services.shared.errors import NoDataError, RubricBoundsError

# (letter, low, high): low inclusive, high exclusive except for the top band.
DEFAULT_GRADE_SCALE: List[Tuple[str, float, float]] = [
    ("A", 70, 100),
    ("B", 55, 70),
    ("C", 45, 55),
    ("D", 40, 45),
    ("F", 0, 40),
]

GRADE_LETTERS = tuple(letter for letter, _low, _high in DEFAULT_GRADE_SCALE)


def cap_score(value: float, maximum: float) -> float:
    try:
        v = float(value or 0)
    except (TypeError, ValueError):
        v = 0.0
    if math.isnan(v):
        v = 0.0
    return min(max(v, 0.0), float(maximum))


def weighted_score(capped: float, maximum: float, weight: float) -> float:
    if maximum <= 0:
        return 0.0
    return (capped / maximum) * (100.0 * weight)


def count_attendance(records: Iterable[WeeklyRecord]) -> Tuple[int, int]:
    present = 0
    absent = 0
    for rec in records:
        if rec.attendance == ATTENDANCE_PRESENT:
            present += 1
        elif rec.attendance == ATTENDANCE_ABSENT:
            absent += 1
    return present, absent


def attendance_percentage(present: int, absent: int) -> float:
    total = present + absent
    if total <= 0:
        return 0.0
    return (present / total) * 100.0


def find_week(records: Iterable[WeeklyRecord], week: int) -> Optional[WeeklyRecord]:
    for rec in records:
        if int(rec.week) == int(week):
            return rec
    return None


def missing_weeks(records: Iterable[WeeklyRecord], rubric: CourseRubric) -> List[int]:
    recorded = {int(rec.week) for rec in records}
    return [w for w in rubric.expected_weeks if w not in recorded]


def is_complete(records: Iterable[WeeklyRecord], rubric: CourseRubric) -> bool:
    return not missing_weeks(records, rubric)


def aggregate_weekly_records(records: Sequence[WeeklyRecord], rubric: CourseRubric) -> GradeBreakdown:
    """
    Aggregate every weekly record of one enrollment into weighted sub-scores.

    Lab marks are summed over all weeks; quiz and viva come only from the
    rubric's final week (0 when that week has no record). Each component is
    capped at its maximum before weighting, so the total stays in [0, 100].
    """
    if not records:
        raise NoDataError("No weekly records to aggregate.")

    weights = rubric.weights
    raw_lab_total = sum(float(rec.lab_marks or 0) for rec in records)

    final_rec = find_week(records, rubric.quiz_viva_week)
    quiz_score = float(final_rec.quiz_score or 0) if final_rec else 0.0
    viva_score = float(final_rec.viva_score or 0) if final_rec else 0.0

    present, absent = count_attendance(records)
    att_pct = attendance_percentage(present, absent)

    capped_lab = cap_score(raw_lab_total, rubric.lab_max)
    capped_quiz = cap_score(quiz_score, rubric.quiz_max)
    capped_viva = cap_score(viva_score, rubric.viva_max)
    capped_att = cap_score(att_pct, ATTENDANCE_MAX)

    w_lab = weighted_score(capped_lab, rubric.lab_max, weights.lab)
    w_quiz = weighted_score(capped_quiz, rubric.quiz_max, weights.quiz)
    w_viva = weighted_score(capped_viva, rubric.viva_max, weights.viva)
    w_att = weighted_score(capped_att, ATTENDANCE_MAX, weights.attendance)

    total = w_lab + w_quiz + w_viva + w_att

    return GradeBreakdown(
        raw_lab_total=raw_lab_total,
        quiz_score=quiz_score,
        viva_score=viva_score,
        capped_lab=capped_lab,
        capped_quiz=capped_quiz,
        capped_viva=capped_viva,
        attendance_pct=att_pct,
        present_count=present,
        absent_count=absent,
        weighted_lab=w_lab,
        weighted_quiz=w_quiz,
        weighted_viva=w_viva,
        weighted_attendance=w_att,
        total_percentage=round(min(max(total, 0.0), 100.0), 2),
    )


def validate_percentage(score: float) -> float:
    try:
        s = float(score)
    except (TypeError, ValueError) as exc:
        raise RubricBoundsError(f"Percentage is not a number: {score!r}") from exc
    if math.isnan(s) or s < 0 or s > 100:
        raise RubricBoundsError(f"Percentage {score!r} is outside [0, 100].")
    return s


def get_grade_letter(score: float, grade_scale: List[Tuple[str, float, float]] | None = None) -> str:
    scale = grade_scale or DEFAULT_GRADE_SCALE
    s = validate_percentage(score)

    top_letter, _top_low, top_high = scale[0]
    if s == top_high:
        return top_letter
    for letter, low, high in scale:
        if low <= s < high:
            return letter
    raise RubricBoundsError(f"Percentage {s} is not covered by the grade scale.")
