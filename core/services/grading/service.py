from __future__ import annotations

import logging
import math
from dataclasses import asdict
from typing import Any, Dict, Iterable, List

from core.academic.classifier import GradeClassifier
from core.academic.grade_calculator import (
    aggregate_weekly_records,
    attendance_percentage,
    count_attendance,
    missing_weeks,
)
from core.academic.policy import HeuristicPredictivePolicy, PredictivePolicy
from core.academic.records import CourseRubric, WeeklyRecord, normalize_attendance
from core.services.grading.settings import POLICY_HEURISTIC, GradingSettings, get_grading_settings
from core.services.grading.store import RecordStore
from core.services.shared.dto import EnrollmentSnapshot, GradeCalculationResult, WeekRowPayload
from core.services.shared.errors import GradingError, PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


def rubric_for(enrollment: EnrollmentSnapshot) -> CourseRubric:
    return CourseRubric(credit=float(enrollment.credit), total_weeks=int(enrollment.total_weeks))


def build_predictive_policy(name: str | None = None, settings: GradingSettings | None = None) -> PredictivePolicy:
    cfg = settings or get_grading_settings()
    selected = str(name or cfg.prediction_policy).strip().lower()
    if selected == POLICY_HEURISTIC:
        return HeuristicPredictivePolicy(strong_week_ratio=cfg.strong_week_ratio)
    from core.ai_engine.grade_predictor import LLMPredictivePolicy

    return LLMPredictivePolicy()


def _actor_label(actor: Any) -> str:
    if actor is None:
        return "system"
    return str(getattr(actor, "username", None) or getattr(actor, "id", "-"))


def _is_staff(actor: Any) -> bool:
    return bool(getattr(actor, "is_staff", False) or getattr(actor, "is_superuser", False))


def _require_instructor(actor: Any, enrollment: EnrollmentSnapshot) -> None:
    if actor is None or _is_staff(actor):
        return
    if getattr(actor, "id", None) != enrollment.teacher_id:
        raise PermissionDeniedError("Only the course instructor can change grades or weekly records.")


def _require_viewer(actor: Any, enrollment: EnrollmentSnapshot) -> None:
    if actor is None or _is_staff(actor):
        return
    if getattr(actor, "id", None) not in (enrollment.teacher_id, enrollment.student_id):
        raise PermissionDeniedError("Not allowed to view this enrollment.")


def _non_negative(name: str, value: Any) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number.")
    if math.isnan(number) or math.isinf(number) or number < 0:
        raise ValidationError(f"{name} must be a non-negative number.")
    return number


def _validate_week(week: Any, rubric: CourseRubric) -> int:
    try:
        w = int(week)
    except (TypeError, ValueError):
        raise ValidationError("week must be an integer.")
    if isinstance(week, bool) or str(week).strip() != str(w):
        raise ValidationError("week must be an integer.")
    if w < 1 or w > rubric.total_weeks:
        raise ValidationError(f"week must be between 1 and {rubric.total_weeks}.")
    return w


def _record_fields(*, lab_marks: Any, quiz_score: Any, viva_score: Any, attendance: Any) -> Dict[str, Any]:
    try:
        status = normalize_attendance(attendance)
    except ValueError as exc:
        raise ValidationError(str(exc))
    return {
        "lab_marks": _non_negative("lab_marks", lab_marks),
        "quiz_score": _non_negative("quiz_score", quiz_score),
        "viva_score": _non_negative("viva_score", viva_score),
        "attendance": status,
    }


def save_weekly_performance(
    *,
    store: RecordStore,
    enrollment_id: int,
    week: Any,
    lab_marks: Any = 0,
    quiz_score: Any = 0,
    viva_score: Any = 0,
    attendance: Any = "unmarked",
    actor: Any = None,
    request_id: str = "-",
) -> WeeklyRecord:
    """Upsert one week for one enrollment. The stored grade is left untouched."""
    enrollment = store.get_enrollment(enrollment_id)
    _require_instructor(actor, enrollment)
    w = _validate_week(week, rubric_for(enrollment))
    fields = _record_fields(lab_marks=lab_marks, quiz_score=quiz_score, viva_score=viva_score, attendance=attendance)

    record = store.upsert_weekly_record(enrollment_id, w, fields)
    logger.info(
        "[WEEK SAVE] enrollment=%s week=%s lab=%s attendance=%s",
        enrollment_id,
        w,
        fields["lab_marks"],
        fields["attendance"] or "unmarked",
        extra={"request_id": request_id},
    )
    return record


def save_week_for_course(
    *,
    store: RecordStore,
    course_id: int,
    week: Any,
    entries: Dict[int, Dict[str, Any]],
    actor: Any = None,
    request_id: str = "-",
) -> Dict[str, Any]:
    """
    Save one week for several enrollments of a course.

    Every entry is validated before anything is written, so a bad row leaves
    the whole batch unsaved.
    """
    if not entries:
        raise ValidationError("No enrollments to save.")

    prepared: List[tuple] = []
    for raw_id, data in entries.items():
        enrollment_id = int(raw_id)
        enrollment = store.get_enrollment(enrollment_id)
        if enrollment.course_id != int(course_id):
            raise ValidationError(f"Enrollment id={enrollment_id} is not part of course id={course_id}.")
        _require_instructor(actor, enrollment)
        w = _validate_week(week, rubric_for(enrollment))
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError("entries must map enrollment ids to score objects")
        fields = _record_fields(
            lab_marks=data.get("lab_marks"),
            quiz_score=data.get("quiz_score"),
            viva_score=data.get("viva_score"),
            attendance=data.get("attendance", "unmarked"),
        )
        prepared.append((enrollment_id, w, fields))

    for enrollment_id, w, fields in prepared:
        store.upsert_weekly_record(enrollment_id, w, fields)

    logger.info(
        "[WEEK SAVE BATCH] course=%s week=%s enrollments=%s",
        course_id,
        week,
        len(prepared),
        extra={"request_id": request_id},
    )
    return {"course_id": int(course_id), "week": int(prepared[0][1]), "saved": [p[0] for p in prepared]}


def calculate_and_save_final_grade(
    *,
    store: RecordStore,
    policy: PredictivePolicy | None,
    enrollment_id: int,
    actor: Any = None,
    request_id: str = "-",
    settings: GradingSettings | None = None,
) -> GradeCalculationResult:
    cfg = settings or get_grading_settings()
    enrollment = store.get_enrollment(enrollment_id)
    _require_instructor(actor, enrollment)

    rubric = rubric_for(enrollment)
    records = store.list_weekly_records(enrollment_id)
    classifier = GradeClassifier(policy, strong_week_ratio=cfg.strong_week_ratio)
    audit_extra = {"request_id": request_id, "user": _actor_label(actor)}

    try:
        breakdown = aggregate_weekly_records(records, rubric)
        result = classifier.classify(breakdown, records, rubric)
    except GradingError as exc:
        logger.warning(
            "[GRADE FAIL] enrollment=%s weeks=%s err=%r",
            enrollment_id,
            len(records),
            exc,
            extra={"request_id": request_id},
        )
        if cfg.audit_enabled:
            audit_logger.warning(
                f"action=calculate_grade status=fail enrollment_id={enrollment_id} reason={type(exc).__name__}",
                extra=audit_extra,
            )
        raise

    store.set_grade_result(enrollment_id, result)

    logger.info(
        "[GRADE SAVE] enrollment=%s grade=%s total=%.2f mode=%s",
        enrollment_id,
        result.letter_grade,
        result.total_percentage,
        result.mode,
        extra={"request_id": request_id},
    )
    if cfg.audit_enabled:
        audit_logger.info(
            f"action=calculate_grade status=success enrollment_id={enrollment_id} "
            f"grade={result.letter_grade} total={result.total_percentage:.2f} mode={result.mode}",
            extra=audit_extra,
        )

    return GradeCalculationResult(
        enrollment_id=int(enrollment_id),
        letter_grade=result.letter_grade,
        total_percentage=result.total_percentage,
        behavior_tag=result.behavior_tag,
        mode=result.mode,
        breakdown=asdict(breakdown),
    )


def recalculate_course_grades(
    *,
    store: RecordStore,
    policy: PredictivePolicy | None,
    course_id: int,
    actor: Any = None,
    request_id: str = "-",
    settings: GradingSettings | None = None,
) -> List[Dict[str, Any]]:
    outcomes: List[Dict[str, Any]] = []
    for enrollment_id in store.list_course_enrollment_ids(course_id):
        try:
            res = calculate_and_save_final_grade(
                store=store,
                policy=policy,
                enrollment_id=enrollment_id,
                actor=actor,
                request_id=request_id,
                settings=settings,
            )
            outcomes.append(
                {
                    "enrollment_id": enrollment_id,
                    "ok": True,
                    "letter_grade": res.letter_grade,
                    "total_percentage": res.total_percentage,
                    "mode": res.mode,
                }
            )
        except GradingError as exc:
            outcomes.append({"enrollment_id": enrollment_id, "ok": False, "error": type(exc).__name__, "detail": str(exc)})
    return outcomes


def get_enrollment_report(*, store: RecordStore, enrollment_id: int, actor: Any = None) -> Dict[str, Any]:
    enrollment = store.get_enrollment(enrollment_id)
    _require_viewer(actor, enrollment)
    rubric = rubric_for(enrollment)
    records = store.list_weekly_records(enrollment_id)

    weeks: List[WeekRowPayload] = [
        {
            "week": r.week,
            "lab_marks": r.lab_marks,
            "quiz_score": r.quiz_score,
            "viva_score": r.viva_score,
            "attendance": r.attendance or "unmarked",
        }
        for r in sorted(records, key=lambda x: x.week)
    ]
    present, absent = count_attendance(records)
    grade = None
    if enrollment.final_grade:
        grade = {
            "letter_grade": enrollment.final_grade,
            "total_percentage": enrollment.total_marks,
            "behavior_tag": enrollment.behavior_tag,
            "mode": enrollment.grading_mode,
        }
    return {
        "enrollment_id": enrollment.id,
        "course_id": enrollment.course_id,
        "credit": enrollment.credit,
        "weeks": weeks,
        "missing_weeks": missing_weeks(records, rubric),
        "attendance": {
            "present": present,
            "absent": absent,
            "percentage": round(attendance_percentage(present, absent), 2),
        },
        "grade": grade,
    }


def summarize_student_progress(enrollments: Iterable[EnrollmentSnapshot]) -> Dict[str, Any]:
    items = list(enrollments)
    graded_totals = [float(e.total_marks) for e in items if e.total_marks]
    high = sum(1 for e in items if e.final_grade in ("A", "B"))
    average = math.floor(sum(graded_totals) / len(graded_totals) + 0.5) if graded_totals else 0
    return {
        "total_courses": len(items),
        "high_grades": high,
        "average_score": average,
        "courses": [
            {
                "enrollment_id": e.id,
                "course_id": e.course_id,
                "final_grade": e.final_grade,
                "total_marks": e.total_marks,
                "credit": e.credit,
            }
            for e in items
        ],
    }
