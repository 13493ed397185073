# core/views.py
import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.contrib.auth.decorators import login_required

from .services.grading import service
from .services.grading.store import DjangoRecordStore
from .services.shared.errors import (
    NoDataError,
    NotFoundError,
    PermissionDeniedError,
    PredictionUnavailableError,
    RubricBoundsError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Order matters: NoDataError is also a ValidationError.
ERROR_STATUS = (
    (NoDataError, "NO_DATA", 422),
    (ValidationError, "INVALID_INPUT", 400),
    (NotFoundError, "NOT_FOUND", 404),
    (PermissionDeniedError, "FORBIDDEN", 403),
    (PredictionUnavailableError, "PREDICTION_UNAVAILABLE", 503),
    (RubricBoundsError, "RUBRIC_BOUNDS", 500),
)


def _rid(request) -> str:
    return getattr(request, "request_id", "-")


def _log_extra(request) -> dict:
    return {"request_id": _rid(request)}


def get_record_store():
    return DjangoRecordStore()


def get_predictive_policy():
    return service.build_predictive_policy()


def _error_response(request, exc: ServiceError) -> JsonResponse:
    for err_type, code, status in ERROR_STATUS:
        if isinstance(exc, err_type):
            break
    else:
        code, status = "SERVICE_ERROR", 500
    log = logger.error if status >= 500 else logger.warning
    log(f" [API ERROR] path={request.path} code={code} err={exc!r}", extra=_log_extra(request))
    return JsonResponse({"status": "error", "error_code": code, "error": str(exc)}, status=status)


def _json_body(request):
    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


@csrf_exempt
@login_required
def enrollment_week_api(request, enrollment_id: int):
    if request.method != "POST":
        return JsonResponse({"status": "error", "msg": "Method not allowed"}, status=405)
    data = _json_body(request)
    if data is None:
        return JsonResponse({"status": "error", "error": "Invalid JSON"}, status=400)

    try:
        record = service.save_weekly_performance(
            store=get_record_store(),
            enrollment_id=enrollment_id,
            week=data.get("week"),
            lab_marks=data.get("lab_marks"),
            quiz_score=data.get("quiz_score"),
            viva_score=data.get("viva_score"),
            attendance=data.get("attendance", "unmarked"),
            actor=request.user,
            request_id=_rid(request),
        )
    except ServiceError as exc:
        return _error_response(request, exc)

    return JsonResponse(
        {
            "status": "success",
            "record": {
                "week": record.week,
                "lab_marks": record.lab_marks,
                "quiz_score": record.quiz_score,
                "viva_score": record.viva_score,
                "attendance": record.attendance or "unmarked",
            },
        }
    )


@csrf_exempt
@login_required
def course_week_api(request, course_id: int):
    if request.method != "POST":
        return JsonResponse({"status": "error", "msg": "Method not allowed"}, status=405)
    data = _json_body(request)
    if data is None:
        return JsonResponse({"status": "error", "error": "Invalid JSON"}, status=400)

    raw_entries = data.get("entries") or {}
    if not isinstance(raw_entries, dict) or not all(str(k).isdigit() for k in raw_entries):
        return JsonResponse({"status": "error", "error": "entries must map enrollment ids to scores"}, status=400)

    try:
        out = service.save_week_for_course(
            store=get_record_store(),
            course_id=course_id,
            week=data.get("week"),
            entries={int(k): v for k, v in raw_entries.items()},
            actor=request.user,
            request_id=_rid(request),
        )
    except ServiceError as exc:
        return _error_response(request, exc)

    return JsonResponse({"status": "success", **out})


@csrf_exempt
@login_required
def calculate_grade_api(request, enrollment_id: int):
    if request.method != "POST":
        return JsonResponse({"status": "error", "msg": "Method not allowed"}, status=405)

    logger.info(
        f" [GRADE REQUEST] user={request.user.username}(id={request.user.id}) enrollment={enrollment_id}",
        extra=_log_extra(request),
    )
    try:
        result = service.calculate_and_save_final_grade(
            store=get_record_store(),
            policy=get_predictive_policy(),
            enrollment_id=enrollment_id,
            actor=request.user,
            request_id=_rid(request),
        )
    except ServiceError as exc:
        return _error_response(request, exc)

    return JsonResponse(
        {
            "status": "success",
            "enrollment_id": result.enrollment_id,
            "final_grade": result.letter_grade,
            "total_marks": result.total_percentage,
            "behavior_tag": result.behavior_tag,
            "mode": result.mode,
            "breakdown": result.breakdown,
        }
    )


@login_required
def enrollment_report_api(request, enrollment_id: int):
    if request.method != "GET":
        return JsonResponse({"status": "error", "msg": "Method not allowed"}, status=405)
    try:
        report = service.get_enrollment_report(
            store=get_record_store(),
            enrollment_id=enrollment_id,
            actor=request.user,
        )
    except ServiceError as exc:
        return _error_response(request, exc)
    return JsonResponse({"status": "success", **report})


@login_required
def student_progress_api(request):
    if request.method != "GET":
        return JsonResponse({"status": "error", "msg": "Method not allowed"}, status=405)
    enrollments = get_record_store().list_student_enrollments(request.user.id)
    return JsonResponse({"status": "success", **service.summarize_student_progress(enrollments)})
