from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Dict, List, Protocol

from django.db import transaction
from django.utils import timezone

from core.academic.records import GradeResult, WeeklyRecord
from core.models import Enrollment, WeeklyRecord as WeeklyRecordModel
from core.services.shared.dto import EnrollmentSnapshot
from core.services.shared.errors import NotFoundError

RECORD_FIELDS = ("lab_marks", "quiz_score", "viva_score", "attendance")


class RecordStore(Protocol):
    def list_weekly_records(self, enrollment_id: int) -> List[WeeklyRecord]:
        ...

    def upsert_weekly_record(self, enrollment_id: int, week: int, fields: Dict[str, Any]) -> WeeklyRecord:
        ...

    def get_enrollment(self, enrollment_id: int) -> EnrollmentSnapshot:
        ...

    def set_grade_result(self, enrollment_id: int, result: GradeResult) -> None:
        ...

    def list_course_enrollment_ids(self, course_id: int) -> List[int]:
        ...

    def list_student_enrollments(self, student_id: int) -> List[EnrollmentSnapshot]:
        ...


def _to_record(row: WeeklyRecordModel) -> WeeklyRecord:
    return WeeklyRecord(
        week=int(row.week),
        lab_marks=float(row.lab_marks or 0),
        quiz_score=float(row.quiz_score or 0),
        viva_score=float(row.viva_score or 0),
        attendance=row.attendance or None,
    )


def _to_snapshot(enrollment: Enrollment) -> EnrollmentSnapshot:
    course = enrollment.course
    return EnrollmentSnapshot(
        id=enrollment.id,
        course_id=course.id,
        student_id=enrollment.student_id,
        teacher_id=course.teacher_id,
        credit=float(course.credit),
        total_weeks=int(course.total_weeks),
        final_grade=enrollment.final_grade,
        total_marks=enrollment.total_marks,
        behavior_tag=enrollment.behavior_tag or "",
        grading_mode=enrollment.grading_mode or "",
    )


class DjangoRecordStore:
    """Record store over the Django ORM."""

    def list_weekly_records(self, enrollment_id: int) -> List[WeeklyRecord]:
        rows = WeeklyRecordModel.objects.filter(enrollment_id=enrollment_id).order_by("week")
        return [_to_record(r) for r in rows]

    def upsert_weekly_record(self, enrollment_id: int, week: int, fields: Dict[str, Any]) -> WeeklyRecord:
        defaults = {k: fields[k] for k in RECORD_FIELDS if k in fields}
        with transaction.atomic():
            row, _created = WeeklyRecordModel.objects.update_or_create(
                enrollment_id=enrollment_id,
                week=int(week),
                defaults=defaults,
            )
        return _to_record(row)

    def get_enrollment(self, enrollment_id: int) -> EnrollmentSnapshot:
        try:
            enrollment = Enrollment.objects.select_related("course").get(pk=enrollment_id)
        except Enrollment.DoesNotExist:
            raise NotFoundError(f"Enrollment id={enrollment_id} not found.")
        return _to_snapshot(enrollment)

    def set_grade_result(self, enrollment_id: int, result: GradeResult) -> None:
        with transaction.atomic():
            try:
                enrollment = Enrollment.objects.select_for_update().get(pk=enrollment_id)
            except Enrollment.DoesNotExist:
                raise NotFoundError(f"Enrollment id={enrollment_id} not found.")
            enrollment.final_grade = result.letter_grade
            enrollment.total_marks = result.total_percentage
            enrollment.behavior_tag = result.behavior_tag
            enrollment.grading_mode = result.mode
            enrollment.graded_at = timezone.now()
            enrollment.save(
                update_fields=["final_grade", "total_marks", "behavior_tag", "grading_mode", "graded_at"]
            )

    def list_course_enrollment_ids(self, course_id: int) -> List[int]:
        return list(Enrollment.objects.filter(course_id=course_id).order_by("id").values_list("id", flat=True))

    def list_student_enrollments(self, student_id: int) -> List[EnrollmentSnapshot]:
        qs = Enrollment.objects.select_related("course").filter(student_id=student_id).order_by("id")
        return [_to_snapshot(e) for e in qs]


class InMemoryRecordStore:
    """Dict-backed store for offline runs and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._enrollments: Dict[int, EnrollmentSnapshot] = {}
        self._records: Dict[int, Dict[int, WeeklyRecord]] = {}

    def add_enrollment(self, snapshot: EnrollmentSnapshot) -> EnrollmentSnapshot:
        with self._lock:
            self._enrollments[snapshot.id] = snapshot
            self._records.setdefault(snapshot.id, {})
        return snapshot

    def list_weekly_records(self, enrollment_id: int) -> List[WeeklyRecord]:
        self.get_enrollment(enrollment_id)
        with self._lock:
            rows = self._records.get(enrollment_id, {})
            return [rows[w] for w in sorted(rows)]

    def upsert_weekly_record(self, enrollment_id: int, week: int, fields: Dict[str, Any]) -> WeeklyRecord:
        self.get_enrollment(enrollment_id)
        with self._lock:
            current = self._records[enrollment_id].get(int(week)) or WeeklyRecord(week=int(week))
            updated = replace(current, **{k: fields[k] for k in RECORD_FIELDS if k in fields})
            self._records[enrollment_id][int(week)] = updated
        return updated

    def get_enrollment(self, enrollment_id: int) -> EnrollmentSnapshot:
        with self._lock:
            snapshot = self._enrollments.get(enrollment_id)
        if snapshot is None:
            raise NotFoundError(f"Enrollment id={enrollment_id} not found.")
        return snapshot

    def set_grade_result(self, enrollment_id: int, result: GradeResult) -> None:
        self.get_enrollment(enrollment_id)
        with self._lock:
            snapshot = self._enrollments[enrollment_id]
            snapshot.final_grade = result.letter_grade
            snapshot.total_marks = result.total_percentage
            snapshot.behavior_tag = result.behavior_tag
            snapshot.grading_mode = result.mode

    def list_course_enrollment_ids(self, course_id: int) -> List[int]:
        with self._lock:
            return sorted(eid for eid, snap in self._enrollments.items() if snap.course_id == course_id)

    def list_student_enrollments(self, student_id: int) -> List[EnrollmentSnapshot]:
        with self._lock:
            return [
                snap
                for _eid, snap in sorted(self._enrollments.items())
                if snap.student_id == student_id
            ]
