from unittest.mock import Mock

from django.contrib.auth.models import User
from django.test import SimpleTestCase, TestCase

from core.models import Course, Enrollment, WeeklyRecord as WeeklyRecordModel
from core.services.grading import service
from core.services.grading.settings import GradingSettings
from core.services.grading.store import DjangoRecordStore, InMemoryRecordStore
from core.services.shared.dto import EnrollmentSnapshot
from core.services.shared.errors import (
    NoDataError,
    NotFoundError,
    PermissionDeniedError,
    PredictionUnavailableError,
    ValidationError,
)

SETTINGS = GradingSettings(audit_enabled=False)


def fill_full_term(enrollment):
    """Twelve weeks at 7.5 lab marks, 8 present, 2 absent, 2 unmarked; quiz 15 and viva 10 in week 12."""
    for week in range(1, 13):
        if week <= 8:
            attendance = "present"
        elif week <= 10:
            attendance = "absent"
        else:
            attendance = None
        WeeklyRecordModel.objects.create(
            enrollment=enrollment,
            week=week,
            lab_marks=7.5,
            quiz_score=15 if week == 12 else 0,
            viva_score=10 if week == 12 else 0,
            attendance=attendance,
        )


class GradingServiceTests(TestCase):
    def setUp(self):
        self.teacher = User.objects.create_user(username="teacher", password="pass")
        self.other_teacher = User.objects.create_user(username="other", password="pass")
        self.student = User.objects.create_user(username="student", password="pass")
        self.course = Course.objects.create(
            course_name="Data Structures Lab",
            course_code="CSE-2102",
            teacher=self.teacher,
            credit=1.5,
            total_weeks=12,
        )
        self.enrollment = Enrollment.objects.create(student=self.student, course=self.course)
        self.store = DjangoRecordStore()

    def calculate(self, policy=None, actor=None, enrollment=None):
        return service.calculate_and_save_final_grade(
            store=self.store,
            policy=policy,
            enrollment_id=(enrollment or self.enrollment).id,
            actor=actor or self.teacher,
            settings=SETTINGS,
        )

    def test_course_defaults_follow_settings(self):
        course = Course.objects.create(course_name="Networks Lab", course_code="CSE-3112", teacher=self.teacher)
        self.assertEqual(course.credit, 1.5)
        self.assertEqual(course.total_weeks, 12)

    def test_save_week_upserts(self):
        service.save_weekly_performance(
            store=self.store,
            enrollment_id=self.enrollment.id,
            week=3,
            lab_marks=5,
            attendance="present",
            actor=self.teacher,
        )
        record = service.save_weekly_performance(
            store=self.store,
            enrollment_id=self.enrollment.id,
            week="3",
            lab_marks="7.25",
            attendance="unmarked",
            actor=self.teacher,
        )
        self.assertEqual(record.lab_marks, 7.25)
        rows = WeeklyRecordModel.objects.filter(enrollment=self.enrollment)
        self.assertEqual(rows.count(), 1)
        self.assertIsNone(rows.get().attendance)

    def test_save_week_rejects_bad_input(self):
        bad_inputs = (
            {"week": 0},
            {"week": 13},
            {"week": "abc"},
            {"week": 2.5},
            {"week": 1, "lab_marks": -1},
            {"week": 1, "quiz_score": "ten"},
            {"week": 1, "attendance": "late"},
        )
        for kwargs in bad_inputs:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValidationError):
                    service.save_weekly_performance(
                        store=self.store,
                        enrollment_id=self.enrollment.id,
                        actor=self.teacher,
                        **kwargs,
                    )
        self.assertFalse(WeeklyRecordModel.objects.exists())

    def test_only_course_instructor_can_write(self):
        for actor in (self.other_teacher, self.student):
            with self.subTest(actor=actor.username):
                with self.assertRaises(PermissionDeniedError):
                    service.save_weekly_performance(
                        store=self.store, enrollment_id=self.enrollment.id, week=1, actor=actor
                    )
                with self.assertRaises(PermissionDeniedError):
                    self.calculate(actor=actor)

    def test_staff_can_write(self):
        admin = User.objects.create_user(username="admin", password="pass", is_staff=True)
        service.save_weekly_performance(
            store=self.store, enrollment_id=self.enrollment.id, week=1, lab_marks=4, actor=admin
        )
        self.assertEqual(WeeklyRecordModel.objects.get(enrollment=self.enrollment).lab_marks, 4)

    def test_missing_enrollment(self):
        with self.assertRaises(NotFoundError):
            self.store.get_enrollment(999999)

    def test_complete_term_grade_is_stored(self):
        fill_full_term(self.enrollment)
        policy = Mock()
        result = self.calculate(policy=policy)

        policy.predict.assert_not_called()
        self.assertEqual(result.letter_grade, "B")
        self.assertEqual(result.total_percentage, 69.0)
        self.assertEqual(result.mode, "complete")
        self.assertAlmostEqual(result.breakdown["weighted_attendance"], 8.0, places=6)

        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.final_grade, "B")
        self.assertEqual(self.enrollment.total_marks, 69.0)
        self.assertEqual(self.enrollment.grading_mode, Enrollment.MODE_COMPLETE)
        self.assertIsNotNone(self.enrollment.graded_at)

    def test_recalculation_is_idempotent(self):
        fill_full_term(self.enrollment)
        first = self.calculate()
        second = self.calculate()
        self.assertEqual(first, second)

    def test_no_data_leaves_grade_unset(self):
        with self.assertRaises(NoDataError):
            self.calculate()
        self.enrollment.refresh_from_db()
        self.assertIsNone(self.enrollment.final_grade)
        self.assertIsNone(self.enrollment.total_marks)

    def test_prediction_failure_keeps_previous_grade(self):
        Enrollment.objects.filter(pk=self.enrollment.pk).update(final_grade="C", total_marks=50.0)
        for week in (1, 2, 3):
            WeeklyRecordModel.objects.create(enrollment=self.enrollment, week=week, lab_marks=9, attendance="present")
        policy = Mock()
        policy.predict.side_effect = RuntimeError("provider down")

        with self.assertRaises(PredictionUnavailableError):
            self.calculate(policy=policy)

        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.final_grade, "C")
        self.assertEqual(self.enrollment.total_marks, 50.0)

    def test_partial_term_uses_policy(self):
        for week in (1, 2, 3):
            WeeklyRecordModel.objects.create(enrollment=self.enrollment, week=week, lab_marks=9, attendance="present")
        policy = Mock()
        policy.predict.return_value = {"finalGrade": "A:Consistent Performer"}

        result = self.calculate(policy=policy)

        self.assertEqual(result.mode, "predicted")
        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.final_grade, "A")
        self.assertEqual(self.enrollment.behavior_tag, "Consistent Performer")
        self.assertEqual(self.enrollment.grading_mode, Enrollment.MODE_PREDICTED)
        # The stored total is the observed percentage, not a projection.
        self.assertEqual(self.enrollment.total_marks, result.breakdown["total_percentage"])

    def test_partial_term_with_heuristic_policy(self):
        for week in (1, 2, 3, 4):
            WeeklyRecordModel.objects.create(enrollment=self.enrollment, week=week, lab_marks=11, attendance="present")
        policy = service.build_predictive_policy("heuristic", settings=SETTINGS)
        result = self.calculate(policy=policy)
        self.assertEqual((result.letter_grade, result.behavior_tag), ("A", "High Achiever"))

    def test_recalculate_course_reports_each_enrollment(self):
        fill_full_term(self.enrollment)
        second_student = User.objects.create_user(username="student2", password="pass")
        empty = Enrollment.objects.create(student=second_student, course=self.course)

        outcomes = service.recalculate_course_grades(
            store=self.store,
            policy=None,
            course_id=self.course.id,
            actor=self.teacher,
            settings=SETTINGS,
        )

        self.assertEqual([o["enrollment_id"] for o in outcomes], [self.enrollment.id, empty.id])
        self.assertTrue(outcomes[0]["ok"])
        self.assertEqual(outcomes[0]["letter_grade"], "B")
        self.assertFalse(outcomes[1]["ok"])
        self.assertEqual(outcomes[1]["error"], "NoDataError")

    def test_save_week_for_course_is_all_or_nothing(self):
        second_student = User.objects.create_user(username="student2", password="pass")
        second = Enrollment.objects.create(student=second_student, course=self.course)

        with self.assertRaises(ValidationError):
            service.save_week_for_course(
                store=self.store,
                course_id=self.course.id,
                week=2,
                entries={
                    self.enrollment.id: {"lab_marks": 8, "attendance": "present"},
                    second.id: {"lab_marks": -3},
                },
                actor=self.teacher,
            )
        self.assertFalse(WeeklyRecordModel.objects.exists())

        out = service.save_week_for_course(
            store=self.store,
            course_id=self.course.id,
            week=2,
            entries={
                self.enrollment.id: {"lab_marks": 8, "attendance": "present"},
                second.id: {"lab_marks": 6, "attendance": "absent"},
            },
            actor=self.teacher,
        )
        self.assertEqual(out["saved"], [self.enrollment.id, second.id])
        self.assertEqual(WeeklyRecordModel.objects.filter(week=2).count(), 2)

    def test_save_week_for_course_rejects_non_object_entries(self):
        second_student = User.objects.create_user(username="student2", password="pass")
        second = Enrollment.objects.create(student=second_student, course=self.course)
        with self.assertRaises(ValidationError):
            service.save_week_for_course(
                store=self.store,
                course_id=self.course.id,
                week=1,
                entries={self.enrollment.id: {"lab_marks": 8}, second.id: [5]},
                actor=self.teacher,
            )
        self.assertFalse(WeeklyRecordModel.objects.exists())

    def test_save_week_for_course_rejects_foreign_enrollment(self):
        other_course = Course.objects.create(
            course_name="Physics Lab", course_code="PHY-1102", teacher=self.teacher, credit=0.75
        )
        foreign = Enrollment.objects.create(student=self.student, course=other_course)
        with self.assertRaises(ValidationError):
            service.save_week_for_course(
                store=self.store,
                course_id=self.course.id,
                week=1,
                entries={foreign.id: {"lab_marks": 5}},
                actor=self.teacher,
            )

    def test_report(self):
        WeeklyRecordModel.objects.create(enrollment=self.enrollment, week=3, lab_marks=6, attendance="absent")
        WeeklyRecordModel.objects.create(enrollment=self.enrollment, week=1, lab_marks=5, attendance="present")

        report = service.get_enrollment_report(store=self.store, enrollment_id=self.enrollment.id, actor=self.student)

        self.assertEqual([w["week"] for w in report["weeks"]], [1, 3])
        self.assertEqual(report["missing_weeks"], [2] + list(range(4, 13)))
        self.assertEqual(report["attendance"], {"present": 1, "absent": 1, "percentage": 50.0})
        self.assertIsNone(report["grade"])

        with self.assertRaises(PermissionDeniedError):
            service.get_enrollment_report(
                store=self.store, enrollment_id=self.enrollment.id, actor=self.other_teacher
            )


class InMemoryStoreTests(SimpleTestCase):
    def setUp(self):
        self.store = InMemoryRecordStore()
        self.store.add_enrollment(
            EnrollmentSnapshot(id=1, course_id=10, student_id=100, teacher_id=7, credit=0.75, total_weeks=4)
        )

    def test_grade_and_report_round(self):
        for week in range(1, 5):
            service.save_weekly_performance(
                store=self.store,
                enrollment_id=1,
                week=week,
                lab_marks=18.75,
                quiz_score=15 if week == 4 else 0,
                viva_score=15 if week == 4 else 0,
                attendance="present",
            )

        result = service.calculate_and_save_final_grade(
            store=self.store, policy=None, enrollment_id=1, settings=SETTINGS
        )

        self.assertEqual((result.letter_grade, result.total_percentage, result.mode), ("A", 100.0, "complete"))
        report = service.get_enrollment_report(store=self.store, enrollment_id=1)
        self.assertEqual(report["grade"]["letter_grade"], "A")
        self.assertEqual(report["missing_weeks"], [])

    def test_unknown_enrollment(self):
        with self.assertRaises(NotFoundError):
            service.save_weekly_performance(store=self.store, enrollment_id=2, week=1)


class StudentProgressSummaryTests(SimpleTestCase):
    def snapshot(self, eid, grade, total):
        return EnrollmentSnapshot(
            id=eid, course_id=eid, student_id=1, teacher_id=2, credit=1.5, total_weeks=12,
            final_grade=grade, total_marks=total,
        )

    def test_summary(self):
        out = service.summarize_student_progress(
            [self.snapshot(1, "B", 69.0), self.snapshot(2, "A", 80.0), self.snapshot(3, None, None)]
        )
        self.assertEqual(out["total_courses"], 3)
        self.assertEqual(out["high_grades"], 2)
        self.assertEqual(out["average_score"], 75)
        self.assertEqual([c["final_grade"] for c in out["courses"]], ["B", "A", None])

    def test_empty_summary(self):
        out = service.summarize_student_progress([])
        self.assertEqual((out["total_courses"], out["high_grades"], out["average_score"]), (0, 0, 0))
