from django.db import models
from django.contrib.auth.models import User

from core.services.grading.settings import get_grading_settings


def default_course_credit():
    return get_grading_settings().default_credit


def default_course_weeks():
    return get_grading_settings().total_weeks


class Course(models.Model):
    course_name = models.CharField(max_length=255)
    course_code = models.CharField(max_length=32)
    teacher = models.ForeignKey(User, on_delete=models.CASCADE, related_name="taught_courses")
    # Lab raw maximum is credit * 100.
    credit = models.FloatField(default=default_course_credit)
    total_weeks = models.PositiveIntegerField(default=default_course_weeks)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["course_code"]

    def __str__(self):
        return f"{self.course_code} - {self.course_name}"


class Enrollment(models.Model):
    MODE_COMPLETE = "complete"
    MODE_PREDICTED = "predicted"
    MODE_CHOICES = [
        (MODE_COMPLETE, "Complete"),
        (MODE_PREDICTED, "Predicted"),
    ]

    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="enrollments")
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="enrollments")
    enrolled_at = models.DateTimeField(auto_now_add=True)

    final_grade = models.CharField(max_length=1, blank=True, null=True)
    total_marks = models.FloatField(blank=True, null=True)
    behavior_tag = models.CharField(max_length=32, blank=True, default="")
    grading_mode = models.CharField(max_length=16, choices=MODE_CHOICES, blank=True, default="")
    graded_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["course_id", "student_id"]
        constraints = [
            models.UniqueConstraint(fields=["student", "course"], name="uniq_enrollment_student_course"),
        ]

    def __str__(self):
        grade = self.final_grade or "-"
        return f"{self.student.username} @ {self.course.course_code} ({grade})"


class WeeklyRecord(models.Model):
    ATTENDANCE_PRESENT = "present"
    ATTENDANCE_ABSENT = "absent"
    ATTENDANCE_CHOICES = [
        (ATTENDANCE_PRESENT, "Present"),
        (ATTENDANCE_ABSENT, "Absent"),
    ]

    enrollment = models.ForeignKey(Enrollment, on_delete=models.CASCADE, related_name="weekly_records")
    week = models.PositiveIntegerField()
    lab_marks = models.FloatField(default=0)
    quiz_score = models.FloatField(default=0)
    viva_score = models.FloatField(default=0)
    # NULL means attendance was left unmarked for the week.
    attendance = models.CharField(max_length=8, choices=ATTENDANCE_CHOICES, blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["enrollment_id", "week"]
        constraints = [
            models.UniqueConstraint(fields=["enrollment", "week"], name="uniq_weekly_record_week"),
        ]

    def __str__(self):
        return f"enrollment={self.enrollment_id} week={self.week}"


class LLMConfiguration(models.Model):
    """
    DB-backed runtime config for the grade prediction model.
    Editable from Django Admin; the newest active row wins over env values.
    """

    name = models.CharField(max_length=100, default="Default")
    is_active = models.BooleanField(default=True)
    openrouter_api_key = models.CharField(max_length=255, blank=True)
    openrouter_model = models.CharField(
        max_length=255,
        default="google/gemini-2.5-flash-lite",
    )
    openrouter_backup_models = models.TextField(
        blank=True,
        default="",
        help_text="Backup models, one per line or comma separated.",
    )
    openrouter_timeout = models.PositiveIntegerField(default=45)
    openrouter_max_retries = models.PositiveIntegerField(default=1)
    openrouter_temperature = models.FloatField(default=0.2)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        status = "active" if self.is_active else "inactive"
        return f"{self.name} ({status})"
