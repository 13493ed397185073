from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import core.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="LLMConfiguration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(default="Default", max_length=100)),
                ("is_active", models.BooleanField(default=True)),
                ("openrouter_api_key", models.CharField(blank=True, max_length=255)),
                ("openrouter_model", models.CharField(default="google/gemini-2.5-flash-lite", max_length=255)),
                (
                    "openrouter_backup_models",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Backup models, one per line or comma separated.",
                    ),
                ),
                ("openrouter_timeout", models.PositiveIntegerField(default=45)),
                ("openrouter_max_retries", models.PositiveIntegerField(default=1)),
                ("openrouter_temperature", models.FloatField(default=0.2)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="Course",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("course_name", models.CharField(max_length=255)),
                ("course_code", models.CharField(max_length=32)),
                ("credit", models.FloatField(default=core.models.default_course_credit)),
                ("total_weeks", models.PositiveIntegerField(default=core.models.default_course_weeks)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "teacher",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="taught_courses",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["course_code"],
            },
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("enrolled_at", models.DateTimeField(auto_now_add=True)),
                ("final_grade", models.CharField(blank=True, max_length=1, null=True)),
                ("total_marks", models.FloatField(blank=True, null=True)),
                ("behavior_tag", models.CharField(blank=True, default="", max_length=32)),
                (
                    "grading_mode",
                    models.CharField(
                        blank=True,
                        choices=[("complete", "Complete"), ("predicted", "Predicted")],
                        default="",
                        max_length=16,
                    ),
                ),
                ("graded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="enrollments",
                        to="core.course",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="enrollments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["course_id", "student_id"],
            },
        ),
        migrations.CreateModel(
            name="WeeklyRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("week", models.PositiveIntegerField()),
                ("lab_marks", models.FloatField(default=0)),
                ("quiz_score", models.FloatField(default=0)),
                ("viva_score", models.FloatField(default=0)),
                (
                    "attendance",
                    models.CharField(
                        blank=True,
                        choices=[("present", "Present"), ("absent", "Absent")],
                        max_length=8,
                        null=True,
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "enrollment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="weekly_records",
                        to="core.enrollment",
                    ),
                ),
            ],
            options={
                "ordering": ["enrollment_id", "week"],
            },
        ),
        migrations.AddConstraint(
            model_name="enrollment",
            constraint=models.UniqueConstraint(fields=("student", "course"), name="uniq_enrollment_student_course"),
        ),
        migrations.AddConstraint(
            model_name="weeklyrecord",
            constraint=models.UniqueConstraint(fields=("enrollment", "week"), name="uniq_weekly_record_week"),
        ),
    ]
