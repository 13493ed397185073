import logging

from django import forms
from django.contrib import admin
from django.contrib import messages

from .ai_engine.llm import split_model_list
from .models import Course, Enrollment, LLMConfiguration, WeeklyRecord
from .services.grading import service
from .services.grading.store import DjangoRecordStore
from .services.shared.errors import GradingError

audit_logger = logging.getLogger("audit")

admin.site.site_header = "Lab Grade Administration"
admin.site.site_title = "Lab Grade Admin"
admin.site.index_title = "Courses, enrollments and grading"


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("course_code", "course_name", "teacher", "credit", "total_weeks", "created_at")
    list_filter = ("credit",)
    search_fields = ("course_code", "course_name", "teacher__username")
    readonly_fields = ("created_at",)


class WeeklyRecordInline(admin.TabularInline):
    model = WeeklyRecord
    extra = 0
    fields = ("week", "lab_marks", "quiz_score", "viva_score", "attendance", "updated_at")
    readonly_fields = ("updated_at",)
    ordering = ("week",)


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "course", "final_grade", "total_marks", "behavior_tag", "grading_mode", "graded_at")
    list_filter = ("final_grade", "grading_mode", "course")
    search_fields = ("student__username", "student__email", "course__course_code")
    # Grades are written only by the calculate action.
    readonly_fields = ("final_grade", "total_marks", "behavior_tag", "grading_mode", "graded_at", "enrolled_at")
    inlines = [WeeklyRecordInline]
    actions = ["calculate_grades"]

    @admin.action(description="Calculate final grade for selected enrollments")
    def calculate_grades(self, request, queryset):
        store = DjangoRecordStore()
        policy = service.build_predictive_policy()
        ok = 0
        failed = []
        for enrollment in queryset:
            try:
                service.calculate_and_save_final_grade(
                    store=store,
                    policy=policy,
                    enrollment_id=enrollment.id,
                    actor=request.user,
                    request_id=getattr(request, "request_id", "-"),
                )
                ok += 1
            except GradingError as exc:
                failed.append(f"#{enrollment.id}: {type(exc).__name__}")
        if ok:
            self.message_user(request, f"Calculated {ok} grade(s).", level=messages.SUCCESS)
        if failed:
            self.message_user(request, "Failed: " + ", ".join(failed), level=messages.WARNING)


class LLMConfigurationAdminForm(forms.ModelForm):
    openrouter_api_key = forms.CharField(
        required=False,
        label="OpenRouter API Key",
        widget=forms.PasswordInput(render_value=True),
        help_text="Leave empty to fall back to OPENROUTER_API_KEY from the environment.",
    )
    openrouter_backup_models = forms.CharField(
        required=False,
        label="OpenRouter Backup Models",
        widget=forms.Textarea(attrs={"rows": 6, "style": "font-family: monospace;"}),
        help_text="One model per line (or comma separated). Tried after the primary model.",
    )

    class Meta:
        model = LLMConfiguration
        fields = (
            "name",
            "is_active",
            "openrouter_api_key",
            "openrouter_model",
            "openrouter_backup_models",
            "openrouter_timeout",
            "openrouter_max_retries",
            "openrouter_temperature",
        )


@admin.register(LLMConfiguration)
class LLMConfigurationAdmin(admin.ModelAdmin):
    form = LLMConfigurationAdminForm
    list_display = (
        "id",
        "name",
        "is_active",
        "masked_api_key",
        "openrouter_model",
        "backup_count",
        "openrouter_timeout",
        "updated_at",
    )
    list_filter = ("is_active",)
    search_fields = ("name", "openrouter_model")
    readonly_fields = ("updated_at",)

    def masked_api_key(self, obj):
        raw = (obj.openrouter_api_key or "").strip()
        if not raw:
            return "(fallback .env)"
        if len(raw) <= 8:
            return "********"
        return f"{raw[:4]}...{raw[-4:]}"
    masked_api_key.short_description = "API Key"

    def backup_count(self, obj):
        return len(split_model_list(obj.openrouter_backup_models))
    backup_count.short_description = "Backups"

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        audit_logger.info(
            f"action=llm_config_save status=success config_id={obj.id} model={obj.openrouter_model}",
            extra={"request_id": getattr(request, "request_id", "-"), "user": request.user.username},
        )
