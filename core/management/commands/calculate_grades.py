from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from core.models import Course, Enrollment
from core.services.grading import service
from core.services.grading.settings import POLICY_HEURISTIC, POLICY_LLM
from core.services.grading.store import DjangoRecordStore
from core.services.shared.errors import GradingError


class Command(BaseCommand):
    help = "Calculate final grades. Example: python manage.py calculate_grades --course 3 --policy heuristic"

    def add_arguments(self, parser):
        parser.add_argument(
            "--course",
            type=int,
            default=None,
            help="Course ID; every enrollment of the course is graded",
        )
        parser.add_argument(
            "--enrollment",
            type=int,
            default=None,
            help="Single enrollment ID to grade",
        )
        parser.add_argument(
            "--policy",
            choices=[POLICY_LLM, POLICY_HEURISTIC],
            default=None,
            help="(Optional) predictive policy for enrollments with missing weeks",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="(Optional) only list the enrollments that would be graded",
        )

    def handle(self, *args, **options):
        course_id = options.get("course")
        enrollment_id = options.get("enrollment")
        dry_run = bool(options.get("dry_run"))

        if (course_id is None) == (enrollment_id is None):
            raise CommandError("Pick exactly one of --course or --enrollment")

        if course_id is not None:
            if not Course.objects.filter(id=course_id).exists():
                raise CommandError(f"Course id={course_id} not found.")
            ids = list(Enrollment.objects.filter(course_id=course_id).order_by("id").values_list("id", flat=True))
        else:
            if not Enrollment.objects.filter(id=enrollment_id).exists():
                raise CommandError(f"Enrollment id={enrollment_id} not found.")
            ids = [enrollment_id]

        if not ids:
            self.stdout.write(self.style.WARNING("No enrollments to grade."))
            return

        self.stdout.write(self.style.SUCCESS(f"Grading start: enrollments={len(ids)} dry_run={dry_run}"))
        if dry_run:
            for idx, eid in enumerate(ids, start=1):
                self.stdout.write(f"[{idx}/{len(ids)}] enrollment_id={eid}")
            self.stdout.write(self.style.WARNING("Dry run finished (nothing written)."))
            return

        store = DjangoRecordStore()
        policy = service.build_predictive_policy(options.get("policy"))
        if course_id is not None:
            outcomes = service.recalculate_course_grades(
                store=store,
                policy=policy,
                course_id=course_id,
                request_id="cli",
            )
        else:
            try:
                res = service.calculate_and_save_final_grade(
                    store=store,
                    policy=policy,
                    enrollment_id=enrollment_id,
                    request_id="cli",
                )
                outcomes = [
                    {
                        "enrollment_id": res.enrollment_id,
                        "ok": True,
                        "letter_grade": res.letter_grade,
                        "total_percentage": res.total_percentage,
                        "mode": res.mode,
                    }
                ]
            except GradingError as e:
                outcomes = [{"enrollment_id": enrollment_id, "ok": False, "error": type(e).__name__, "detail": str(e)}]

        ok_count = 0
        for idx, out in enumerate(outcomes, start=1):
            prefix = f"[{idx}/{len(outcomes)}] enrollment_id={out['enrollment_id']}"
            if out["ok"]:
                ok_count += 1
                self.stdout.write(
                    self.style.SUCCESS(
                        f"{prefix} grade={out['letter_grade']} total={out['total_percentage']:.2f} mode={out['mode']}"
                    )
                )
            else:
                self.stdout.write(self.style.ERROR(f"{prefix} FAIL {out['error']}: {out['detail']}"))

        self.stdout.write("")
        self.stdout.write(
            self.style.SUCCESS(f"Done. OK={ok_count} FAIL={len(outcomes) - ok_count} (total={len(outcomes)})")
        )
