from django.test import SimpleTestCase

from core.academic.grade_calculator import aggregate_weekly_records
from core.academic.policy import (
    BEHAVIOR_TAGS,
    HeuristicPredictivePolicy,
    build_prediction_request,
    first_week_is_strong,
    parse_final_grade,
)
from core.academic.records import CourseRubric, WeeklyRecord


def request_for(labs, attendance="present", rubric=None):
    rubric = rubric or CourseRubric(credit=1.5)
    records = [WeeklyRecord(week=i, lab_marks=lab, attendance=attendance) for i, lab in enumerate(labs, start=1)]
    breakdown = aggregate_weekly_records(records, rubric)
    return build_prediction_request(breakdown, records, rubric)


class BuildPredictionRequestTests(SimpleTestCase):
    def test_request_shape(self):
        rubric = CourseRubric(credit=0.75)
        records = [
            WeeklyRecord(week=2, lab_marks=5, attendance="absent"),
            WeeklyRecord(week=1, lab_marks=6, attendance="present"),
        ]
        breakdown = aggregate_weekly_records(records, rubric)
        req = build_prediction_request(breakdown, records, rubric)

        self.assertEqual(req["totalPercentage"], breakdown.total_percentage)
        self.assertEqual(req["weightedScores"]["lab"], f"{breakdown.weighted_lab:.2f}")
        self.assertEqual(req["weightedScores"]["attendance"], "5.00")
        self.assertEqual(req["actualScores"]["totalLabMarks"], 11.0)
        self.assertEqual(req["actualScores"]["attendancePercentage"], "50.00")
        self.assertEqual(req["maxScores"], {"lab": 75.0, "quiz": 15.0, "viva": 15.0})
        self.assertEqual([w["week"] for w in req["weeklyLabMarks"]], [1, 2])
        self.assertEqual(req["expectedWeeks"], 12)
        self.assertEqual(req["recordedWeeks"], 2)


class HeuristicPolicyTests(SimpleTestCase):
    def setUp(self):
        self.policy = HeuristicPredictivePolicy()

    def predict(self, labs, **kwargs):
        return parse_final_grade(self.policy.predict(request_for(labs, **kwargs))["finalGrade"])

    def test_strong_start_then_decline_is_never_f(self):
        letter, tag = self.predict([12, 0, 0, 0])
        self.assertEqual(letter, "D")
        self.assertEqual(tag, "At Risk")

    def test_weak_start_can_be_f(self):
        letter, _tag = self.predict([1, 0, 0, 0], attendance="absent")
        self.assertEqual(letter, "F")

    def test_missing_weeks_are_not_zeros(self):
        # 4 strong weeks of 12: the observed total is low, the projection is not.
        req = request_for([11, 11, 11, 11])
        self.assertLess(req["totalPercentage"], 40)
        letter, tag = parse_final_grade(self.policy.predict(req)["finalGrade"])
        self.assertEqual(letter, "A")
        self.assertEqual(tag, "High Achiever")

    def test_steady_b_with_attendance_is_consistent(self):
        letter, tag = self.predict([8, 8, 8, 8, 8, 8])
        self.assertEqual(letter, "B")
        self.assertEqual(tag, "Consistent Performer")

    def test_rising_marks_are_improving(self):
        letter, tag = self.predict([2.5, 2.5, 10, 10])
        self.assertEqual(letter, "B")
        self.assertEqual(tag, "Improving")

    def test_course_credit_comes_from_lab_maximum(self):
        # 7 marks caps a 0.75 credit week (6.25) but is only 56% of a 1.5 credit week.
        small = parse_final_grade(self.policy.predict(request_for([7] * 4, rubric=CourseRubric(credit=0.75)))["finalGrade"])
        large = parse_final_grade(self.policy.predict(request_for([7] * 4, rubric=CourseRubric(credit=1.5)))["finalGrade"])
        self.assertEqual(small, ("A", "High Achiever"))
        self.assertEqual(large[0], "B")

    def test_output_always_matches_contract(self):
        for labs in ([0], [12.5] * 11, [3, 9, 1, 12], [6, 6, 6]):
            with self.subTest(labs=labs):
                letter, tag = self.predict(labs)
                self.assertIn(tag, BEHAVIOR_TAGS)
                self.assertIn(letter, "ABCDF")

    def test_first_week_is_strong(self):
        rubric = CourseRubric(credit=1.5)
        self.assertTrue(first_week_is_strong([WeeklyRecord(week=3, lab_marks=0), WeeklyRecord(week=1, lab_marks=9)], rubric))
        self.assertFalse(first_week_is_strong([WeeklyRecord(week=1, lab_marks=8)], rubric))
        self.assertFalse(first_week_is_strong([], rubric))
