"""
Tests for marklens/advice.py — tier selection, block ordering, per-student bundles.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from marklens.advice import build_student_advice, generate_advice
from marklens.config import Thresholds


def _categories(advice):
    return [block["category"] for block in advice]


class TestGenerateAdvice:
    """Tests for the generate_advice function."""

    def test_excellent_tier(self):
        advice = generate_advice(85, [], [])
        assert advice[0]["category"] == "excellent"
        assert advice[0]["title"] == "Excellent Performance"

    def test_good_progress_tier(self):
        assert generate_advice(72, [], [])[0]["category"] == "good_progress"

    def test_needs_focus_tier(self):
        assert generate_advice(41, [], [])[0]["category"] == "needs_focus"

    def test_tier_boundaries_are_inclusive(self):
        assert generate_advice(80, [], [])[0]["category"] == "excellent"
        assert generate_advice(79.99, [], [])[0]["category"] == "good_progress"
        assert generate_advice(60, [], [])[0]["category"] == "good_progress"
        assert generate_advice(59.99, [], [])[0]["category"] == "needs_focus"

    def test_block_order(self):
        advice = generate_advice(65, ["Science"], ["Math"])
        assert _categories(advice) == ["good_progress", "weak_subject", "strong_subject", "universal"]

    def test_only_first_weak_and_strong_subject(self):
        advice = generate_advice(65, ["Science", "English"], ["Math", "Art"])
        assert advice[1]["title"] == "Improve Science"
        assert advice[1]["subject"] == "Science"
        assert advice[2]["title"] == "Build on Math"
        assert len(advice) == 4

    def test_no_subject_blocks(self):
        advice = generate_advice(70, [], [])
        assert _categories(advice) == ["good_progress", "universal"]

    def test_universal_block_always_last(self):
        for avg in (20, 65, 95):
            advice = generate_advice(avg, ["X"], [])
            assert advice[-1]["title"] == "Universal Study Tips"
            assert len(advice[-1]["tips"]) == 5

    def test_custom_thresholds(self):
        thresholds = Thresholds(excellent=90, good_progress=70)
        assert generate_advice(85, [], [], thresholds)[0]["category"] == "good_progress"
        assert generate_advice(65, [], [], thresholds)[0]["category"] == "needs_focus"

    def test_same_input_same_output(self):
        first = generate_advice(65, ["Science"], ["Math"])
        second = generate_advice(65, ["Science"], ["Math"])
        assert first == second

    def test_returns_fresh_lists(self):
        first = generate_advice(65, [], [])
        first[0]["tips"].append("mutated")
        first[-1]["tips"].clear()
        second = generate_advice(65, [], [])
        assert "mutated" not in second[0]["tips"]
        assert len(second[-1]["tips"]) == 5


class TestBuildStudentAdvice:
    """Tests for the per-student advice bundle."""

    RECORDS = [
        {"id": "1", "student_id": "S1", "student_name": "Alice",
         "subject_name": "Math", "mark": 90, "assessment_date": None},
        {"id": "2", "student_id": "S1", "student_name": "Alice",
         "subject_name": "Science", "mark": 40, "assessment_date": None},
        {"id": "3", "student_id": "S2", "student_name": "Bob",
         "subject_name": "Math", "mark": 55, "assessment_date": None},
    ]

    def test_uses_own_subject_averages(self):
        bundle = build_student_advice(self.RECORDS, "S1")
        assert bundle["student_name"] == "Alice"
        assert bundle["overall_average"] == 65
        assert bundle["weak_subjects"] == ["Science"]
        assert bundle["strong_subjects"] == ["Math"]
        assert _categories(bundle["advice"]) == [
            "good_progress", "weak_subject", "strong_subject", "universal",
        ]
        assert bundle["advice"][1]["subject"] == "Science"
        assert bundle["advice"][2]["subject"] == "Math"

    def test_single_subject_student(self):
        bundle = build_student_advice(self.RECORDS, "S2")
        assert bundle["weak_subjects"] == ["Math"]
        assert _categories(bundle["advice"]) == ["needs_focus", "weak_subject", "universal"]

    def test_unknown_student(self):
        assert build_student_advice(self.RECORDS, "S404") is None

    def test_student_without_marks(self):
        records = [{"id": "1", "student_id": "S1", "student_name": "A",
                    "subject_name": "Math", "mark": None, "assessment_date": None}]
        bundle = build_student_advice(records, "S1")
        assert bundle["status"] == "no_data"
        assert bundle["advice"] == []
