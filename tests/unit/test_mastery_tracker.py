"""
Unit tests for curriculum/services/mastery_tracker.py

Covers concept extraction, the mastery formula and its bounds, and the
record queries used by the progress service.
"""

import random
from datetime import datetime

import pytest

from curriculum.models import DEFAULT_MASTERY, ConceptRecord
from curriculum.services.mastery_tracker import ConceptMasteryTracker
from tutor.models.messages import ParsedProblem


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def tracker():
    return ConceptMasteryTracker()


def _record(concept_id, mastery, category="algebra"):
    return ConceptRecord(concept_id=concept_id, name=concept_id, category=category, mastery_level=mastery)


# ===========================================================================
# extract_concepts
# ===========================================================================

class TestExtractConcepts:
    def test_linear_equation(self, tracker):
        problem = ParsedProblem(text="Solve 2x + 5 = 13", type="algebra")
        assert tracker.extract_concepts(problem) == ["linear_equations"]

    def test_multiple_in_catalog_order(self, tracker):
        problem = ParsedProblem(text="What is 3/4 as a decimal and as a percent?", type="arithmetic")
        assert tracker.extract_concepts(problem) == ["fractions", "decimals", "percentages"]

    def test_broad_type_not_added(self, tracker):
        problem = ParsedProblem(text="Tell me a story", type="algebra")
        assert tracker.extract_concepts(problem) == []

    def test_no_duplicates(self, tracker):
        problem = ParsedProblem(text="fraction fraction 1/2 numerator", type="arithmetic")
        assert tracker.extract_concepts(problem).count("fractions") == 1

    def test_deterministic(self, tracker):
        problem = ParsedProblem(text="Find the area of a circle with radius 3", type="geometry")
        assert tracker.extract_concepts(problem) == tracker.extract_concepts(problem)


# ===========================================================================
# update_mastery
# ===========================================================================

class TestUpdateMastery:
    def test_first_solve_raises_mastery(self, tracker):
        record = tracker.update_mastery("linear_equations", was_solved=True, hints_used=0, time_spent_minutes=2)

        assert record.problems_attempted == 1
        assert record.problems_solved == 1
        assert record.mastery_level > DEFAULT_MASTERY
        assert record.name == "Linear Equations"
        assert record.category == "algebra"

    def test_exact_formula(self, tracker):
        record = tracker.update_mastery("fractions", was_solved=True, hints_used=1, time_spent_minutes=5)
        # 100*0.7 + (100-20)*0.2 + (100-10)*0.1
        assert record.mastery_level == 95

    def test_failure_without_timing(self, tracker):
        record = tracker.update_mastery("fractions", was_solved=False)
        # 0*0.7 + 100*0.2 + neutral 50*0.1
        assert record.mastery_level == 25
        assert record.problems_solved == 0

    def test_running_averages(self, tracker):
        first = tracker.update_mastery("fractions", True, hints_used=2, time_spent_minutes=4)
        second = tracker.update_mastery("fractions", True, hints_used=0, time_spent_minutes=0, prior=first)

        assert second.problems_attempted == 2
        assert second.average_hints == 1.0
        # zero minutes is "no timing data", not a fast solve
        assert second.average_time_minutes == 4.0

    def test_prior_not_mutated(self, tracker):
        prior = tracker.update_mastery("fractions", True)
        tracker.update_mastery("fractions", False, prior=prior)
        assert prior.problems_attempted == 1

    def test_last_practiced(self, tracker):
        now = datetime(2024, 3, 1, 9, 30)
        assert tracker.update_mastery("fractions", True, now=now).last_practiced == now

    def test_bounds_over_random_sequences(self, tracker):
        rng = random.Random(7)
        record = None
        for _ in range(200):
            record = tracker.update_mastery(
                "ratios",
                was_solved=rng.random() < 0.5,
                hints_used=rng.randint(0, 20),
                time_spent_minutes=rng.uniform(0, 120),
                prior=record,
            )
            assert 0 <= record.mastery_level <= 100

    def test_negative_inputs_clamped(self, tracker):
        record = tracker.update_mastery("ratios", True, hints_used=-3, time_spent_minutes=-1)
        assert record.average_hints == 0.0
        assert 0 <= record.mastery_level <= 100


# ===========================================================================
# Queries
# ===========================================================================

class TestQueries:
    def test_sort_by_mastery(self, tracker):
        records = [_record("b", 80), _record("a", 40), _record("c", 60)]
        assert [r.concept_id for r in tracker.sort_by_mastery(records)] == ["a", "c", "b"]

    def test_concepts_needing_practice(self, tracker):
        records = [_record("b", 80), _record("a", 40), _record("c", 69)]
        assert [r.concept_id for r in tracker.concepts_needing_practice(records)] == ["a", "c"]
        assert [r.concept_id for r in tracker.concepts_needing_practice(records, threshold=50)] == ["a"]

    def test_group_by_category(self, tracker):
        records = [_record("slope", 80), _record("fractions", 40, "arithmetic"), _record("roots", 30)]
        grouped = tracker.group_by_category(records)
        assert [r.concept_id for r in grouped["algebra"]] == ["roots", "slope"]
        assert [r.concept_id for r in grouped["arithmetic"]] == ["fractions"]

    def test_related_concepts(self, tracker):
        assert "factoring" in tracker.related_concepts("linear_equations")
        assert tracker.related_concepts("unknown") == []
