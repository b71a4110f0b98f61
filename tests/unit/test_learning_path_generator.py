"""
Unit tests for curriculum/services/learning_path_generator.py

Covers goal matching, prerequisite closure and ordering (including cycles
and unknown ids), mastery-aware step completion, and monotonic advance.
"""

from datetime import datetime, timedelta

import pytest

from curriculum.catalog import ConceptCatalog, ConceptDefinition
from curriculum.models import ConceptRecord
from curriculum.services.learning_path_generator import LearningPathGenerator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime(2024, 5, 1, 10, 0, 0)


@pytest.fixture
def generator():
    return LearningPathGenerator()


def _record(concept_id, mastery):
    return ConceptRecord(concept_id=concept_id, name=concept_id, mastery_level=mastery)


def _definition(concept_id, prerequisites=()):
    return ConceptDefinition(concept_id=concept_id, category="test", patterns=(), prerequisites=tuple(prerequisites))


def _assert_prerequisites_first(generator, steps):
    index = {step.concept_id: i for i, step in enumerate(steps)}
    for step in steps:
        for prerequisite in generator.catalog.prerequisites_of(step.concept_id):
            if prerequisite in index:
                assert index[prerequisite] < index[step.concept_id], (prerequisite, step.concept_id)


# ===========================================================================
# from_goal
# ===========================================================================

class TestFromGoal:
    def test_master_algebra(self, generator):
        path = generator.from_goal("master algebra", owner_id="u1", now=NOW)

        assert {"linear_equations", "factoring"} <= set(path.target_concepts)
        assert {"linear_equations", "factoring"} <= {s.concept_id for s in path.steps}
        assert path.progress == 0
        assert path.current_step_index == 0
        assert path.owner_id == "u1"
        assert path.created_at == NOW

    def test_prerequisites_included_and_ordered(self, generator):
        path = generator.from_goal("master algebra", now=NOW)
        concept_ids = [s.concept_id for s in path.steps]

        assert set(concept_ids) == {"linear_equations", "factoring", "fractions", "decimals", "exponents"}
        _assert_prerequisites_first(generator, path.steps)

    def test_step_numbers_and_descriptions(self, generator):
        path = generator.from_goal("master algebra", now=NOW)
        assert [s.step_number for s in path.steps] == list(range(1, len(path.steps) + 1))
        first = path.steps[0]
        assert first.description == f"Learn {first.concept_name}"

    def test_unmatched_goal_uses_default_set(self, generator):
        path = generator.from_goal("get better at math", now=NOW)
        assert path.target_concepts == ["fractions", "area_rectangle", "linear_equations"]

    def test_mastered_concepts_start_completed(self, generator):
        records = {"fractions": _record("fractions", 90)}
        path = generator.from_goal("master algebra", records, now=NOW)

        fractions = next(s for s in path.steps if s.concept_id == "fractions")
        assert fractions.completed is True
        assert fractions.completed_at == NOW
        assert path.progress == 20
        assert path.current_step_index == 1


# ===========================================================================
# Sequencing
# ===========================================================================

class TestSequencing:
    def test_every_catalog_concept_orders_prerequisites_first(self, generator):
        steps = generator.build_sequence(generator.catalog.concept_ids, now=NOW)
        assert len(steps) == len(generator.catalog)
        _assert_prerequisites_first(generator, steps)

    def test_unknown_ids_skipped(self, generator):
        steps = generator.build_sequence(["long_division", "fractions"], now=NOW)
        assert [s.concept_id for s in steps] == ["fractions"]

    def test_cycle_terminates(self):
        catalog = ConceptCatalog([_definition("a", ["b"]), _definition("b", ["a"])])
        generator = LearningPathGenerator(catalog)

        steps = generator.build_sequence(["a"], now=NOW)

        assert sorted(s.concept_id for s in steps) == ["a", "b"]

    def test_self_dependency(self):
        generator = LearningPathGenerator(ConceptCatalog([_definition("a", ["a"])]))
        assert [s.concept_id for s in generator.build_sequence(["a"], now=NOW)] == ["a"]

    def test_closure_deduplicates(self, generator):
        closure = generator.prerequisite_closure(["linear_equations", "linear_equations", "decimals"])
        assert closure.count("linear_equations") == 1
        assert closure.count("fractions") == 1


# ===========================================================================
# advance
# ===========================================================================

class TestAdvance:
    def test_advance_marks_step(self, generator):
        path = generator.from_goal("master algebra", now=NOW)
        later = NOW + timedelta(minutes=5)

        advanced = generator.advance(path, "fractions", now=later)

        step = next(s for s in advanced.steps if s.concept_id == "fractions")
        assert step.completed is True
        assert step.completed_at == later
        assert advanced.progress == 20
        assert advanced.updated_at == later

    def test_advance_is_idempotent(self, generator):
        path = generator.from_goal("master algebra", now=NOW)
        once = generator.advance(path, "fractions", now=NOW + timedelta(minutes=1))
        twice = generator.advance(once, "fractions", now=NOW + timedelta(minutes=2))

        assert twice.progress == once.progress
        assert twice.current_step_index == once.current_step_index
        assert twice.updated_at == once.updated_at

    def test_completion_never_undone(self, generator):
        path = generator.from_goal("master algebra", {"fractions": _record("fractions", 90)}, now=NOW)
        advanced = generator.advance(path, "decimals", records={"fractions": _record("fractions", 10)})

        fractions = next(s for s in advanced.steps if s.concept_id == "fractions")
        assert fractions.completed is True

    def test_records_complete_other_steps(self, generator):
        path = generator.from_goal("master algebra", now=NOW)
        advanced = generator.advance(path, "fractions", records=[_record("decimals", 75)])
        completed = {s.concept_id for s in advanced.steps if s.completed}
        assert completed == {"fractions", "decimals"}

    def test_unknown_concept_is_noop(self, generator):
        path = generator.from_goal("master algebra", now=NOW)
        advanced = generator.advance(path, "long_division", now=NOW + timedelta(hours=1))
        assert advanced.progress == 0
        assert advanced.updated_at == NOW

    def test_finished_path_points_at_last_step(self, generator):
        path = generator.from_goal("fractions", now=NOW)
        advanced = generator.advance(path, "fractions")

        assert advanced.progress == 100
        assert advanced.current_step_index == len(advanced.steps) - 1
        assert advanced.is_finished is True
