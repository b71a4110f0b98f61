"""
Learning path generation.

Maps a free-text goal onto catalog concepts, expands them with their full
prerequisite closure and orders the result so every prerequisite comes
before the concepts that depend on it.

Unknown concept ids are skipped, never raised: curriculum generation
degrades gracefully instead of blocking a learner.
"""

import json
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from curriculum.catalog import CONCEPT_CATALOG, DEFAULT_GOAL_CONCEPTS, ConceptCatalog
from curriculum.models import ConceptRecord, LearningPath, LearningPathStep

logger = logging.getLogger("curriculum.learning_path_generator")

DEFAULT_MASTERY_THRESHOLD = 70

MasteryRecords = Union[Mapping[str, ConceptRecord], Iterable[ConceptRecord], None]


def _mastery_levels(records: MasteryRecords) -> Dict[str, int]:
    if records is None:
        return {}
    if isinstance(records, Mapping):
        records = records.values()
    return {record.concept_id: record.mastery_level for record in records}


def _position(steps: Sequence[LearningPathStep]) -> Tuple[int, int]:
    """(progress percentage, index of the first incomplete step or the last step)."""
    if not steps:
        return 0, 0
    done = sum(1 for step in steps if step.completed)
    progress = int(round(done / len(steps) * 100))
    index = next((i for i, step in enumerate(steps) if not step.completed), len(steps) - 1)
    return progress, index


class LearningPathGenerator:
    """Builds and advances prerequisite-ordered learning paths."""

    def __init__(
        self,
        catalog: ConceptCatalog = CONCEPT_CATALOG,
        mastery_threshold: int = DEFAULT_MASTERY_THRESHOLD,
    ):
        self.catalog = catalog
        self.mastery_threshold = mastery_threshold

    # ─── Goal → targets ───────────────────────────────────────────────

    def targets_from_goal(self, goal: str) -> List[str]:
        """Concepts named or aliased in the goal, or the default starter set."""
        targets = self.catalog.match_goal(goal)
        if not targets:
            targets = [cid for cid in DEFAULT_GOAL_CONCEPTS if cid in self.catalog]
        return targets

    def from_goal(
        self,
        goal: str,
        records: MasteryRecords = None,
        owner_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LearningPath:
        now = now or datetime.utcnow()
        targets = self.targets_from_goal(goal)
        steps = self.build_sequence(targets, records, now=now)
        progress, index = _position(steps)

        path = LearningPath(
            owner_id=owner_id,
            goal=goal,
            target_concepts=targets,
            steps=steps,
            current_step_index=index,
            progress=progress,
            created_at=now,
            updated_at=now,
        )

        logger.info(json.dumps({
            "event": "learning_path_generated",
            "path_id": path.path_id,
            "target_concepts": targets,
            "steps": len(steps),
            "progress": progress,
        }))
        return path

    # ─── Sequencing ───────────────────────────────────────────────────

    def prerequisite_closure(self, concept_ids: Iterable[str]) -> List[str]:
        """Known concepts plus all their transitive prerequisites, in discovery order."""
        closure: List[str] = []
        seen = set()
        queue = [cid for cid in concept_ids]
        while queue:
            concept_id = queue.pop(0)
            if concept_id in seen or concept_id not in self.catalog:
                continue
            seen.add(concept_id)
            closure.append(concept_id)
            queue.extend(self.catalog.prerequisites_of(concept_id))
        return closure

    def topological_order(self, concept_ids: Sequence[str]) -> List[str]:
        """
        Depth-first ordering with prerequisites first.

        A node is marked visited on entry, so a prerequisite cycle is cut at
        the edge that closes it instead of recursing forever.
        """
        members = set(concept_ids)
        visited = set()
        ordered: List[str] = []

        def visit(concept_id: str) -> None:
            if concept_id in visited:
                return
            visited.add(concept_id)
            for prerequisite in self.catalog.prerequisites_of(concept_id):
                if prerequisite in members:
                    visit(prerequisite)
            ordered.append(concept_id)

        for concept_id in concept_ids:
            visit(concept_id)
        return ordered

    def build_sequence(
        self,
        target_concepts: Iterable[str],
        records: MasteryRecords = None,
        now: Optional[datetime] = None,
    ) -> List[LearningPathStep]:
        now = now or datetime.utcnow()
        mastery = _mastery_levels(records)
        ordered = self.topological_order(self.prerequisite_closure(target_concepts))

        steps: List[LearningPathStep] = []
        for number, concept_id in enumerate(ordered, start=1):
            definition = self.catalog.get(concept_id)
            completed = mastery.get(concept_id, 0) >= self.mastery_threshold
            steps.append(LearningPathStep(
                step_number=number,
                concept_id=concept_id,
                concept_name=definition.name,
                difficulty=definition.difficulty,
                problem_kind=definition.default_problem_kind,
                description=f"Learn {definition.name}",
                prerequisites=list(definition.prerequisites),
                completed=completed,
                completed_at=now if completed else None,
            ))
        return steps

    # ─── Progress ─────────────────────────────────────────────────────

    def advance(
        self,
        path: LearningPath,
        completed_concept_id: str,
        records: MasteryRecords = None,
        now: Optional[datetime] = None,
    ) -> LearningPath:
        """
        Mark a concept's step completed and recompute progress and position.

        Steps whose concept has reached the mastery threshold in `records` are
        completed too. Completion is never undone, so repeating a call is a no-op.
        """
        now = now or datetime.utcnow()
        mastery = _mastery_levels(records)

        changed = False
        steps: List[LearningPathStep] = []
        for step in path.steps:
            reached = (
                step.concept_id == completed_concept_id
                or mastery.get(step.concept_id, 0) >= self.mastery_threshold
            )
            if reached and not step.completed:
                step = step.model_copy(update={"completed": True, "completed_at": now})
                changed = True
            steps.append(step)

        progress, index = _position(steps)
        if changed:
            logger.info(json.dumps({
                "event": "learning_path_advanced",
                "path_id": path.path_id,
                "concept_id": completed_concept_id,
                "progress": progress,
                "current_step_index": index,
            }))

        return path.model_copy(update={
            "steps": steps,
            "progress": progress,
            "current_step_index": index,
            "updated_at": now if changed else path.updated_at,
        })
