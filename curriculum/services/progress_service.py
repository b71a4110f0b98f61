"""Curriculum progress business logic: turns solved problems into mastery and path updates."""

import json
import logging
from typing import Dict, List, Optional

from curriculum.models import ConceptRecord, LearningPath
from curriculum.repositories.progress_repository import InMemoryProgressRepository
from curriculum.services.learning_path_generator import LearningPathGenerator
from curriculum.services.mastery_tracker import ConceptMasteryTracker
from tutor.models.completion import ProblemCompletedEvent

logger = logging.getLogger("curriculum.progress_service")

SUGGESTION_LIMIT = 5


class LearningPathNotFoundError(LookupError):
    """Raised when a learning path does not exist for the owner."""

    def __init__(self, path_id: str):
        self.path_id = path_id
        super().__init__(f"Learning path {path_id} not found")


class CurriculumProgressService:
    """Receives problem-completed events and serves curriculum queries per owner."""

    def __init__(
        self,
        repository: InMemoryProgressRepository,
        tracker: ConceptMasteryTracker,
        generator: LearningPathGenerator,
        mastery_threshold: int = 70,
    ):
        self.repository = repository
        self.tracker = tracker
        self.generator = generator
        self.mastery_threshold = mastery_threshold

    # ─── Completion events ────────────────────────────────────────────

    def record_completion(self, event: ProblemCompletedEvent) -> List[ConceptRecord]:
        """Update one record per concept of the solved problem, then advance the owner's paths."""
        if not event.owner_id:
            logger.info(f"Ignoring completion of guest session {event.session_id}")
            return []

        concept_ids = event.concept_ids or self.tracker.extract_concepts(event.problem)
        updated: List[ConceptRecord] = []
        for concept_id in concept_ids:
            prior = self.repository.get_record(event.owner_id, concept_id)
            record = self.tracker.update_mastery(
                concept_id,
                was_solved=True,
                hints_used=event.hints_used,
                time_spent_minutes=event.time_spent_minutes,
                prior=prior,
                now=event.completed_at,
            )
            updated.append(self.repository.save_record(event.owner_id, record))

        mastered = [r.concept_id for r in updated if r.mastery_level >= self.mastery_threshold]
        if mastered:
            self._advance_paths(event.owner_id, mastered)

        logger.info(json.dumps({
            "event": "completion_recorded",
            "session_id": event.session_id,
            "concepts": [r.concept_id for r in updated],
            "mastered": mastered,
        }))
        return updated

    def _advance_paths(self, owner_id: str, concept_ids: List[str]) -> None:
        records = self.repository.get_records(owner_id)
        for path in self.repository.list_paths(owner_id):
            for concept_id in concept_ids:
                path = self.generator.advance(path, concept_id, records)
            self.repository.save_path(owner_id, path)

    # ─── Learning paths ───────────────────────────────────────────────

    def create_learning_path(self, owner_id: str, goal: str) -> LearningPath:
        records = self.repository.get_records(owner_id)
        path = self.generator.from_goal(goal, records, owner_id=owner_id)
        return self.repository.save_path(owner_id, path)

    def list_learning_paths(self, owner_id: str) -> List[LearningPath]:
        return self.repository.list_paths(owner_id)

    def get_learning_path(self, owner_id: str, path_id: str) -> LearningPath:
        path = self.repository.get_path(owner_id, path_id)
        if path is None:
            raise LearningPathNotFoundError(path_id)
        return path

    def advance_learning_path(self, owner_id: str, path_id: str, concept_id: str) -> LearningPath:
        path = self.get_learning_path(owner_id, path_id)
        records = self.repository.get_records(owner_id)
        return self.repository.save_path(owner_id, self.generator.advance(path, concept_id, records))

    # ─── Concept queries ──────────────────────────────────────────────

    def get_concepts(self, owner_id: str) -> List[ConceptRecord]:
        """All records, lowest mastery first."""
        return self.tracker.sort_by_mastery(self.repository.get_records(owner_id).values())

    def get_concepts_by_category(self, owner_id: str) -> Dict[str, List[ConceptRecord]]:
        return self.tracker.group_by_category(self.repository.get_records(owner_id).values())

    def concepts_needing_practice(self, owner_id: str, threshold: Optional[int] = None) -> List[ConceptRecord]:
        return self.tracker.concepts_needing_practice(
            self.repository.get_records(owner_id).values(),
            threshold if threshold is not None else self.mastery_threshold,
        )

    def suggested_concepts(self, owner_id: str) -> List[str]:
        """Unmastered neighbours of the owner's weakest practised concepts."""
        records = self.repository.get_records(owner_id)
        suggestions: List[str] = []
        for record in self.tracker.sort_by_mastery(records.values()):
            for concept_id in self.tracker.related_concepts(record.concept_id):
                known = records.get(concept_id)
                if known is not None and known.mastery_level >= self.mastery_threshold:
                    continue
                if concept_id not in suggestions:
                    suggestions.append(concept_id)
        return suggestions[:SUGGESTION_LIMIT]
