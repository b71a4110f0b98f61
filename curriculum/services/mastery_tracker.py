"""
Concept mastery tracking.

Detects the concepts a problem exercises and folds each problem outcome into
a per-concept mastery record.

Mastery (0-100) blends:
    70%  solve rate            solved / attempted * 100
    20%  hint economy          100 - 20 * average hints, floored at 0
    10%  time economy          100 - 2 * average minutes, floored at 0; 50 without timing data
"""

import json
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from curriculum.catalog import CONCEPT_CATALOG, ConceptCatalog
from curriculum.models import DEFAULT_MASTERY, ConceptRecord
from tutor.models.messages import ParsedProblem

logger = logging.getLogger("curriculum.mastery_tracker")

SOLVE_RATE_WEIGHT = 0.7
HINT_WEIGHT = 0.2
TIME_WEIGHT = 0.1
HINT_PENALTY = 20
TIME_PENALTY = 2
NEUTRAL_TIME_SCORE = 50
DEFAULT_PRACTICE_THRESHOLD = 70


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class ConceptMasteryTracker:
    """Stateless over records: callers pass the prior record and store the result."""

    def __init__(self, catalog: ConceptCatalog = CONCEPT_CATALOG):
        self.catalog = catalog

    def extract_concepts(self, problem: ParsedProblem) -> List[str]:
        """
        Concept ids a problem exercises, in catalog order and without duplicates.

        The problem's declared type is included only when it is itself a
        catalog concept, so broad categories like "algebra" never count.
        """
        text = problem.text.lower()
        detected = [d.concept_id for d in self.catalog if d.matches(text)]

        if problem.type in self.catalog and problem.type not in detected:
            detected.append(problem.type)
        return detected

    def new_record(self, concept_id: str) -> ConceptRecord:
        return ConceptRecord(
            concept_id=concept_id,
            name=self.catalog.name_for(concept_id),
            category=self.catalog.category_for(concept_id),
            mastery_level=DEFAULT_MASTERY,
        )

    def update_mastery(
        self,
        concept_id: str,
        was_solved: bool,
        hints_used: int = 0,
        time_spent_minutes: float = 0.0,
        prior: Optional[ConceptRecord] = None,
        now: Optional[datetime] = None,
    ) -> ConceptRecord:
        """Fold one problem outcome into the concept's record and return the new record."""
        record = prior or self.new_record(concept_id)
        hints_used = max(0, hints_used)
        time_spent_minutes = max(0.0, time_spent_minutes)

        attempts = record.problems_attempted + 1
        solved = record.problems_solved + (1 if was_solved else 0)
        average_hints = (record.average_hints * record.problems_attempted + hints_used) / attempts
        if time_spent_minutes > 0:
            average_time = (record.average_time_minutes * record.problems_attempted + time_spent_minutes) / attempts
        else:
            average_time = record.average_time_minutes

        solve_rate = solved / attempts * 100
        hint_score = max(0.0, 100 - average_hints * HINT_PENALTY)
        time_score = max(0.0, 100 - average_time * TIME_PENALTY) if average_time > 0 else NEUTRAL_TIME_SCORE

        mastery = _clamp(
            solve_rate * SOLVE_RATE_WEIGHT
            + hint_score * HINT_WEIGHT
            + time_score * TIME_WEIGHT
        )

        updated = record.model_copy(update={
            "mastery_level": int(round(mastery)),
            "problems_attempted": attempts,
            "problems_solved": solved,
            "average_hints": round(average_hints, 1),
            "average_time_minutes": round(average_time, 1),
            "last_practiced": now or datetime.utcnow(),
        })

        logger.info(json.dumps({
            "event": "mastery_updated",
            "concept_id": concept_id,
            "was_solved": was_solved,
            "previous": record.mastery_level if prior else None,
            "mastery_level": updated.mastery_level,
            "attempts": attempts,
        }))
        return updated

    # ─── Queries over a learner's records ─────────────────────────────

    @staticmethod
    def sort_by_mastery(records: Iterable[ConceptRecord]) -> List[ConceptRecord]:
        return sorted(records, key=lambda r: (r.mastery_level, r.concept_id))

    def concepts_needing_practice(
        self,
        records: Iterable[ConceptRecord],
        threshold: int = DEFAULT_PRACTICE_THRESHOLD,
    ) -> List[ConceptRecord]:
        """Records below the threshold, weakest first."""
        return [r for r in self.sort_by_mastery(records) if r.mastery_level < threshold]

    def group_by_category(self, records: Iterable[ConceptRecord]) -> Dict[str, List[ConceptRecord]]:
        grouped: Dict[str, List[ConceptRecord]] = {}
        for record in self.sort_by_mastery(records):
            grouped.setdefault(record.category, []).append(record)
        return grouped

    def related_concepts(self, concept_id: str) -> List[str]:
        """Suggested neighbours of a concept; unknown ids have none."""
        return self.catalog.related_to(concept_id)
