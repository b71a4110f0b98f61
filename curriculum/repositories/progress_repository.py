"""Concept record and learning path data access layer."""
import threading
from typing import Dict, List, Optional

from curriculum.models import ConceptRecord, LearningPath


class InMemoryProgressRepository:
    """Repository for per-owner concept records and learning paths, thread-safe."""

    def __init__(self):
        self._records: Dict[str, Dict[str, ConceptRecord]] = {}
        self._paths: Dict[str, Dict[str, LearningPath]] = {}
        self._lock = threading.Lock()

    # Concept records

    def get_records(self, owner_id: str) -> Dict[str, ConceptRecord]:
        """
        All concept records of an owner.

        Args:
            owner_id: Owning user

        Returns:
            Mapping of concept id to record (a copy)
        """
        with self._lock:
            return dict(self._records.get(owner_id, {}))

    def get_record(self, owner_id: str, concept_id: str) -> Optional[ConceptRecord]:
        with self._lock:
            return self._records.get(owner_id, {}).get(concept_id)

    def save_record(self, owner_id: str, record: ConceptRecord) -> ConceptRecord:
        """Store a record, superseding any previous one for the same concept."""
        with self._lock:
            self._records.setdefault(owner_id, {})[record.concept_id] = record
        return record

    # Learning paths

    def save_path(self, owner_id: str, path: LearningPath) -> LearningPath:
        with self._lock:
            self._paths.setdefault(owner_id, {})[path.path_id] = path
        return path

    def get_path(self, owner_id: str, path_id: str) -> Optional[LearningPath]:
        with self._lock:
            return self._paths.get(owner_id, {}).get(path_id)

    def list_paths(self, owner_id: str) -> List[LearningPath]:
        """Paths of an owner, oldest first."""
        with self._lock:
            paths = list(self._paths.get(owner_id, {}).values())
        return sorted(paths, key=lambda p: p.created_at)
