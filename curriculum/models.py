"""
Curriculum Models

Per-concept mastery records and prerequisite-ordered learning paths.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
import uuid

from curriculum.catalog import Difficulty
from tutor.models.messages import ProblemType


DEFAULT_MASTERY = 50


class ConceptRecord(BaseModel):
    """A learner's standing on one concept. Superseded on every encounter, never deleted."""

    concept_id: str
    name: str
    category: str = "general"
    mastery_level: int = Field(default=DEFAULT_MASTERY, ge=0, le=100)
    problems_attempted: int = Field(default=0, ge=0)
    problems_solved: int = Field(default=0, ge=0)
    average_hints: float = Field(default=0.0, ge=0.0, description="Rolling mean of hints per problem")
    average_time_minutes: float = Field(default=0.0, ge=0.0, description="Rolling mean of minutes per problem")
    last_practiced: datetime = Field(default_factory=datetime.utcnow)

    @property
    def solve_rate(self) -> float:
        if self.problems_attempted == 0:
            return 0.0
        return self.problems_solved / self.problems_attempted


class LearningPathStep(BaseModel):
    """One concept to practise. Pending → Completed, never back."""

    step_number: int = Field(ge=1)
    concept_id: str
    concept_name: str
    difficulty: Difficulty
    problem_kind: ProblemType
    description: str = ""
    prerequisites: list[str] = Field(default_factory=list)
    completed: bool = False
    completed_at: Optional[datetime] = None


class LearningPath(BaseModel):
    """Practice sequence toward a stated goal."""

    path_id: str = Field(default_factory=lambda: f"path_{uuid.uuid4().hex[:12]}")
    owner_id: Optional[str] = None
    goal: str
    target_concepts: list[str] = Field(default_factory=list)
    steps: list[LearningPathStep] = Field(default_factory=list)
    current_step_index: int = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def current_step(self) -> Optional[LearningPathStep]:
        if not self.steps:
            return None
        return self.steps[self.current_step_index]

    @property
    def is_finished(self) -> bool:
        return bool(self.steps) and all(step.completed for step in self.steps)
