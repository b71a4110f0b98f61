"""
Completion Models

The detector's verdict on a transcript and the event emitted when a problem is solved.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from tutor.models.messages import ParsedProblem


CompletionConfidence = Literal["low", "medium", "high"]


class CompletionSignal(BaseModel):
    """Whether the problem behind a conversation has been solved."""

    is_completed: bool = False
    score: int = Field(default=0, ge=0, le=100)
    confidence: CompletionConfidence = "low"
    reasons: list[str] = Field(default_factory=list, description="Every cue that contributed to the score")


class ProblemCompletedEvent(BaseModel):
    """Payload handed to progress collaborators when a session's problem is solved."""

    session_id: str
    owner_id: Optional[str] = None
    problem: ParsedProblem
    concept_ids: list[str] = Field(default_factory=list)
    hints_used: int = 0
    time_spent_minutes: float = 0.0
    completed_at: datetime = Field(default_factory=datetime.utcnow)
