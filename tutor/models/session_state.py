"""
Session State Models

State of a single problem-focused tutoring conversation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field
import uuid

from tutor.models.messages import DEFAULT_DIFFICULTY_MODE, DifficultyMode, Message, ParsedProblem


SessionLifecycle = Literal["created", "active", "closed"]


class TutoringSession(BaseModel):
    """Complete state of a tutoring session."""

    # Identification
    session_id: str = Field(
        default_factory=lambda: f"sess_{uuid.uuid4().hex[:12]}",
        description="Unique session identifier",
    )
    owner_id: Optional[str] = Field(default=None, description="Owning user, None for guests")

    # Problem
    problem: ParsedProblem
    difficulty_mode: DifficultyMode = Field(default=DEFAULT_DIFFICULTY_MODE)

    # Conversation
    messages: list[Message] = Field(default_factory=list)

    # Lifecycle
    state: SessionLifecycle = Field(default="created")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_activity_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = Field(default=None, description="Set once, when the problem is solved")

    # Helpers

    def is_accessible_by(self, owner_id: Optional[str]) -> bool:
        """Ownership is only checked when the caller names an owner."""
        if owner_id is None:
            return True
        return self.owner_id == owner_id

    @property
    def user_messages(self) -> list[Message]:
        return [m for m in self.messages if m.role == "user"]

    @property
    def tutor_messages(self) -> list[Message]:
        return [m for m in self.messages if m.role == "tutor"]

    @property
    def last_tutor_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == "tutor":
                return message
        return None

    @property
    def turn_count(self) -> int:
        return len(self.user_messages)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
