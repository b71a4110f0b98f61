"""
Message Models

Models for conversation messages and the problems a session is built around.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid


Role = Literal["user", "tutor"]
ProblemType = Literal["arithmetic", "algebra", "geometry", "word_problem", "multi_step", "unknown"]
DifficultyMode = Literal["elementary", "middle", "high", "advanced"]

DEFAULT_DIFFICULTY_MODE: DifficultyMode = "middle"


class Message(BaseModel):
    """Individual message in a conversation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(
        default_factory=lambda: f"msg_{uuid.uuid4().hex[:12]}",
        description="Unique message identifier",
    )
    role: Role = Field(description="Role of the message sender")
    content: str = Field(description="Message content text")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the message was appended")


class ParsedProblem(BaseModel):
    """A problem statement together with its heuristic classification."""

    text: str = Field(description="Problem text as the student entered or transcribed it")
    type: ProblemType = Field(default="unknown", description="Heuristic problem category")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0, description="Confidence of the extraction")
    image_url: Optional[str] = Field(default=None, description="Source image, when parsed from a picture")


# Factory Functions

def create_tutor_message(content: str) -> Message:
    return Message(role="tutor", content=content)


def create_user_message(content: str) -> Message:
    return Message(role="user", content=content)
