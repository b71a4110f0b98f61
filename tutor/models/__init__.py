"""Tutor models."""
from tutor.models.messages import Message, ParsedProblem, ProblemType, DifficultyMode
from tutor.models.session_state import TutoringSession, SessionLifecycle
from tutor.models.completion import CompletionSignal, ProblemCompletedEvent
from tutor.models.turn_logs import TurnLogEntry, TurnLogStore, get_turn_log_store
