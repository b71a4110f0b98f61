"""Tutor dialogue orchestration."""
from tutor.orchestration.dialogue_orchestrator import (
    DialogueOrchestrator,
    InitializeResult,
    TurnResult,
    TurnStream,
)
