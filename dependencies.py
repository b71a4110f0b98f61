"""
Process-wide service wiring.

Each service is constructed once from Settings and handed to routers through
FastAPI dependencies, so tests can swap any of them with
`app.dependency_overrides` or `reset_dependencies()`.
"""

from datetime import timedelta
from typing import Optional

from fastapi import Header

from config import get_settings
from curriculum.repositories.progress_repository import InMemoryProgressRepository
from curriculum.services.learning_path_generator import LearningPathGenerator
from curriculum.services.mastery_tracker import ConceptMasteryTracker
from curriculum.services.progress_service import CurriculumProgressService
from shared.services.anthropic_adapter import DEFAULT_CLAUDE_MODEL
from shared.services.llm_service import LLMService
from tutor.models.turn_logs import get_turn_log_store
from tutor.orchestration import DialogueOrchestrator
from tutor.services.completion_detector import CompletionDetector
from tutor.services.problem_parser import ProblemParser
from tutor.services.session_reaper import SessionReaper
from tutor.services.session_store import InMemorySessionStore, SessionStore

_session_store: Optional[SessionStore] = None
_llm_service: Optional[LLMService] = None
_orchestrator: Optional[DialogueOrchestrator] = None
_progress_service: Optional[CurriculumProgressService] = None
_mastery_tracker: Optional[ConceptMasteryTracker] = None
_path_generator: Optional[LearningPathGenerator] = None
_problem_parser: Optional[ProblemParser] = None
_session_reaper: Optional[SessionReaper] = None


def get_session_store() -> SessionStore:
    global _session_store
    if _session_store is None:
        settings = get_settings()
        _session_store = InMemorySessionStore(ttl=timedelta(minutes=settings.session_ttl_minutes))
    return _session_store


def get_llm_service() -> LLMService:
    global _llm_service
    if _llm_service is None:
        settings = get_settings()
        model_id = settings.llm_model
        if settings.llm_provider == "anthropic" and not model_id.startswith("claude"):
            model_id = DEFAULT_CLAUDE_MODEL
        _llm_service = LLMService(
            api_key=settings.openai_api_key,
            provider=settings.llm_provider,
            model_id=model_id,
            anthropic_api_key=settings.anthropic_api_key or None,
            max_retries=settings.llm_max_retries,
            initial_retry_delay=settings.llm_retry_delay_seconds,
            timeout=settings.llm_timeout_seconds,
        )
    return _llm_service


def get_mastery_tracker() -> ConceptMasteryTracker:
    global _mastery_tracker
    if _mastery_tracker is None:
        _mastery_tracker = ConceptMasteryTracker()
    return _mastery_tracker


def get_learning_path_generator() -> LearningPathGenerator:
    global _path_generator
    if _path_generator is None:
        _path_generator = LearningPathGenerator(mastery_threshold=get_settings().mastery_threshold)
    return _path_generator


def get_progress_service() -> CurriculumProgressService:
    global _progress_service
    if _progress_service is None:
        _progress_service = CurriculumProgressService(
            repository=InMemoryProgressRepository(),
            tracker=get_mastery_tracker(),
            generator=get_learning_path_generator(),
            mastery_threshold=get_settings().mastery_threshold,
        )
    return _progress_service


def get_orchestrator() -> DialogueOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        _orchestrator = DialogueOrchestrator(
            llm_service=get_llm_service(),
            session_store=get_session_store(),
            completion_detector=CompletionDetector(settings.completion_score_threshold),
            concept_extractor=get_mastery_tracker().extract_concepts,
            on_problem_completed=get_progress_service().record_completion,
            log_store=get_turn_log_store(),
            max_message_length=settings.max_message_length,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
    return _orchestrator


def get_problem_parser() -> ProblemParser:
    global _problem_parser
    if _problem_parser is None:
        _problem_parser = ProblemParser(get_llm_service())
    return _problem_parser


def get_session_reaper() -> SessionReaper:
    global _session_reaper
    if _session_reaper is None:
        _session_reaper = SessionReaper(
            get_session_store(),
            interval_seconds=get_settings().session_reap_interval_seconds,
            on_evicted=get_turn_log_store().clear_session,
        )
    return _session_reaper


def reset_dependencies():
    """Drop every wired service (useful for testing)."""
    global _session_store, _llm_service, _orchestrator, _progress_service
    global _mastery_tracker, _path_generator, _problem_parser, _session_reaper
    _session_store = None
    _llm_service = None
    _orchestrator = None
    _progress_service = None
    _mastery_tracker = None
    _path_generator = None
    _problem_parser = None
    _session_reaper = None


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Owner identity from the X-User-Id header; None for guests."""
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()
