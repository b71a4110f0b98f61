"""
Dialogue Orchestrator

Drives turn-taking between a student and the language model under the
Socratic policy: session creation with an opening question, atomic and
streamed turns, completion detection after every tutor reply, and the
problem-completed event handed to progress collaborators.

A turn commits the student message and the tutor reply together, only once
the reply is complete. Failed or abandoned turns leave the session unchanged.
"""

import asyncio
import inspect
import json
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from shared.services.llm_service import ChatTurn, LLMRequest, LLMService
from shared.utils.exceptions import InvalidInputError, StreamAbortedError, TutorError
from tutor.models.completion import CompletionSignal, ProblemCompletedEvent
from tutor.models.messages import (
    DEFAULT_DIFFICULTY_MODE,
    DifficultyMode,
    Message,
    ParsedProblem,
    create_tutor_message,
    create_user_message,
)
from tutor.models.session_state import TutoringSession
from tutor.models.turn_logs import TurnLogEntry, TurnLogStore, get_turn_log_store
from tutor.prompts.socratic_prompts import OPENING_INSTRUCTION, build_problem_statement, build_system_prompt
from tutor.services.completion_detector import CompletionDetector
from tutor.services.session_store import SessionStore
from tutor.utils.conversation_utils import (
    calculate_stuck_level,
    count_hints_used,
    looks_like_direct_answer,
    truncate,
)

logger = logging.getLogger("tutor.orchestrator")

CompletionCallback = Callable[[ProblemCompletedEvent], Union[None, Awaitable[None]]]
ConceptExtractor = Callable[[ParsedProblem], List[str]]


class InitializeResult(BaseModel):
    """A freshly created session and the tutor's opening message."""
    session: TutoringSession
    first_message: Message


class TurnResult(BaseModel):
    """Result of processing a turn."""
    session_id: str
    turn_id: str
    message: Message = Field(description="Committed tutor reply")
    completion: CompletionSignal
    completed_event: Optional[ProblemCompletedEvent] = Field(
        default=None, description="Set on the one turn that completed the problem"
    )


def time_spent_minutes(session: TutoringSession) -> float:
    """Minutes between session creation and its last message."""
    if not session.messages:
        return 0.0
    elapsed = session.messages[-1].timestamp - session.created_at
    return round(max(elapsed.total_seconds(), 0.0) / 60, 1)


class DialogueOrchestrator:
    """
    Central orchestrator for Socratic tutoring sessions.

    The session store is injected once and shared across requests; nothing
    here holds session state of its own.
    """

    def __init__(
        self,
        llm_service: LLMService,
        session_store: SessionStore,
        completion_detector: Optional[CompletionDetector] = None,
        concept_extractor: Optional[ConceptExtractor] = None,
        on_problem_completed: Optional[CompletionCallback] = None,
        log_store: Optional[TurnLogStore] = None,
        max_message_length: int = 2000,
        temperature: float = 0.7,
        max_tokens: int = 250,
    ):
        self.llm = llm_service
        self.session_store = session_store
        self.completion_detector = completion_detector or CompletionDetector()
        self.concept_extractor = concept_extractor
        self.on_problem_completed = on_problem_completed
        self.turn_logs = log_store or get_turn_log_store()
        self.max_message_length = max_message_length
        self.temperature = temperature
        self.max_tokens = max_tokens

    # ─── Logging ──────────────────────────────────────────────────────

    def _log_turn_event(
        self,
        session_id: str,
        turn_id: str,
        event_type: str,
        input_summary: Optional[str] = None,
        output_summary: Optional[str] = None,
        duration_ms: Optional[int] = None,
        error_code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.turn_logs.add_log(TurnLogEntry(
            session_id=session_id,
            turn_id=turn_id,
            event_type=event_type,
            input_summary=input_summary,
            output_summary=output_summary,
            duration_ms=duration_ms,
            error_code=error_code,
            metadata=metadata or {},
        ))
        logger.info(json.dumps({
            "event": event_type,
            "session_id": session_id,
            "turn_id": turn_id,
            "duration_ms": duration_ms,
            "error_code": error_code,
        }))

    # ─── Session lifecycle ────────────────────────────────────────────

    async def initialize(
        self,
        problem: ParsedProblem,
        owner_id: Optional[str] = None,
        difficulty_mode: DifficultyMode = DEFAULT_DIFFICULTY_MODE,
    ) -> InitializeResult:
        """
        Create a session and generate the tutor's opening question.

        If generation fails the session is cleared again, so no empty
        session outlives the failed call.
        """
        start_time = time.time()
        session = await self.session_store.create(problem, difficulty_mode, owner_id)
        session = await self.session_store.get(session.session_id, owner_id)
        turn_id = f"{session.session_id}_turn_0"

        self._log_turn_event(
            session.session_id, turn_id, "turn_started",
            input_summary=f"Problem: {truncate(problem.text, 100)}",
            metadata={"problem_type": problem.type, "difficulty_mode": difficulty_mode},
        )

        try:
            request = self._build_request(session, difficulty_mode, opening=True)
            reply = await self.llm.complete(request)
            stored = await self.session_store.append_message(
                session.session_id, create_tutor_message(reply.strip())
            )
        except Exception as e:
            await self.session_store.clear(session.session_id)
            self.turn_logs.clear_session(session.session_id)
            logger.error(f"Initialization failed, session {session.session_id} rolled back: {e}")
            raise

        self._check_direct_answer(session.session_id, stored.content)
        self._log_turn_event(
            session.session_id, turn_id, "turn_completed",
            output_summary=truncate(stored.content),
            duration_ms=int((time.time() - start_time) * 1000),
        )

        session = await self.session_store.get(session.session_id, owner_id)
        return InitializeResult(session=session, first_message=stored)

    async def get_session(self, session_id: str, owner_id: Optional[str] = None) -> TutoringSession:
        return await self.session_store.get(session_id, owner_id)

    async def clear_session(self, session_id: str, owner_id: Optional[str] = None) -> bool:
        removed = await self.session_store.clear(session_id, owner_id)
        self.turn_logs.clear_session(session_id)
        return removed

    async def detect_completion(self, session_id: str, owner_id: Optional[str] = None) -> CompletionSignal:
        session = await self.session_store.get(session_id, owner_id)
        return self.completion_detector.detect(session.messages, session.problem)

    # ─── Turns ────────────────────────────────────────────────────────

    async def process_turn(
        self,
        session_id: str,
        user_message: str,
        difficulty_mode: Optional[DifficultyMode] = None,
        owner_id: Optional[str] = None,
        whiteboard_image: Optional[str] = None,
    ) -> TurnResult:
        """
        Process a single conversation turn and return the committed reply.

        Turns on the same session are serialized; the transcript is re-read
        once this turn holds the session.
        """
        text = self._validate_message(user_message)
        await self.session_store.get(session_id, owner_id)

        async with self.session_store.turn_lock(session_id):
            session = await self.session_store.get(session_id, owner_id)
            start_time = time.time()
            turn_id = self._next_turn_id(session)
            mode = difficulty_mode or session.difficulty_mode
            self._log_turn_event(
                session_id, turn_id, "turn_started",
                input_summary=f"Student: {truncate(text, 100)}",
                metadata={"turn_count": session.turn_count, "streaming": False},
            )

            try:
                request = self._build_request(session, mode, user_message=text, whiteboard_image=whiteboard_image)
                reply = await self.llm.complete(request)
            except Exception as e:
                self._log_failure(session_id, turn_id, e, start_time)
                raise

            return await self._commit_turn(session, turn_id, text, reply, start_time)

    async def process_turn_streaming(
        self,
        session_id: str,
        user_message: str,
        difficulty_mode: Optional[DifficultyMode] = None,
        owner_id: Optional[str] = None,
        whiteboard_image: Optional[str] = None,
    ) -> "TurnStream":
        """
        Validate the turn and return a lazy, non-restartable fragment stream.

        Input and session errors are raised here, before any fragment exists.
        """
        text = self._validate_message(user_message)
        await self.session_store.get(session_id, owner_id)
        return TurnStream(
            orchestrator=self,
            session_id=session_id,
            user_message=text,
            difficulty_mode=difficulty_mode,
            owner_id=owner_id,
            whiteboard_image=whiteboard_image,
        )

    # ─── Internals ────────────────────────────────────────────────────

    def _validate_message(self, user_message: str) -> str:
        text = (user_message or "").strip()
        if not text:
            raise InvalidInputError("message", "message must not be empty")
        if len(text) > self.max_message_length:
            raise InvalidInputError("message", f"message exceeds {self.max_message_length} characters")
        return text

    @staticmethod
    def _next_turn_id(session: TutoringSession) -> str:
        return f"{session.session_id}_turn_{session.turn_count + 1}"

    def _build_request(
        self,
        session: TutoringSession,
        difficulty_mode: DifficultyMode,
        user_message: Optional[str] = None,
        whiteboard_image: Optional[str] = None,
        opening: bool = False,
    ) -> LLMRequest:
        transcript = list(session.messages)
        if user_message is not None:
            transcript.append(create_user_message(user_message))

        history = [ChatTurn(
            role="user",
            content=build_problem_statement(session.problem, OPENING_INSTRUCTION if opening else None),
        )]
        history.extend(
            ChatTurn(role="assistant" if m.role == "tutor" else "user", content=m.content)
            for m in transcript
        )

        return LLMRequest(
            system_prompt=build_system_prompt(
                session.problem,
                difficulty_mode,
                stuck_level=calculate_stuck_level(transcript),
                has_whiteboard=whiteboard_image is not None,
            ),
            messages=history,
            image_data_url=whiteboard_image,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    def _check_direct_answer(self, session_id: str, reply: str) -> None:
        if looks_like_direct_answer(reply):
            logger.warning(json.dumps({
                "event": "possible_answer_leak",
                "session_id": session_id,
                "reply": truncate(reply, 80),
            }))

    def _log_failure(self, session_id: str, turn_id: str, error: BaseException, start_time: float) -> None:
        code = error.code if isinstance(error, TutorError) else error.__class__.__name__
        self._log_turn_event(
            session_id, turn_id, "turn_failed",
            duration_ms=int((time.time() - start_time) * 1000),
            error_code=code,
        )

    async def _commit_turn(
        self,
        session: TutoringSession,
        turn_id: str,
        user_text: str,
        reply: str,
        start_time: float,
    ) -> TurnResult:
        stored = await self.session_store.append_messages(
            session.session_id,
            [create_user_message(user_text), create_tutor_message(reply.strip())],
        )
        tutor_message = stored[-1]
        transcript = session.messages + stored

        self._check_direct_answer(session.session_id, tutor_message.content)
        completion = self.completion_detector.detect(transcript, session.problem)
        self._log_turn_event(
            session.session_id, turn_id, "turn_completed",
            output_summary=truncate(tutor_message.content),
            duration_ms=int((time.time() - start_time) * 1000),
            metadata={"completion_score": completion.score},
        )

        event = None
        if completion.is_completed:
            event = await self._complete_problem(session, transcript, turn_id, completion)

        return TurnResult(
            session_id=session.session_id,
            turn_id=turn_id,
            message=tutor_message,
            completion=completion,
            completed_event=event,
        )

    async def _complete_problem(
        self,
        session: TutoringSession,
        transcript: List[Message],
        turn_id: str,
        completion: CompletionSignal,
    ) -> Optional[ProblemCompletedEvent]:
        completed_at = transcript[-1].timestamp
        if not await self.session_store.mark_completed(session.session_id, completed_at):
            return None

        solved = session.model_copy(update={"messages": transcript})
        event = ProblemCompletedEvent(
            session_id=session.session_id,
            owner_id=session.owner_id,
            problem=session.problem,
            concept_ids=self.concept_extractor(session.problem) if self.concept_extractor else [],
            hints_used=count_hints_used(transcript),
            time_spent_minutes=time_spent_minutes(solved),
            completed_at=completed_at,
        )
        self._log_turn_event(
            session.session_id, turn_id, "completion_detected",
            metadata={
                "score": completion.score,
                "confidence": completion.confidence,
                "concept_ids": event.concept_ids,
            },
        )

        if self.on_problem_completed is not None:
            try:
                outcome = self.on_problem_completed(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                # The turn is already committed; a collaborator failure must not undo it.
                logger.exception(f"Problem-completed handler failed for session {session.session_id}")
        return event


class TurnStream:
    """
    Finite, non-restartable async iterator over the fragments of one tutor reply.

    Exhausting it commits the turn and makes `result` available. Closing it
    early (aclose, break out of `async with`, task cancellation) commits
    nothing; `result` then raises StreamAbortedError.
    """

    def __init__(
        self,
        orchestrator: DialogueOrchestrator,
        session_id: str,
        user_message: str,
        difficulty_mode: Optional[DifficultyMode] = None,
        owner_id: Optional[str] = None,
        whiteboard_image: Optional[str] = None,
    ):
        self._orchestrator = orchestrator
        self.session_id = session_id
        self.user_message = user_message
        self.difficulty_mode = difficulty_mode
        self.owner_id = owner_id
        self.whiteboard_image = whiteboard_image
        self._fragments: Optional[AsyncIterator[str]] = None
        self._result: Optional[TurnResult] = None
        self._aborted = False
        self._finished = False

    def __aiter__(self) -> "TurnStream":
        return self

    async def __anext__(self) -> str:
        if self._fragments is None:
            if self._aborted or self._finished:
                raise StopAsyncIteration
            self._fragments = self._run()
        try:
            return await self._fragments.__anext__()
        except asyncio.CancelledError:
            self._aborted = not self._finished
            raise

    async def __aenter__(self) -> "TurnStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._finished:
            return
        if self._fragments is not None:
            await self._fragments.aclose()
        self._aborted = not self._finished

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def result(self) -> TurnResult:
        if self._aborted:
            raise StreamAbortedError(self.session_id)
        if self._result is None:
            raise RuntimeError("Turn stream has not been consumed to the end")
        return self._result

    async def collect(self) -> TurnResult:
        """Drain the remaining fragments and return the committed turn."""
        async for _ in self:
            pass
        return self.result

    async def _run(self) -> AsyncIterator[str]:
        orch = self._orchestrator
        store = orch.session_store

        async with store.turn_lock(self.session_id):
            session = await store.get(self.session_id, self.owner_id)
            start_time = time.time()
            turn_id = orch._next_turn_id(session)
            mode = self.difficulty_mode or session.difficulty_mode
            orch._log_turn_event(
                self.session_id, turn_id, "turn_started",
                input_summary=f"Student: {truncate(self.user_message, 100)}",
                metadata={"turn_count": session.turn_count, "streaming": True},
            )

            request = orch._build_request(
                session, mode, user_message=self.user_message, whiteboard_image=self.whiteboard_image
            )
            provider_stream = orch.llm.stream(request)
            fragments: List[str] = []
            try:
                async for fragment in provider_stream:
                    fragments.append(fragment)
                    yield fragment
            except (GeneratorExit, asyncio.CancelledError):
                self._aborted = True
                orch._log_turn_event(
                    self.session_id, turn_id, "stream_aborted",
                    duration_ms=int((time.time() - start_time) * 1000),
                    metadata={"fragments_discarded": len(fragments)},
                )
                raise
            except Exception as e:
                orch._log_failure(self.session_id, turn_id, e, start_time)
                raise
            finally:
                await provider_stream.aclose()

            self._result = await orch._commit_turn(
                session, turn_id, self.user_message, "".join(fragments), start_time
            )
            self._finished = True
