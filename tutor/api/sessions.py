"""Tutoring session API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from dependencies import get_orchestrator, get_owner_id
from shared.utils.exceptions import TutorError
from tutor.models.completion import CompletionSignal
from tutor.models.messages import DEFAULT_DIFFICULTY_MODE, DifficultyMode, Message, ParsedProblem
from tutor.models.session_state import TutoringSession
from tutor.models.turn_logs import TurnEventType, TurnLogEntry
from tutor.orchestration import DialogueOrchestrator, TurnResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])

# Appended in-band when a streamed reply fails after fragments were sent.
STREAM_ERROR_MARKER = "\n[error:{code}]"


class CreateSessionRequest(BaseModel):
    problem: ParsedProblem
    difficulty_mode: DifficultyMode = DEFAULT_DIFFICULTY_MODE


class CreateSessionResponse(BaseModel):
    session_id: str
    first_turn: Message


class TurnRequest(BaseModel):
    message: str
    difficulty_mode: Optional[DifficultyMode] = None
    stream: bool = Field(default=False, description="Stream the reply as text/plain fragments")
    whiteboard_image: Optional[str] = Field(default=None, description="data: URL of the student's drawing")


class TurnLogsResponse(BaseModel):
    session_id: str
    total_entries: int
    logs: List[TurnLogEntry]


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Error {action}: {str(e)}")
    return HTTPException(
        status_code=500,
        detail={"message": f"Error {action}: {str(e)}", "type": type(e).__name__},
    )


@router.post("", response_model=CreateSessionResponse)
async def create_session(
    request: CreateSessionRequest,
    owner_id: Optional[str] = Depends(get_owner_id),
    orchestrator: DialogueOrchestrator = Depends(get_orchestrator),
):
    """Start a tutoring session and get the tutor's opening question."""
    try:
        result = await orchestrator.initialize(request.problem, owner_id, request.difficulty_mode)
        return CreateSessionResponse(session_id=result.session.session_id, first_turn=result.first_message)
    except TutorError as e:
        raise e.to_http_exception()
    except Exception as e:
        raise _internal_error("creating session", e)


@router.post("/{session_id}/turns", response_model=TurnResult)
async def submit_turn(
    session_id: str,
    request: TurnRequest,
    owner_id: Optional[str] = Depends(get_owner_id),
    orchestrator: DialogueOrchestrator = Depends(get_orchestrator),
):
    """Send a student message and get the tutor's reply, whole or streamed."""
    try:
        if not request.stream:
            return await orchestrator.process_turn(
                session_id,
                request.message,
                difficulty_mode=request.difficulty_mode,
                owner_id=owner_id,
                whiteboard_image=request.whiteboard_image,
            )

        turn_stream = await orchestrator.process_turn_streaming(
            session_id,
            request.message,
            difficulty_mode=request.difficulty_mode,
            owner_id=owner_id,
            whiteboard_image=request.whiteboard_image,
        )
        # Pull the first fragment before any headers go out so provider
        # failures that happen while opening the stream keep their status code.
        first_fragment = await anext(turn_stream, None)
    except TutorError as e:
        raise e.to_http_exception()
    except Exception as e:
        raise _internal_error("processing turn", e)

    async def fragments():
        # A client disconnect closes this generator, which abandons the turn.
        try:
            if first_fragment is None:
                return
            yield first_fragment
            async for fragment in turn_stream:
                yield fragment
        except TutorError as e:
            logger.warning(f"Stream for {session_id} failed mid-reply: {e.code}")
            yield STREAM_ERROR_MARKER.format(code=e.code)
        except Exception:
            logger.exception(f"Stream for {session_id} failed mid-reply")
            yield STREAM_ERROR_MARKER.format(code="internal_error")
        finally:
            await turn_stream.aclose()

    return StreamingResponse(fragments(), media_type="text/plain")


@router.get("/{session_id}", response_model=TutoringSession)
async def get_session(
    session_id: str,
    owner_id: Optional[str] = Depends(get_owner_id),
    orchestrator: DialogueOrchestrator = Depends(get_orchestrator),
):
    """Snapshot of a session's state and transcript."""
    try:
        return await orchestrator.get_session(session_id, owner_id)
    except TutorError as e:
        raise e.to_http_exception()


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    owner_id: Optional[str] = Depends(get_owner_id),
    orchestrator: DialogueOrchestrator = Depends(get_orchestrator),
):
    """End a session. Deleting an unknown session is not an error."""
    try:
        await orchestrator.clear_session(session_id, owner_id)
    except TutorError as e:
        raise e.to_http_exception()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{session_id}/completion", response_model=CompletionSignal)
async def get_completion(
    session_id: str,
    owner_id: Optional[str] = Depends(get_owner_id),
    orchestrator: DialogueOrchestrator = Depends(get_orchestrator),
):
    """Completion assessment of the current transcript."""
    try:
        return await orchestrator.detect_completion(session_id, owner_id)
    except TutorError as e:
        raise e.to_http_exception()


@router.get("/{session_id}/logs", response_model=TurnLogsResponse)
async def get_session_logs(
    session_id: str,
    turn_id: Optional[str] = Query(None),
    event_type: Optional[TurnEventType] = Query(None),
    owner_id: Optional[str] = Depends(get_owner_id),
    orchestrator: DialogueOrchestrator = Depends(get_orchestrator),
):
    """Turn events recorded for a live session."""
    try:
        await orchestrator.get_session(session_id, owner_id)
    except TutorError as e:
        raise e.to_http_exception()

    logs = orchestrator.turn_logs.get_logs(session_id, turn_id=turn_id, event_type=event_type)
    return TurnLogsResponse(session_id=session_id, total_entries=len(logs), logs=logs)
