"""
Turn Logging Models

In-memory storage for per-session turn events.
"""

from datetime import datetime
from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
import threading


TurnEventType = Literal[
    "turn_started",
    "turn_completed",
    "turn_failed",
    "stream_aborted",
    "completion_detected",
]


class TurnLogEntry(BaseModel):
    """Single turn event."""

    timestamp: datetime = Field(default_factory=datetime.utcnow)
    session_id: str
    turn_id: str
    event_type: TurnEventType
    input_summary: Optional[str] = None
    output_summary: Optional[str] = None
    duration_ms: Optional[int] = None
    error_code: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TurnLogStore:
    """In-memory storage for turn logs, thread-safe and bounded per session."""

    def __init__(self, max_logs_per_session: int = 200):
        self._logs: Dict[str, List[TurnLogEntry]] = {}
        self._lock = threading.Lock()
        self._max_logs = max_logs_per_session

    def add_log(self, entry: TurnLogEntry) -> None:
        with self._lock:
            logs = self._logs.setdefault(entry.session_id, [])
            logs.append(entry)
            if len(logs) > self._max_logs:
                self._logs[entry.session_id] = logs[-self._max_logs:]

    def get_logs(
        self,
        session_id: str,
        turn_id: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[TurnLogEntry]:
        with self._lock:
            logs = list(self._logs.get(session_id, []))
        if turn_id:
            logs = [log for log in logs if log.turn_id == turn_id]
        if event_type:
            logs = [log for log in logs if log.event_type == event_type]
        return logs

    def get_recent_logs(self, session_id: str, limit: int = 50) -> List[TurnLogEntry]:
        with self._lock:
            logs = self._logs.get(session_id, [])
            return logs[-limit:] if logs else []

    def clear_session(self, session_id: str) -> None:
        with self._lock:
            self._logs.pop(session_id, None)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "session_count": len(self._logs),
                "total_logs": sum(len(logs) for logs in self._logs.values()),
                "max_logs_per_session": self._max_logs,
            }


_turn_log_store: Optional[TurnLogStore] = None


def get_turn_log_store() -> TurnLogStore:
    global _turn_log_store
    if _turn_log_store is None:
        _turn_log_store = TurnLogStore()
    return _turn_log_store
