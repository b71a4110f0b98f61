"""
Conversation heuristics.

Helpers that read a transcript: answer extraction, confusion detection,
stuck level for hint escalation, and the per-session hint/time statistics.
"""

import re
from typing import Optional, Sequence

from tutor.models.messages import Message


MAX_STUCK_LEVEL = 3
STUCK_WINDOW = 6
SHORT_REPLY_CHARS = 10

_CONFUSED_PATTERNS = [
    re.compile(r"don'?t\s+know", re.IGNORECASE),
    re.compile(r"no\s+idea", re.IGNORECASE),
    re.compile(r"confused", re.IGNORECASE),
    re.compile(r"stuck", re.IGNORECASE),
    re.compile(r"can'?t", re.IGNORECASE),
    re.compile(r"don'?t\s+understand", re.IGNORECASE),
    re.compile(r"^no$", re.IGNORECASE),
    re.compile(r"^yes$", re.IGNORECASE),
]

_HELP_PATTERNS = [
    re.compile(r"\bhint\b", re.IGNORECASE),
    re.compile(r"\bhelp\b", re.IGNORECASE),
    re.compile(r"\bwhat do i do\b", re.IGNORECASE),
]

_NUMBER = r"-?\d+(?:\.\d+)?"

_ANSWER_PATTERNS = [
    re.compile(rf"^({_NUMBER})$"),
    re.compile(rf"(?:^|\s)(?:x|y|z|answer|solution)\s*[=:]\s*({_NUMBER})"),
    re.compile(rf"(?:the\s+)?(?:answer|solution|it|that|result)\s+(?:is|equals?|:)\s*({_NUMBER})"),
    re.compile(rf"(?:i\s+)?(?:got|think|believe|calculated?)\s+(?:it'?s?\s+)?({_NUMBER})"),
]

_DIRECT_ANSWER_PATTERN = re.compile(
    r"^\s*(the answer is|x equals|x\s*=|solution is|equals)",
    re.IGNORECASE,
)


def is_confused_response(content: str) -> bool:
    """True when a user reply signals uncertainty."""
    text = content.strip()
    return any(pattern.search(text) for pattern in _CONFUSED_PATTERNS)


def is_help_request(content: str) -> bool:
    text = content.strip()
    return is_confused_response(text) or any(pattern.search(text) for pattern in _HELP_PATTERNS)


def _is_uncertain_reply(content: str) -> bool:
    # Short numeric replies are attempts, not uncertainty.
    text = content.strip()
    if len(text) < SHORT_REPLY_CHARS and not re.search(r"\d", text):
        return True
    return is_confused_response(text)


def extract_user_answer(content: str) -> Optional[str]:
    """Return the numeric value a user message states as an answer, if any."""
    text = content.lower().strip()
    for pattern in _ANSWER_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def find_latest_user_answer(messages: Sequence[Message], lookback: int = 2) -> Optional[str]:
    """Scan the most recent user messages (newest first) for a stated answer."""
    user_messages = [m for m in messages if m.role == "user"][-lookback:]
    for message in reversed(user_messages):
        answer = extract_user_answer(message.content)
        if answer is not None:
            return answer
    return None


def calculate_stuck_level(messages: Sequence[Message]) -> int:
    """
    Estimate how stuck the student is, from 0 (progressing) to 3.

    Over the last six messages, runs of tutor messages with no user reply in
    between and short or confused user replies each raise the level.
    """
    if len(messages) < 3:
        return 0

    stuck = 0
    consecutive_tutor = 0
    for message in reversed(list(messages)[-STUCK_WINDOW:]):
        if message.role == "tutor":
            consecutive_tutor += 1
            continue
        if consecutive_tutor > 1:
            stuck += min(consecutive_tutor - 1, 2)
        consecutive_tutor = 0
        if _is_uncertain_reply(message.content):
            stuck += 1

    if consecutive_tutor > 1:
        stuck += min(consecutive_tutor - 1, 2)

    return min(stuck, MAX_STUCK_LEVEL)


def count_hints_used(messages: Sequence[Message]) -> int:
    """Number of user turns that asked for help or signalled confusion."""
    return sum(1 for m in messages if m.role == "user" and is_help_request(m.content))


def looks_like_direct_answer(content: str) -> bool:
    """Heuristic for a tutor reply that opens by stating the answer."""
    return bool(_DIRECT_ANSWER_PATTERN.search(content))


def truncate(text: str, limit: int = 120) -> str:
    return text if len(text) <= limit else text[:limit] + "..."
