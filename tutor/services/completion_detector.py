"""
Completion detection.

Scores a transcript to decide whether the problem behind it is solved.

Scoring (capped at 100):
    terminal confirmation ("you've solved it", "... is the final answer")  70
    answer confirmation ("that's right", "correct")                        45
    user stated a value                                                     +20
    tutor's confirming message repeats that value                           +15
    the value is assigned to a variable the problem uses                    +10
    encouragement next to a confirmation                                    +10
    user → tutor exchange just happened                                      +5

Only a terminal cue completes a problem. A plain confirmation ("that's
right") also closes intermediate steps, so it only adds corroboration, and
encouragement alone never counts. Sentences ending in a question never count
as cues. A question or a next-step prompt ("now let's...") after the last cue
suppresses completion entirely.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tutor.models.completion import CompletionConfidence, CompletionSignal
from tutor.models.messages import Message, ParsedProblem
from tutor.utils.conversation_utils import extract_user_answer

logger = logging.getLogger("tutor.completion_detector")

DEFAULT_SCORE_THRESHOLD = 70

TERMINAL_POINTS = 70
CONFIRMATION_POINTS = 45
USER_ANSWER_POINTS = 20
ANSWER_ECHO_POINTS = 15
VARIABLE_MATCH_POINTS = 10
ENCOURAGEMENT_POINTS = 10
FLOW_POINTS = 5

TERMINAL_PHRASES = [
    "you've solved it",
    "you solved it",
    "problem is solved",
    "you've completed",
    "well done on solving",
    "congratulations on solving",
    "you've found the correct answer",
    "that's the correct answer",
    "is the final answer",
    "is the correct final answer",
    "is the correct answer",
]

_CONFIRMATION_PATTERNS = [
    re.compile(r"\b(correct|right|exactly)\b.*\b(answer|solution|result|found)\b"),
    re.compile(r"\b(answer|solution|result)\b.*\b(correct|right)\b"),
    re.compile(r"^(that's|that is|yes,?)\s+(correct|right)\b"),
    re.compile(r"^correct\b"),
    re.compile(r"\byou got it\b"),
]

ENCOURAGEMENT_PHRASES = [
    "well done",
    "great work",
    "great job",
    "excellent",
    "perfect",
    "nice work",
    "awesome",
]

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_VARIABLE_ASSIGNMENT = re.compile(r"(?:^|\s)([a-z])\s*=\s*-?\d")
_NEXT_STEP_PROMPT = re.compile(r"\b(let's|let us|next|now|can you|tell me|try)\b")


@dataclass
class _SentenceCues:
    index: int
    text: str
    is_question: bool
    terminal: Optional[str] = None
    confirmation: bool = False
    encouragement: List[str] = field(default_factory=list)

    @property
    def has_cue(self) -> bool:
        return self.terminal is not None or self.confirmation


def split_sentences(content: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(content.strip()) if s.strip()]


def _analyse_sentence(index: int, sentence: str) -> _SentenceCues:
    text = sentence.lower()
    cues = _SentenceCues(index=index, text=text, is_question=text.rstrip().endswith("?"))
    if cues.is_question:
        return cues

    for phrase in TERMINAL_PHRASES:
        if phrase in text:
            cues.terminal = phrase
            break
    cues.confirmation = any(p.search(text) for p in _CONFIRMATION_PATTERNS)
    cues.encouragement = [p for p in ENCOURAGEMENT_PHRASES if p in text]
    return cues


def _confidence_for(score: int) -> CompletionConfidence:
    if score >= 90:
        return "high"
    if score >= 70:
        return "medium"
    return "low"


class CompletionDetector:
    """Pure, stateless scorer over a transcript."""

    def __init__(self, score_threshold: int = DEFAULT_SCORE_THRESHOLD):
        self.score_threshold = score_threshold

    def detect(self, messages: Sequence[Message], problem: Optional[ParsedProblem] = None) -> CompletionSignal:
        user_messages = [m for m in messages if m.role == "user"]
        tutor_messages = [m for m in messages if m.role == "tutor"]
        if not user_messages or not tutor_messages:
            return CompletionSignal(reasons=["No conversation yet"])

        last_tutor = tutor_messages[-1]
        sentences = [_analyse_sentence(i, s) for i, s in enumerate(split_sentences(last_tutor.content))]
        cue_sentences = [s for s in sentences if s.has_cue]
        last_cue_index = cue_sentences[-1].index if cue_sentences else -1

        trailing = [s for s in sentences if s.index > last_cue_index]
        if any(s.is_question for s in trailing):
            reason = (
                "Tutor asked a follow-up question after confirming"
                if cue_sentences
                else "Tutor is still asking questions"
            )
            return CompletionSignal(score=0, confidence="high", reasons=[reason])
        if any(_NEXT_STEP_PROMPT.search(s.text) for s in trailing):
            reason = (
                "Tutor moved on to a next step after confirming"
                if cue_sentences
                else "Tutor is still guiding the next step"
            )
            return CompletionSignal(score=0, confidence="high", reasons=[reason])

        reasons: List[str] = []
        score = 0

        # 1. Confirmation cues in the latest tutor message
        terminal = next((s.terminal for s in cue_sentences if s.terminal), None)
        if terminal:
            score += TERMINAL_POINTS
            reasons.append(f'Tutor confirmed the problem is solved: "{terminal}"')
        elif cue_sentences:
            score += CONFIRMATION_POINTS
            reasons.append("Tutor confirmed the answer is correct")

        encouragement = sorted({p for s in sentences for p in s.encouragement})
        if encouragement and cue_sentences:
            score += ENCOURAGEMENT_POINTS
            reasons.append(f'Encouragement alongside confirmation: "{encouragement[0]}"')
        elif encouragement:
            reasons.append(f'Encouragement without confirmation ignored: "{encouragement[0]}"')

        # 2. Corroboration from the student's stated answer
        answer, variable = self._latest_user_answer(user_messages)
        if answer is not None:
            score += USER_ANSWER_POINTS
            reasons.append(f"Student provided answer: {answer}")
            if cue_sentences and re.search(rf"(?<![\d.]){re.escape(answer)}(?![\d])", last_tutor.content):
                score += ANSWER_ECHO_POINTS
                reasons.append(f"Tutor confirmation repeats the answer {answer}")
            if variable and problem is not None and re.search(rf"(?<![a-z]){variable}(?![a-z])", problem.text.lower()):
                score += VARIABLE_MATCH_POINTS
                reasons.append(f"Answer assigns variable '{variable}' used in the problem")
        else:
            reasons.append("No clear final answer from student")

        # 3. Conversation flow
        if len(messages) >= 2 and messages[-2].role == "user" and messages[-1].role == "tutor":
            score += FLOW_POINTS
            reasons.append("Tutor replied directly to the student's answer")

        score = min(100, score)
        is_completed = terminal is not None and score >= self.score_threshold
        if cue_sentences and terminal is None:
            reasons.append("No terminal confirmation from tutor")
        elif terminal is not None and not is_completed:
            reasons.append(f"Score {score} below threshold {self.score_threshold}")

        return CompletionSignal(
            is_completed=is_completed,
            score=score,
            confidence=_confidence_for(score),
            reasons=reasons,
        )

    @staticmethod
    def _latest_user_answer(user_messages: Sequence[Message]):
        for message in reversed(list(user_messages)[-2:]):
            answer = extract_user_answer(message.content)
            if answer is not None:
                match = _VARIABLE_ASSIGNMENT.search(message.content.lower())
                return answer, match.group(1) if match else None
        return None, None


def detect_completion(
    messages: Sequence[Message],
    problem: Optional[ParsedProblem] = None,
    score_threshold: int = DEFAULT_SCORE_THRESHOLD,
) -> CompletionSignal:
    return CompletionDetector(score_threshold).detect(messages, problem)
