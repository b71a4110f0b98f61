"""
Unit tests for tutor/services/completion_detector.py

Covers terminal and answer confirmations, corroboration from the student's
answer, suppression by trailing questions, thresholds and confidence.
"""

import pytest

from tutor.models.messages import ParsedProblem, create_tutor_message, create_user_message
from tutor.services.completion_detector import (
    CompletionDetector,
    detect_completion,
    split_sentences,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PROBLEM = ParsedProblem(text="Solve 2x + 5 = 13", type="algebra")


def _exchange(user_text, tutor_text):
    return [
        create_tutor_message("What are we trying to find?"),
        create_user_message(user_text),
        create_tutor_message(tutor_text),
    ]


# ===========================================================================
# Completion
# ===========================================================================

class TestCompleted:
    def test_final_answer_confirmation(self):
        signal = detect_completion(_exchange("x = 4", "Correct, x = 4 is the final answer!"), PROBLEM)

        assert signal.is_completed is True
        assert signal.score == 100
        assert signal.confidence == "high"
        assert any("final answer" in r for r in signal.reasons)
        assert "Student provided answer: 4" in signal.reasons

    def test_variable_match_with_coefficient(self):
        signal = detect_completion(_exchange("x = 4", "Correct, x = 4 is the final answer!"), PROBLEM)
        assert "Answer assigns variable 'x' used in the problem" in signal.reasons

    def test_terminal_phrase_alone_reaches_threshold(self):
        messages = [create_user_message("subtract then divide"), create_tutor_message("You've solved it.")]
        signal = detect_completion(messages)
        assert signal.is_completed is True
        assert signal.score == 75

    def test_correct_answer_phrase_is_terminal(self):
        signal = detect_completion(_exchange("I got 4", "That's right, 4 is the correct answer. Great job!"))
        assert signal.is_completed is True
        assert 'Tutor confirmed the problem is solved: "is the correct answer"' in signal.reasons
        assert any("Encouragement alongside confirmation" in r for r in signal.reasons)


class TestNotCompleted:
    def test_praise_followed_by_question(self):
        signal = detect_completion(_exchange(
            "we need to get x alone",
            "Great job figuring out we need to isolate x — what's the next step?",
        ), PROBLEM)

        assert signal.is_completed is False
        assert signal.score == 0
        assert signal.reasons == ["Tutor is still asking questions"]

    def test_confirmation_then_follow_up_question(self):
        signal = detect_completion(_exchange(
            "x = 4",
            "Correct, x = 4 is the final answer! Can you check it by substituting?",
        ), PROBLEM)

        assert signal.is_completed is False
        assert signal.reasons == ["Tutor asked a follow-up question after confirming"]

    def test_encouragement_alone_never_completes(self):
        signal = detect_completion(_exchange("x = 4", "Excellent work, nice effort."))
        assert signal.is_completed is False
        assert any("Encouragement without confirmation ignored" in r for r in signal.reasons)

    def test_step_confirmation_then_next_step(self):
        problem = ParsedProblem(text="Solve x + y = 10 and 2x - y = 2", type="algebra")
        signal = detect_completion(_exchange(
            "x = 4",
            "That's right! Now let's substitute x = 4 into the first equation to find y.",
        ), problem)

        assert signal.is_completed is False
        assert signal.score == 0
        assert signal.reasons == ["Tutor moved on to a next step after confirming"]

    def test_plain_confirmation_never_completes(self):
        problem = ParsedProblem(text="Solve x + y = 10 and 2x - y = 2", type="algebra")
        signal = detect_completion(_exchange("x = 4", "That's right, x = 4. Great job!"), problem)

        assert signal.is_completed is False
        assert signal.score == 100
        assert "Tutor confirmed the answer is correct" in signal.reasons
        assert "No terminal confirmation from tutor" in signal.reasons

    def test_guiding_without_question_mark(self):
        signal = detect_completion(_exchange("subtract 5", "Good. Now divide both sides by 2."))
        assert signal.is_completed is False
        assert signal.reasons == ["Tutor is still guiding the next step"]

    def test_confirmation_as_question_is_not_a_cue(self):
        signal = detect_completion(_exchange("x = 4", "Is that the correct answer?"))
        assert signal.is_completed is False

    def test_no_conversation(self):
        signal = detect_completion([create_tutor_message("What are we trying to find?")])
        assert signal.is_completed is False
        assert signal.reasons == ["No conversation yet"]

    def test_empty_transcript(self):
        assert detect_completion([]).is_completed is False

    def test_below_custom_threshold(self):
        messages = [create_user_message("subtract then divide"), create_tutor_message("You've solved it.")]
        signal = CompletionDetector(score_threshold=90).detect(messages)
        assert signal.is_completed is False
        assert "Score 75 below threshold 90" in signal.reasons


class TestConfidence:
    def test_medium_confidence(self):
        messages = [create_user_message("subtract then divide"), create_tutor_message("You've solved it.")]
        assert detect_completion(messages).confidence == "medium"

    def test_low_confidence(self):
        signal = detect_completion(_exchange("subtract 5", "Good thinking, keep going."))
        assert signal.confidence == "low"


class TestSplitSentences:
    def test_split(self):
        assert split_sentences("Correct! x = 4. Well done.") == ["Correct!", "x = 4.", "Well done."]

    def test_decimal_not_split(self):
        assert split_sentences("It is 2.5 now.") == ["It is 2.5 now."]


class TestPurity:
    def test_same_input_same_output(self):
        messages = _exchange("x = 4", "Correct, x = 4 is the final answer!")
        assert detect_completion(messages, PROBLEM) == detect_completion(messages, PROBLEM)
