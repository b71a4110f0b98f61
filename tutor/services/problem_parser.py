"""Problem intake: normalizes typed problems and transcribes problems from images."""

import json
import logging
import re
from typing import Optional

from shared.services.llm_service import ChatTurn, LLMRequest, LLMService
from shared.utils.exceptions import InvalidInputError, ProviderError
from tutor.models.messages import ParsedProblem, ProblemType

logger = logging.getLogger("tutor.problem_parser")

MAX_PROBLEM_LENGTH = 5000
IMAGE_CONFIDENCE = 0.9

VISION_SYSTEM_PROMPT = (
    "You are a math problem parser. Extract the math problem text from the image. "
    "Return ONLY the problem statement, nothing else. If there are equations, use LaTeX notation."
)
VISION_USER_PROMPT = "Extract the math problem from this image. Return only the problem statement."

_ALGEBRA = re.compile(r"[x-z]\s*[+\-*/=]|solve for|equation|variable")
_GEOMETRY = re.compile(r"area|perimeter|volume|angle|triangle|circle|rectangle|square|radius|diameter")
_WORD_PROBLEM = re.compile(r"how many|how much|what|if|when|then|total|each|per")
_MULTI_STEP = re.compile(r"step|first|then|next|finally|and then")
_OPERATOR = re.compile(r"[+\-*/]")
_ARITHMETIC = re.compile(r"^[\d+\-*/().]+$")


def identify_problem_type(text: str) -> ProblemType:
    """
    Heuristic problem category.

    Precedence: algebra → geometry → word problem → multi-step → arithmetic → unknown.
    """
    lower = text.lower()

    if _ALGEBRA.search(lower):
        return "algebra"
    if _GEOMETRY.search(lower):
        return "geometry"
    if _WORD_PROBLEM.search(lower) and re.search(r"\d", text):
        return "word_problem"
    if _MULTI_STEP.search(lower) or len(_OPERATOR.findall(text)) >= 2:
        return "multi_step"
    if _ARITHMETIC.match(re.sub(r"\s", "", text)):
        return "arithmetic"
    return "unknown"


class ProblemParser:
    """Turns raw student input into a ParsedProblem."""

    def __init__(self, llm_service: Optional[LLMService] = None, max_length: int = MAX_PROBLEM_LENGTH):
        self.llm_service = llm_service
        self.max_length = max_length

    def parse_text(self, text: str) -> ParsedProblem:
        cleaned = (text or "").strip()
        if not cleaned:
            raise InvalidInputError("problem", "problem text must not be empty")
        if len(cleaned) > self.max_length:
            raise InvalidInputError("problem", f"problem text exceeds {self.max_length} characters")

        return ParsedProblem(text=cleaned, type=identify_problem_type(cleaned), confidence=1.0)

    async def parse_image(self, image_data_url: str) -> ParsedProblem:
        """Ask the vision model to transcribe the problem in an image."""
        if not image_data_url or not image_data_url.strip():
            raise InvalidInputError("image", "image must not be empty")
        if self.llm_service is None:
            raise ProviderError("Image parsing requires a language-model provider")

        request = LLMRequest(
            system_prompt=VISION_SYSTEM_PROMPT,
            messages=[ChatTurn(role="user", content=VISION_USER_PROMPT)],
            image_data_url=image_data_url,
            temperature=0.0,
            max_tokens=500,
        )
        extracted = (await self.llm_service.complete(request)).strip()
        if not extracted:
            raise ProviderError("Failed to extract a problem from the image")

        problem = ParsedProblem(
            text=extracted,
            type=identify_problem_type(extracted),
            confidence=IMAGE_CONFIDENCE,
            image_url=image_data_url if image_data_url.startswith("http") else None,
        )
        logger.info(json.dumps({
            "event": "problem_parsed_from_image",
            "problem_type": problem.type,
            "length": len(extracted),
        }))
        return problem
