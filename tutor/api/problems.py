"""Problem intake API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dependencies import get_problem_parser
from shared.utils.exceptions import InvalidInputError, TutorError
from tutor.models.messages import ParsedProblem
from tutor.services.problem_parser import ProblemParser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/problems", tags=["problems"])


class ParseProblemRequest(BaseModel):
    text: Optional[str] = Field(default=None, description="Typed problem")
    image: Optional[str] = Field(default=None, description="data: or https URL of a photographed problem")


@router.post("/parse", response_model=ParsedProblem)
async def parse_problem(
    request: ParseProblemRequest,
    parser: ProblemParser = Depends(get_problem_parser),
):
    """
    Normalize a typed problem or transcribe one from an image.

    Typed text wins when both are given.
    """
    try:
        if request.text and request.text.strip():
            return parser.parse_text(request.text)
        if request.image:
            return await parser.parse_image(request.image)
        raise InvalidInputError("problem", "either text or image is required")
    except TutorError as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.exception(f"Error parsing problem: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error parsing problem: {str(e)}")
