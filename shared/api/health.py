"""Health check API endpoints."""
from fastapi import APIRouter, Depends

from dependencies import get_llm_service
from shared.services.llm_service import LLMService

router = APIRouter(tags=["health"])


@router.get("/")
def read_root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Socratic Tutor Backend",
        "version": "1.0.0"
    }


@router.get("/config/model")
def get_model_config(llm_service: LLMService = Depends(get_llm_service)):
    """Return the language-model provider and model currently serving tutor turns."""
    return {
        "provider": llm_service.provider,
        "model_id": llm_service.model_id,
    }
