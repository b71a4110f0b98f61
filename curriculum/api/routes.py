"""Concept mastery and learning path API endpoints."""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from curriculum.models import ConceptRecord, LearningPath
from curriculum.services.progress_service import CurriculumProgressService, LearningPathNotFoundError
from dependencies import get_owner_id, get_progress_service
from shared.utils.exceptions import InvalidInputError
from tutor.models.messages import ParsedProblem

router = APIRouter(tags=["curriculum"])


class ConceptSummary(BaseModel):
    concept_id: str
    name: str
    category: str


class ExtractConceptsResponse(BaseModel):
    concept_ids: List[str]
    concepts: List[ConceptSummary]


class ConceptsResponse(BaseModel):
    concepts: List[ConceptRecord] = Field(description="Lowest mastery first")
    by_category: Dict[str, List[str]]
    suggested: List[str] = Field(description="Unmastered concepts related to the weakest ones")


class RelatedConceptsResponse(BaseModel):
    concept_id: str
    related: List[ConceptSummary]


class CreateLearningPathRequest(BaseModel):
    goal: str = Field(..., min_length=1, description="Free-text goal, e.g. 'master algebra'")


class AdvanceLearningPathRequest(BaseModel):
    concept_id: str


def require_owner(owner_id: Optional[str] = Depends(get_owner_id)) -> str:
    """Progress is per learner, so these endpoints need an owner."""
    if owner_id is None:
        raise InvalidInputError("X-User-Id", "header is required").to_http_exception()
    return owner_id


def _summary(service: CurriculumProgressService, concept_id: str) -> ConceptSummary:
    catalog = service.tracker.catalog
    return ConceptSummary(
        concept_id=concept_id,
        name=catalog.name_for(concept_id),
        category=catalog.category_for(concept_id),
    )


# ─── Concepts ─────────────────────────────────────────────────────────

@router.post("/concepts/extract", response_model=ExtractConceptsResponse)
def extract_concepts(
    problem: ParsedProblem,
    service: CurriculumProgressService = Depends(get_progress_service),
):
    """Concepts a problem exercises, in catalog order."""
    concept_ids = service.tracker.extract_concepts(problem)
    return ExtractConceptsResponse(
        concept_ids=concept_ids,
        concepts=[_summary(service, concept_id) for concept_id in concept_ids],
    )


@router.get("/concepts", response_model=ConceptsResponse)
def get_concepts(
    owner_id: str = Depends(require_owner),
    service: CurriculumProgressService = Depends(get_progress_service),
):
    """The learner's concept records with category grouping and practice suggestions."""
    grouped = service.get_concepts_by_category(owner_id)
    return ConceptsResponse(
        concepts=service.get_concepts(owner_id),
        by_category={
            category: [record.concept_id for record in records]
            for category, records in grouped.items()
        },
        suggested=service.suggested_concepts(owner_id),
    )


@router.get("/concepts/practice", response_model=List[ConceptRecord])
def get_practice_concepts(
    threshold: Optional[int] = Query(None, ge=0, le=100, description="Defaults to the mastery threshold"),
    owner_id: str = Depends(require_owner),
    service: CurriculumProgressService = Depends(get_progress_service),
):
    """Concepts below the threshold, weakest first."""
    return service.concepts_needing_practice(owner_id, threshold)


@router.get("/concepts/{concept_id}/related", response_model=RelatedConceptsResponse)
def get_related_concepts(
    concept_id: str,
    service: CurriculumProgressService = Depends(get_progress_service),
):
    """Catalog neighbours of a concept."""
    if concept_id not in service.tracker.catalog:
        raise HTTPException(status_code=404, detail=f"Concept {concept_id} not found")
    return RelatedConceptsResponse(
        concept_id=concept_id,
        related=[_summary(service, related) for related in service.tracker.related_concepts(concept_id)],
    )


# ─── Learning paths ───────────────────────────────────────────────────

@router.post("/learning-paths", response_model=LearningPath)
def create_learning_path(
    request: CreateLearningPathRequest,
    owner_id: str = Depends(require_owner),
    service: CurriculumProgressService = Depends(get_progress_service),
):
    """Generate a prerequisite-ordered path for a goal."""
    return service.create_learning_path(owner_id, request.goal)


@router.get("/learning-paths", response_model=List[LearningPath])
def list_learning_paths(
    owner_id: str = Depends(require_owner),
    service: CurriculumProgressService = Depends(get_progress_service),
):
    return service.list_learning_paths(owner_id)


@router.get("/learning-paths/{path_id}", response_model=LearningPath)
def get_learning_path(
    path_id: str,
    owner_id: str = Depends(require_owner),
    service: CurriculumProgressService = Depends(get_progress_service),
):
    try:
        return service.get_learning_path(owner_id, path_id)
    except LearningPathNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/learning-paths/{path_id}/advance", response_model=LearningPath)
def advance_learning_path(
    path_id: str,
    request: AdvanceLearningPathRequest,
    owner_id: str = Depends(require_owner),
    service: CurriculumProgressService = Depends(get_progress_service),
):
    """Mark a concept's step completed. Repeating the call changes nothing."""
    try:
        return service.advance_learning_path(owner_id, path_id, request.concept_id)
    except LearningPathNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
