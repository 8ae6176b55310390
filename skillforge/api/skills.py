from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from skillforge.core.generation import SkillGenerationService
from skillforge.core.workflow import InputState, ReviewState, run_generation
from skillforge.errors import GenerationErrorCode
from skillforge.schemas.package import ErrorDetail, GenerateRequest, GenerateResponse

log = structlog.get_logger()

router = APIRouter()


def get_generation_service() -> SkillGenerationService:
    return SkillGenerationService()


@router.post("/generate", response_model=GenerateResponse)
async def generate_skills(
    body: GenerateRequest,
    service: Annotated[SkillGenerationService, Depends(get_generation_service)],
) -> GenerateResponse:
    """Ask the model for a fresh skill set for the given idea."""
    state = await run_generation(InputState(), body.metadata, service)
    if isinstance(state, ReviewState):
        return GenerateResponse(skills=state.skills)

    error = state.error
    if error is None:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Generation ended without a result")

    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if error.code == GenerationErrorCode.missing_key
        else status.HTTP_502_BAD_GATEWAY
    )
    raise HTTPException(
        status_code,
        detail=ErrorDetail(code=error.code, message=error.message).model_dump(),
    )
