"""Casting router for the Filmflow API."""

from typing import List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from filmflow.api.dependencies import get_services
from filmflow.services import FilmflowServices

router = APIRouter()

limiter = Limiter(key_func=get_remote_address)


class ActorAnalysisRequest(BaseModel):
    character_name: str = Field(min_length=1)
    actor_name: str = Field(min_length=1)
    context: str = ""


class ActorAnalysisResponse(BaseModel):
    character_name: str
    actor_name: str
    fit_score: int
    strengths: List[str] = []
    concerns: List[str] = []
    recommendation: str = ""


@router.post("/actor-analysis", response_model=ActorAnalysisResponse)
@limiter.limit("10/minute")
async def analyze_actor(
    request: Request,
    analysis_request: ActorAnalysisRequest,
    services: FilmflowServices = Depends(get_services),
):
    """Rate how well one actor fits one character."""
    analysis = await services.analyze_single_actor_suggestion(
        analysis_request.character_name,
        analysis_request.actor_name,
        analysis_request.context,
    )
    return analysis.to_dict()
