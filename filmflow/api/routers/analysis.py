"""Analysis pipeline router for the Filmflow API."""

from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from filmflow.api.dependencies import get_services
from filmflow.core.logging_config import get_logger
from filmflow.services import FilmflowServices

logger = get_logger("api.analysis")

router = APIRouter()

# Analysis runs are the most expensive operation
limiter = Limiter(key_func=get_remote_address)


class StartAnalysisRequest(BaseModel):
    stages: Optional[List[str]] = None


class StartAnalysisResponse(BaseModel):
    accepted: bool
    project_id: str
    stages: List[str]


class StageError(BaseModel):
    message: Optional[str] = None
    kind: Optional[str] = None


class ProgressResponse(BaseModel):
    project_id: str
    percent_complete: float
    running: bool
    stages: Dict[str, str]
    errors: Dict[str, StageError] = {}


@router.post("/{project_id}/start", response_model=StartAnalysisResponse, status_code=202)
@limiter.limit("10/minute")
async def start_analysis(
    request: Request,
    project_id: str,
    background_tasks: BackgroundTasks,
    analysis_request: Optional[StartAnalysisRequest] = None,
    services: FilmflowServices = Depends(get_services),
):
    """
    Start an analysis run and return immediately.

    Rejected with 409 while another run is active for the project.
    """
    stages = analysis_request.stages if analysis_request else None
    requested = services.accept_pipeline(project_id, stages)
    background_tasks.add_task(services.execute_pipeline, project_id, requested)
    logger.info(f"Analysis accepted for {project_id}: {', '.join(requested)}")
    return StartAnalysisResponse(accepted=True, project_id=project_id, stages=requested)


@router.get("/{project_id}/progress", response_model=ProgressResponse)
async def get_progress(project_id: str, services: FilmflowServices = Depends(get_services)):
    """Get per-stage status and percent complete."""
    return services.get_progress(project_id)


@router.post("/{project_id}/cancel")
async def cancel_analysis(project_id: str, services: FilmflowServices = Depends(get_services)):
    """Request cancellation; the current stage finishes first."""
    cancelled = services.cancel_pipeline(project_id)
    return {"project_id": project_id, "cancelled": cancelled}
