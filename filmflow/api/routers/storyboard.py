"""Storyboard router for the Filmflow API."""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from filmflow.api.dependencies import get_services
from filmflow.core.logging_config import get_logger
from filmflow.services import FilmflowServices

logger = get_logger("api.storyboard")

router = APIRouter()

limiter = Limiter(key_func=get_remote_address)


class SceneImageStatusResponse(BaseModel):
    scene_id: str
    status: str


class GenerateResponse(BaseModel):
    accepted: bool
    project_id: str


@router.post("/{project_id}/generate", response_model=GenerateResponse, status_code=202)
@limiter.limit("5/minute")
async def generate_storyboard(
    request: Request,
    project_id: str,
    background_tasks: BackgroundTasks,
    services: FilmflowServices = Depends(get_services),
):
    """Generate storyboard frames for every scene that has none yet."""
    services.store.get_project(project_id)
    services.accept_visual_batch(project_id)
    background_tasks.add_task(services.execute_visual_batch, project_id)
    logger.info(f"Storyboard batch accepted for {project_id}")
    return GenerateResponse(accepted=True, project_id=project_id)


@router.get("/{project_id}/status", response_model=List[SceneImageStatusResponse])
async def get_storyboard_status(project_id: str, services: FilmflowServices = Depends(get_services)):
    """Per-scene image status for the project's storyboard."""
    return services.get_visual_batch_status(project_id)


@router.post("/{project_id}/cancel")
async def cancel_storyboard(project_id: str, services: FilmflowServices = Depends(get_services)):
    """Stop the batch before its next scene."""
    return {"project_id": project_id, "cancelled": services.cancel_visual_batch(project_id)}
