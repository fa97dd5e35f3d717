"""Projects router for the Filmflow API."""

import base64
import binascii
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, model_validator
from slowapi import Limiter
from slowapi.util import get_remote_address

from filmflow.analysis.script_document import PDF_MIME_TYPE
from filmflow.api.dependencies import get_services
from filmflow.core.constants import BudgetTier, StageName
from filmflow.core.logging_config import get_logger
from filmflow.services import FilmflowServices

logger = get_logger("api.projects")

router = APIRouter()

limiter = Limiter(key_func=get_remote_address)


class CreateProjectRequest(BaseModel):
    title: str = ""
    script_content: str = ""
    script_document_base64: Optional[str] = None
    script_mime_type: str = PDF_MIME_TYPE
    total_budget: Decimal = Field(default=Decimal("0"), ge=0)
    budget_tier: BudgetTier = BudgetTier.MEDIUM
    logline: str = ""
    synopsis: str = ""
    expected_release_date: Optional[str] = None

    @model_validator(mode="after")
    def check_script_source(self) -> "CreateProjectRequest":
        """Script text and an uploaded document are mutually exclusive."""
        if self.script_document_base64 is None:
            if not self.title.strip():
                raise ValueError("title is required unless a script document is uploaded")
            return self
        if self.script_content:
            raise ValueError("send either script_content or script_document_base64, not both")
        self.script_document()
        return self

    def script_document(self) -> bytes:
        try:
            return base64.b64decode(self.script_document_base64, validate=True)
        except binascii.Error as e:
            raise ValueError(f"script_document_base64 is not valid base64: {e}")


class ProjectResponse(BaseModel):
    id: str
    title: str
    total_budget: str
    budget_tier: str
    logline: str = ""
    synopsis: str = ""
    expected_release_date: Optional[str] = None


def _project_response(project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        title=project.title,
        total_budget=str(project.total_budget),
        budget_tier=project.budget_tier.value,
        logline=project.logline,
        synopsis=project.synopsis,
        expected_release_date=project.expected_release_date,
    )


@router.post("", response_model=ProjectResponse, status_code=201)
@limiter.limit("30/minute")
async def create_project(
    request: Request,
    project_request: CreateProjectRequest,
    services: FilmflowServices = Depends(get_services),
):
    """Create a project from screenplay text or an uploaded PDF or image, plus a budget."""
    fields = dict(
        total_budget=project_request.total_budget,
        budget_tier=project_request.budget_tier,
        logline=project_request.logline,
        synopsis=project_request.synopsis,
        expected_release_date=project_request.expected_release_date,
    )
    if project_request.script_document_base64 is not None:
        project = await services.create_project_from_document(
            project_request.script_document(),
            project_request.script_mime_type,
            title=project_request.title.strip(),
            **fields,
        )
    else:
        project = services.create_project(
            title=project_request.title,
            script_content=project_request.script_content,
            **fields,
        )
    logger.info(f"Created project {project.id}: {project.title}")
    return _project_response(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, services: FilmflowServices = Depends(get_services)):
    """Get a project by id."""
    return _project_response(services.store.get_project(project_id))


@router.get("/{project_id}/artifacts/{stage_name}")
async def get_artifact(project_id: str, stage_name: StageName, services: FilmflowServices = Depends(get_services)):
    """Get the stored output of one analysis stage."""
    services.store.get_project(project_id)
    artifact = services.store.get_artifact(project_id, stage_name)
    if artifact is None:
        return {"stage": stage_name.value, "available": False, "data": None}
    if isinstance(artifact, list):
        data = [item.to_dict() if hasattr(item, "to_dict") else item for item in artifact]
    elif hasattr(artifact, "to_dict"):
        data = artifact.to_dict()
    else:
        data = artifact
    return {"stage": stage_name.value, "available": True, "data": data}
