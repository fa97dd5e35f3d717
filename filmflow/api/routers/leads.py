"""Lead capture router for the Filmflow API."""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from filmflow.api.dependencies import get_services
from filmflow.integrations.hubspot import LeadContact
from filmflow.services import FilmflowServices

router = APIRouter()

limiter = Limiter(key_func=get_remote_address)


class LeadRequest(BaseModel):
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    company_name: str = Field(min_length=1)
    phone_number: str = ""
    job_title: str = ""
    use_case: str = ""


@router.post("", status_code=202)
@limiter.limit("5/minute")
async def submit_lead(
    request: Request,
    lead_request: LeadRequest,
    background_tasks: BackgroundTasks,
    services: FilmflowServices = Depends(get_services),
):
    """Accept a demo request; CRM sync happens in the background."""
    contact = LeadContact(**lead_request.model_dump())
    background_tasks.add_task(services.submit_lead, contact)
    return {"accepted": True}
