"""Shared request dependencies for the Filmflow API."""

from fastapi import Request

from filmflow.core.config import get_config
from filmflow.services import FilmflowServices


def get_services(request: Request) -> FilmflowServices:
    """Return the application's services, building them on first use."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = FilmflowServices(get_config())
        request.app.state.services = services
    return services
