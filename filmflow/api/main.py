"""Main FastAPI application for Filmflow."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

# Load environment variables using centralized loader
from filmflow.core.env_loader import ensure_env_loaded
ensure_env_loaded()

from filmflow import __version__
from filmflow.api.routers import analysis, casting, leads, projects, storyboard
from filmflow.core.exceptions import (
    ConfigurationError,
    ExtractionFailure,
    FilmflowError,
    LLMError,
    NotFoundError,
    PipelineAlreadyRunning,
    PipelineError,
)
from filmflow.core.logging_config import get_logger

logger = get_logger("api.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.aclose()


# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="Filmflow API",
    description="API for AI-assisted film pre-production analysis",
    version=__version__,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware for web UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first; the first matching class decides the status code
ERROR_STATUS = (
    (NotFoundError, 404),
    (PipelineAlreadyRunning, 409),
    (PipelineError, 422),
    (ConfigurationError, 503),
    (LLMError, 502),
    (ExtractionFailure, 502),
)


@app.exception_handler(FilmflowError)
async def filmflow_error_handler(request: Request, exc: FilmflowError):
    """Map domain errors to HTTP responses."""
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": exc.message},
    )


# Include routers
app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
app.include_router(storyboard.router, prefix="/api/storyboard", tags=["storyboard"])
app.include_router(casting.router, prefix="/api/casting", tags=["casting"])
app.include_router(leads.router, prefix="/api/leads", tags=["leads"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Filmflow API", "version": __version__}


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "filmflow.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="warning",  # Suppress INFO logs for each request
    )


if __name__ == "__main__":
    start_server()
