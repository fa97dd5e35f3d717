"""API routers for Filmflow."""

from filmflow.api.routers import analysis, casting, leads, projects, storyboard

__all__ = ["analysis", "casting", "leads", "projects", "storyboard"]
