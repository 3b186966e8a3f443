"""
Routes package for the onboarding API.

This package contains the FastAPI routers for:
- processes: Process listing and selection by subject profile
- sessions: Session query and command endpoints
"""

from .processes import router as processes_router
from .sessions import router as sessions_router

__all__ = [
    "processes_router",
    "sessions_router",
]
