"""
Onboarding API - FastAPI REST API for process selection and sessions.

Endpoints:
    GET    /api/processes                 - List process definitions
    GET    /api/processes/select          - Compiled process for a subject profile
    GET    /api/sessions                  - List subject ids
    GET    /api/sessions/{id}             - Session state, progress and current step
    POST   /api/sessions/{id}             - Start a session
    PATCH  /api/sessions/{id}             - Update inputs / advance / go back
    DELETE /api/sessions/{id}             - Delete a session
    GET    /api/health                    - Health check

Usage:
    from onboarding.api import create_app

    app = create_app()
"""

from .server import create_app, get_session_service

__all__ = [
    "create_app",
    "get_session_service",
]
