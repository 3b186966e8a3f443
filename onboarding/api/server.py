"""
FastAPI REST API server for onboarding sessions.

Exposes process selection and the session query/command surface to a
presentation layer. The presentation layer never re-derives transition
logic; it renders the compiled step it is handed.

Usage:
    # Run standalone
    python -m onboarding.api.server

    # Or via factory
    from onboarding.api import create_app
    app = create_app()
    uvicorn.run(app, port=5002)

API Structure:
    /api/processes/        - Process listing and selection (from routes/processes.py)
    /api/sessions/         - Session query and commands (from routes/sessions.py)
    /api/health            - Health check
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from onboarding.config.runtime_config import get_settings
from onboarding.runtime.service import SessionService
from onboarding.runtime.storage import StateStore
from onboarding.spec.catalog import ProcessCatalog

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Response for health endpoint."""

    status: str
    environment: str
    process_count: int
    cache_enabled: bool
    timestamp: str


# =============================================================================
# Global Service Instance
# =============================================================================

_session_service: Optional[SessionService] = None


def get_session_service() -> SessionService:
    """Get the global SessionService instance."""
    global _session_service
    if _session_service is None:
        _session_service = SessionService.get_instance()
    return _session_service


# =============================================================================
# FastAPI Application Factory
# =============================================================================


def create_app(
    data_root: Optional[Path] = None,
    state_dir: Optional[Path] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        data_root: Definition root holding processes/ and tasks/.
        state_dir: Directory for per-subject state records.
        enable_cors: Whether to enable CORS middleware.

    Returns:
        Configured FastAPI application.
    """
    global _session_service
    _session_service = SessionService(
        catalog=ProcessCatalog(data_root),
        store=StateStore(state_dir),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Warm the process catalog so the first request does not load it."""
        logger.info("Onboarding API server starting...")
        processes = get_session_service().catalog.processes()
        logger.info("Loaded %d process definition(s)", len(processes))
        yield
        logger.info("Onboarding API server shutting down...")

    app = FastAPI(
        title="Onboarding Flow API",
        description="Process selection and session execution for declarative onboarding processes.",
        version="1.0.0",
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    from .routes import processes_router, sessions_router

    app.include_router(processes_router, prefix="/api")
    app.include_router(sessions_router, prefix="/api")

    @app.get("/api/health", response_model=HealthResponse)
    def health_check():
        """Health check endpoint."""
        service = get_session_service()
        settings = get_settings()
        return HealthResponse(
            status="ok",
            environment=settings.environment,
            process_count=len(service.catalog.processes()),
            cache_enabled=service.catalog.cache_enabled,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )

    return app


def main():
    """Run the API server."""
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Onboarding API Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5002, help="Port to bind to")
    parser.add_argument("--data-dir", type=Path, help="Definition root (defaults to config)")
    parser.add_argument("--state-dir", type=Path, help="State directory (defaults to config)")
    parser.add_argument("--no-cors", action="store_true", help="Disable CORS")
    args = parser.parse_args()

    app = create_app(
        data_root=args.data_dir,
        state_dir=args.state_dir,
        enable_cors=not args.no_cors,
    )

    print(f"Starting onboarding API server at http://{args.host}:{args.port}")
    print("  GET    /api/processes                 - List process definitions")
    print("  GET    /api/processes/select          - Compiled process for a subject profile")
    print("  GET    /api/sessions                  - List subject ids")
    print("  GET    /api/sessions/{id}             - Session state and progress")
    print("  POST   /api/sessions/{id}             - Start a session")
    print("  PATCH  /api/sessions/{id}             - Update inputs / advance / go back")
    print("  DELETE /api/sessions/{id}             - Delete a session")
    print("  GET    /api/health                    - Health check")

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
