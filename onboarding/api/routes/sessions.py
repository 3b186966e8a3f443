"""
Session endpoints for the onboarding API.

Provides REST endpoints for:
- Listing subjects with a session
- Reading a session with its progress and current step
- Starting a session for a subject profile or explicit process
- Applying input patches, advancing and going back
- Deleting a session (explicit reset)

Endpoints are plain functions: FastAPI runs them in its threadpool, which
keeps the blocking per-subject locks and file I/O off the event loop.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from onboarding.runtime.errors import (
    InvalidInputValue,
    InvalidSessionState,
    InvalidSubjectId,
    ProcessNotAvailable,
    SessionAlreadyExists,
    SessionError,
    SessionNotFound,
    StorageError,
)
from onboarding.runtime.types import execution_state_to_dict
from onboarding.spec.types import SubjectProfile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


# =============================================================================
# Pydantic Models
# =============================================================================


class SessionStartRequest(BaseModel):
    """Request to start a session."""

    subject_type: Optional[str] = Field(None, description="Subject type used for selection")
    jurisdiction: str = Field("", description="Jurisdiction used for selection")
    process_id: Optional[str] = Field(None, description="Explicit process (overrides selection)")


class SessionPatchRequest(BaseModel):
    """Input patch and/or navigation request."""

    inputs: Optional[Dict[str, Any]] = Field(None, description="Fields to shallow-merge")
    advance: bool = Field(False, description="Advance after applying inputs")
    back: bool = Field(False, description="Return to the previous completed step first")


class SessionPatchResponse(BaseModel):
    """Result of a patch request."""

    success: bool
    state: Dict[str, Any]
    missing_fields: List[str] = []
    validation_errors: List[str] = []


class SessionListResponse(BaseModel):
    """Response for list sessions endpoint."""

    subjects: List[str]


def _service():
    from ..server import get_session_service

    return get_session_service()


_ERROR_MAP = (
    (SessionNotFound, 404, "session_not_found"),
    (ProcessNotAvailable, 404, "process_not_found"),
    (SessionAlreadyExists, 409, "session_exists"),
    (InvalidSessionState, 409, "invalid_session_state"),
    (InvalidInputValue, 422, "invalid_input"),
    (InvalidSubjectId, 422, "invalid_input"),
    (StorageError, 500, "storage_error"),
)


def _http_error(subject_id: str, error: SessionError) -> HTTPException:
    """Translate a runtime error into the API's structured error shape."""
    status_code, code = 500, "session_error"
    for error_type, error_status, error_code in _ERROR_MAP:
        if isinstance(error, error_type):
            status_code, code = error_status, error_code
            break

    if status_code >= 500:
        logger.error("Session request for '%s' failed: %s", subject_id, error)
    return HTTPException(
        status_code=status_code,
        detail={
            "error": code,
            "message": str(error),
            "details": {"subject_id": subject_id},
        },
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=SessionListResponse)
def list_sessions():
    """List subject ids that have a session."""
    return SessionListResponse(subjects=_service().list_sessions())


@router.get("/{subject_id}")
def get_session(subject_id: str):
    """Get a session with its progress and current step.

    Raises:
        404: Session not found.
        409: Session is stale for its process.
    """
    try:
        return _service().describe_session(subject_id)
    except SessionError as e:
        raise _http_error(subject_id, e)


@router.post("/{subject_id}", status_code=201)
def start_session(subject_id: str, request: SessionStartRequest):
    """Start a session at the selected process's initial step.

    Raises:
        404: No process matches.
        409: Session already exists.
        422: Neither subject_type nor process_id given.
    """
    if not request.subject_type and not request.process_id:
        raise HTTPException(
            status_code=422,
            detail={
                "error": "invalid_input",
                "message": "subject_type or process_id is required",
                "details": {"subject_id": subject_id},
            },
        )

    profile = None
    if request.subject_type:
        profile = SubjectProfile(
            subject_type=request.subject_type, jurisdiction=request.jurisdiction
        )

    try:
        state = _service().start_session(
            subject_id, profile=profile, process_id=request.process_id
        )
    except SessionError as e:
        raise _http_error(subject_id, e)

    return {"state": execution_state_to_dict(state)}


@router.patch("/{subject_id}", response_model=SessionPatchResponse)
def patch_session(subject_id: str, request: SessionPatchRequest):
    """Apply an input patch and/or a navigation request.

    A blocked advance is not an error: success is false and the missing
    fields and validation errors say why.

    Raises:
        404: Session not found.
        409: Session is stale, finished, or cannot go back.
        422: Unsupported input value.
    """
    try:
        result = _service().apply(
            subject_id,
            inputs=request.inputs,
            advance=request.advance,
            back=request.back,
        )
    except SessionError as e:
        raise _http_error(subject_id, e)

    return SessionPatchResponse(
        success=result.success,
        state=execution_state_to_dict(result.state),
        missing_fields=list(result.missing_fields),
        validation_errors=list(result.validation_errors),
    )


@router.delete("/{subject_id}")
def delete_session(subject_id: str):
    """Delete a session.

    Raises:
        404: Session not found.
    """
    try:
        deleted = _service().delete_session(subject_id)
    except SessionError as e:
        raise _http_error(subject_id, e)

    if not deleted:
        raise _http_error(subject_id, SessionNotFound(subject_id))
    return {"deleted": True, "subject_id": subject_id}
