"""
Process endpoints for the onboarding API.

Provides REST endpoints for:
- Listing loaded process definitions
- Selecting the compiled process for a subject profile
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from onboarding.spec.types import SubjectProfile, process_summary_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/processes", tags=["processes"])


class ProcessSummary(BaseModel):
    """Process summary for list endpoint."""

    id: str
    name: str
    version: int
    description: str = ""
    applies_to: Optional[Dict[str, Any]] = None
    step_count: int


class ProcessListResponse(BaseModel):
    """Response for list processes endpoint."""

    processes: List[ProcessSummary]


def _service():
    from ..server import get_session_service

    return get_session_service()


@router.get("", response_model=ProcessListResponse)
def list_processes():
    """List every successfully loaded process definition."""
    processes = _service().catalog.processes()
    return ProcessListResponse(
        processes=[ProcessSummary(**process_summary_to_dict(p)) for p in processes]
    )


@router.get("/select")
def select_process(subject_type: str, jurisdiction: str = ""):
    """Get the compiled process that applies to a subject profile.

    Args:
        subject_type: Subject type, e.g. "corporate".
        jurisdiction: Jurisdiction code, e.g. "US".

    Returns:
        The compiled process in its wire form.

    Raises:
        404: No process applies to the profile.
    """
    profile = SubjectProfile(subject_type=subject_type, jurisdiction=jurisdiction)
    compiled = _service().select_process(profile)
    if compiled is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "process_not_found",
                "message": f"No process applies to subject type '{subject_type}'",
                "details": {"subject_type": subject_type, "jurisdiction": jurisdiction},
            },
        )
    return compiled.to_dict()
