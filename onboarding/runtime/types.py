"""
types.py - Execution state and engine result types.

ExecutionState is the only mutable type in the runtime: one instance per
subject, persisted as JSON by the StateStore. The engine results are
frozen and carry no behavior.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from onboarding.spec.types import END_STEP


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _datetime_to_iso(dt: datetime) -> str:
    """Convert a datetime to an ISO 8601 string in UTC with a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _iso_to_datetime(iso_str: str) -> datetime:
    """Parse an ISO 8601 string; naive values are taken as UTC."""
    if iso_str.endswith("Z"):
        iso_str = iso_str[:-1] + "+00:00"
    dt = datetime.fromisoformat(iso_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# Execution State
# =============================================================================


@dataclass
class ExecutionState:
    """Per-subject execution position and collected inputs.

    Attributes:
        subject_id: Subject this record belongs to.
        process_id: Compiled process the session runs against.
        current_step_id: Current step, or END once the process finished.
        inputs: Collected field values (string, number, bool, list or None).
        completed_steps: Completed step ids, oldest first, without duplicates.
        current_stage: Stage of the current step (derived, kept for readers).
        last_updated: UTC timestamp of the last accepted change.
    """

    subject_id: str
    process_id: str
    current_step_id: str
    inputs: Dict[str, Any] = field(default_factory=dict)
    completed_steps: List[str] = field(default_factory=list)
    current_stage: Optional[str] = None
    last_updated: datetime = field(default_factory=_utcnow)

    @property
    def is_finished(self) -> bool:
        return self.current_step_id == END_STEP

    def mark_completed(self, step_id: str) -> None:
        if step_id not in self.completed_steps:
            self.completed_steps.append(step_id)

    def touch(self) -> None:
        self.last_updated = _utcnow()


def execution_state_to_dict(state: ExecutionState) -> Dict[str, Any]:
    """Convert ExecutionState to a JSON-serializable dictionary."""
    return {
        "subject_id": state.subject_id,
        "process_id": state.process_id,
        "current_step_id": state.current_step_id,
        "inputs": dict(state.inputs),
        "completed_steps": list(state.completed_steps),
        "current_stage": state.current_stage,
        "last_updated": _datetime_to_iso(state.last_updated),
    }


def execution_state_from_dict(data: Dict[str, Any]) -> ExecutionState:
    """Parse ExecutionState from a dictionary.

    Raises:
        KeyError: If a mandatory key is missing.
        TypeError, ValueError: If a value has the wrong shape.
    """
    inputs = data.get("inputs") or {}
    if not isinstance(inputs, dict):
        raise TypeError("inputs must be an object")

    completed: List[str] = []
    for step_id in data.get("completed_steps") or []:
        if step_id not in completed:
            completed.append(step_id)

    last_updated = data.get("last_updated")
    return ExecutionState(
        subject_id=data["subject_id"],
        process_id=data["process_id"],
        current_step_id=data["current_step_id"],
        inputs=dict(inputs),
        completed_steps=completed,
        current_stage=data.get("current_stage"),
        last_updated=_iso_to_datetime(last_updated) if last_updated else _utcnow(),
    )


# =============================================================================
# Engine Results
# =============================================================================


@dataclass(frozen=True)
class AdvanceResult:
    """Outcome of an advance attempt.

    ok=False means the advance was blocked; missing_fields names every
    required field without a value and next_step_id is the unchanged step.
    """
    next_step_id: str
    ok: bool
    missing_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    """Field-level validation of a step's inputs."""
    valid: bool
    errors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ProcessProgress:
    total: int
    completed: int
    remaining: int
    percentage: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "remaining": self.remaining,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class StageProgress:
    stage_id: str
    stage_name: str
    total: int
    completed: int
    percentage: int

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.completed == self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_id": self.stage_id,
            "stage_name": self.stage_name,
            "total": self.total,
            "completed": self.completed,
            "percentage": self.percentage,
        }
