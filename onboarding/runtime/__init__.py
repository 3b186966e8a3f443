# onboarding/runtime package
# Executes onboarding sessions against compiled processes and persists their state.
#
# Core components:
#   - types: ExecutionState plus engine result dataclasses
#   - engine: ExecutionEngine (gating, first-match-wins transitions, progress)
#   - storage: StateStore with atomic per-subject JSON records
#   - service: SessionService tying catalog, engine and store together
#
# Usage:
#     from onboarding.runtime import SessionService
#     service = SessionService.get_instance()
#     service.start_session("acme-corp", SubjectProfile("corporate", "US"))
#     outcome = service.apply("acme-corp", inputs={...}, advance=True)

from .engine import (
    ExecutionEngine,
    compute_next_step,
    missing_required_fields,
    validate_field_values,
)
from .errors import (
    InvalidInputValue,
    InvalidSessionState,
    InvalidSubjectId,
    ProcessNotAvailable,
    SessionAlreadyExists,
    SessionError,
    SessionNotFound,
    StorageError,
)
from .service import ApplyResult, SessionService
from .storage import StateStore
from .types import (
    AdvanceResult,
    ExecutionState,
    ProcessProgress,
    StageProgress,
    ValidationResult,
    execution_state_from_dict,
    execution_state_to_dict,
)

__all__ = [
    # Types
    "AdvanceResult",
    "ExecutionState",
    "ProcessProgress",
    "StageProgress",
    "ValidationResult",
    "execution_state_from_dict",
    "execution_state_to_dict",
    # Errors
    "InvalidInputValue",
    "InvalidSessionState",
    "InvalidSubjectId",
    "ProcessNotAvailable",
    "SessionAlreadyExists",
    "SessionError",
    "SessionNotFound",
    "StorageError",
    # Engine
    "ExecutionEngine",
    "compute_next_step",
    "missing_required_fields",
    "validate_field_values",
    # Storage and service
    "StateStore",
    "SessionService",
    "ApplyResult",
]
