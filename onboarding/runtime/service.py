"""
service.py - SessionService orchestrator

This module composes the process catalog, the execution engine and the
state store. Every command holds the subject's lock across its whole
load-mutate-save cycle, so two requests for the same subject never
interleave; requests for different subjects proceed in parallel.

Usage:
    from onboarding.runtime.service import SessionService

    service = SessionService.get_instance()
    service.start_session("acme-corp", SubjectProfile("corporate", "US"))
    outcome = service.apply("acme-corp", inputs={"legal_name": "Acme"}, advance=True)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from onboarding.spec.catalog import ProcessCatalog
from onboarding.spec.compiler import CompiledProcess, compiled_step_to_dict
from onboarding.spec.types import SubjectProfile

from .engine import ExecutionEngine, validate_field_values
from .errors import InvalidSessionState, ProcessNotAvailable
from .storage import StateStore
from .types import ExecutionState, execution_state_to_dict

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of a session command.

    success is False when a requested advance was blocked; the state still
    reflects any accepted input update.
    """
    success: bool
    state: ExecutionState
    missing_fields: Tuple[str, ...] = ()
    validation_errors: Tuple[str, ...] = ()


class SessionService:
    """Central service for executing onboarding sessions.

    API routes use this service rather than touching the catalog, engine or
    store directly.
    """

    _instance: Optional["SessionService"] = None

    def __init__(
        self,
        catalog: Optional[ProcessCatalog] = None,
        store: Optional[StateStore] = None,
    ):
        self.catalog = catalog or ProcessCatalog()
        self.store = store or StateStore()

    @classmethod
    def get_instance(cls) -> "SessionService":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # =========================================================================
    # Process selection
    # =========================================================================

    def select_process(self, profile: SubjectProfile) -> Optional[CompiledProcess]:
        return self.catalog.select(profile)

    def _engine_for(self, state: ExecutionState) -> ExecutionEngine:
        process = self.catalog.get(state.process_id)
        if process is None:
            raise InvalidSessionState(
                state.subject_id, f"process '{state.process_id}' is not available"
            )
        return ExecutionEngine(process)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_session(self, subject_id: str) -> ExecutionState:
        """Load a subject's state.

        Raises:
            SessionNotFound: If the subject has no session.
        """
        return self.store.load(subject_id)

    def describe_session(self, subject_id: str) -> Dict[str, Any]:
        """State plus the derived view a presentation layer needs."""
        state = self.store.load(subject_id)
        engine = self._engine_for(state)
        engine.check_state(state)

        current_step = None
        if not state.is_finished:
            current_step = compiled_step_to_dict(engine.current_step(state))

        return {
            "state": execution_state_to_dict(state),
            "is_complete": state.is_finished,
            "current_step": current_step,
            "progress": engine.progress(state).to_dict(),
            "stages": [s.to_dict() for s in engine.stage_progress(state)],
        }

    def list_sessions(self) -> List[str]:
        return self.store.list_subjects()

    # =========================================================================
    # Commands
    # =========================================================================

    def start_session(
        self,
        subject_id: str,
        profile: Optional[SubjectProfile] = None,
        process_id: Optional[str] = None,
        exist_ok: bool = False,
    ) -> ExecutionState:
        """Create a session positioned at the process's initial step.

        The process is chosen by explicit id, else by subject profile.

        Raises:
            ProcessNotAvailable: If no compiled process matches.
            SessionAlreadyExists: If the subject already has a session and
                exist_ok is False.
        """
        if process_id:
            process = self.catalog.get(process_id)
            wanted = f"process '{process_id}'"
        elif profile is not None:
            process = self.catalog.select(profile)
            wanted = f"subject_type '{profile.subject_type}' jurisdiction '{profile.jurisdiction}'"
        else:
            raise ValueError("start_session needs a profile or a process_id")

        if process is None:
            raise ProcessNotAvailable(wanted)

        with self.store.lock(subject_id):
            if exist_ok and self.store.exists(subject_id):
                return self.store.load(subject_id)
            initial = process.initial_step
            return self.store.initialize(
                subject_id, process.process_id, initial.id, current_stage=initial.stage
            )

    def apply(
        self,
        subject_id: str,
        inputs: Optional[Mapping[str, Any]] = None,
        advance: bool = False,
        back: bool = False,
    ) -> ApplyResult:
        """Apply an input patch and/or a navigation request.

        Order: go back, merge inputs, then advance. An advance is blocked
        while required fields are missing or provided values break a field
        rule; accepted input updates are persisted either way.

        Raises:
            SessionNotFound: If the subject has no session.
            InvalidSessionState: If the session cannot run against its process.
            InvalidInputValue: If the patch holds an unsupported value.
            StorageError: If the record cannot be read or written.
        """
        with self.store.lock(subject_id):
            state = self.store.load(subject_id)
            engine = self._engine_for(state)
            engine.check_state(state)

            changed = False
            if back:
                engine.go_back(state)
                changed = True

            if inputs:
                engine.update_inputs(state, inputs)
                changed = True

            success = True
            missing: Tuple[str, ...] = ()
            errors: Tuple[str, ...] = ()
            if advance:
                step = engine.current_step(state)
                errors = tuple(validate_field_values(step, state.inputs))
                if errors:
                    success = False
                    missing = tuple(engine.missing_fields(state))
                else:
                    result = engine.advance(state)
                    success = result.ok
                    missing = result.missing_fields
                    changed = changed or result.ok

            if changed:
                self.store.save(state)

            return ApplyResult(
                success=success,
                state=state,
                missing_fields=missing,
                validation_errors=errors,
            )

    def reset_session(self, subject_id: str) -> ExecutionState:
        """Return a session to its initial step with no inputs."""
        with self.store.lock(subject_id):
            state = self.store.load(subject_id)
            engine = self._engine_for(state)
            engine.reset(state)
            self.store.save(state)
            logger.info("Reset session for '%s'", subject_id)
            return state

    def delete_session(self, subject_id: str) -> bool:
        return self.store.delete(subject_id)
