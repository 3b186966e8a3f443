"""
engine.py - Execute sessions against a CompiledProcess.

The engine is a state machine over step ids plus the END sentinel.
Transitions only happen through advance(), which refuses to move while the
current step has required fields without a value. Conditional rules are
evaluated in declaration order and the first matching rule wins; if none
match, the default target is taken.

The engine mutates the ExecutionState it is given but never persists it;
persistence and per-subject locking belong to the SessionService.

Usage:
    from onboarding.runtime.engine import ExecutionEngine

    engine = ExecutionEngine(compiled_process)
    state = engine.new_state("acme-corp")
    engine.update_inputs(state, {"legal_name": "Acme Corp"})
    result = engine.advance(state)
    if not result.ok:
        print(result.missing_fields)
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, List, Mapping, Optional

from onboarding.spec.compiler import CompiledProcess, CompiledStep
from onboarding.spec.expressions import classify_value, to_number
from onboarding.spec.types import END_STEP

from .errors import InvalidInputValue, InvalidSessionState
from .types import (
    AdvanceResult,
    ExecutionState,
    ProcessProgress,
    StageProgress,
    ValidationResult,
)

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(completed * 100 / total + 0.5))


# =============================================================================
# Pure Step Functions
# =============================================================================


def missing_required_fields(step: CompiledStep, inputs: Mapping[str, Any]) -> List[str]:
    """Required field names whose value is absent, None or an empty string."""
    return [name for name in step.required_fields if _is_blank(inputs.get(name))]


def compute_next_step(step: CompiledStep, inputs: Mapping[str, Any]) -> str:
    """Target of the first matching condition, else the default target."""
    for condition in step.conditions:
        if condition.matches(inputs):
            logger.debug("Step '%s': condition '%s' matched -> %s", step.id, condition.when, condition.then)
            return condition.then
    return step.default


def validate_field_values(step: CompiledStep, inputs: Mapping[str, Any]) -> List[str]:
    """Check provided values against field types and validation rules.

    Blank values are skipped; missing required fields are reported by
    missing_required_fields, not here.
    """
    errors: List[str] = []
    for spec in step.fields:
        value = inputs.get(spec.name)
        if _is_blank(value):
            continue

        if spec.type == "email" and isinstance(value, str) and not _EMAIL_RE.match(value):
            errors.append(f'Invalid email format for field "{spec.name}"')

        if spec.type == "number" and to_number(value) is None:
            errors.append(f'Field "{spec.name}" must be a number')

        if not isinstance(value, str):
            continue

        pattern = spec.validation.get("pattern")
        if pattern:
            try:
                if re.search(pattern, value) is None:
                    errors.append(f'Field "{spec.name}" does not match required pattern')
            except re.error as e:
                logger.warning("Field '%s' has an invalid pattern %r: %s", spec.name, pattern, e)

        min_length = spec.validation.get("minLength")
        if min_length and len(value) < min_length:
            errors.append(f'Field "{spec.name}" must be at least {min_length} characters')

        max_length = spec.validation.get("maxLength")
        if max_length and len(value) > max_length:
            errors.append(f'Field "{spec.name}" must be at most {max_length} characters')

    return errors


# =============================================================================
# Engine
# =============================================================================


class ExecutionEngine:
    """Runs sessions against one compiled process."""

    def __init__(self, process: CompiledProcess):
        self.process = process

    def new_state(self, subject_id: str) -> ExecutionState:
        """Fresh state positioned at the initial step with no inputs."""
        initial = self.process.initial_step
        return ExecutionState(
            subject_id=subject_id,
            process_id=self.process.process_id,
            current_step_id=initial.id,
            current_stage=initial.stage,
        )

    # -------------------------------------------------------------------------
    # State checks
    # -------------------------------------------------------------------------

    def check_state(self, state: ExecutionState) -> None:
        """Ensure the state belongs to this process and names a known step.

        Raises:
            InvalidSessionState: On a process id mismatch or an unknown step.
        """
        if state.process_id != self.process.process_id:
            raise InvalidSessionState(
                state.subject_id,
                f"session belongs to process '{state.process_id}', "
                f"not '{self.process.process_id}'",
            )
        if state.current_step_id != END_STEP and not self.process.has_step(state.current_step_id):
            raise InvalidSessionState(
                state.subject_id,
                f"step '{state.current_step_id}' not found in process '{self.process.process_id}'",
                step_id=state.current_step_id,
            )

    def current_step(self, state: ExecutionState) -> CompiledStep:
        """The step the session is positioned at.

        Raises:
            InvalidSessionState: If the session is stale or already finished.
        """
        self.check_state(state)
        if state.is_finished:
            raise InvalidSessionState(
                state.subject_id, "process already finished", step_id=END_STEP
            )
        return self.process.steps[self.process.step_index[state.current_step_id]]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def update_inputs(self, state: ExecutionState, patch: Mapping[str, Any]) -> None:
        """Shallow-merge a patch into the collected inputs.

        Values are not validated against the step here; that is deferred to
        advance(). Only values outside the value model are rejected. Tuples
        are stored as lists, the form they take in a state record.

        Raises:
            InvalidInputValue: If a value is not a string, number, bool,
                list or None.
            InvalidSessionState: If the session is stale.
        """
        self.check_state(state)
        accepted = {}
        for name, value in patch.items():
            if classify_value(value) is None:
                raise InvalidInputValue(name, type(value).__name__)
            accepted[name] = list(value) if isinstance(value, tuple) else value
        state.inputs.update(accepted)
        state.touch()

    def advance(self, state: ExecutionState) -> AdvanceResult:
        """Try to move the session to its next step.

        Returns:
            AdvanceResult with ok=False and the missing fields when the
            current step is incomplete; otherwise ok=True and the new step.

        Raises:
            InvalidSessionState: If the session is stale or already finished.
        """
        step = self.current_step(state)

        missing = missing_required_fields(step, state.inputs)
        if missing:
            logger.debug(
                "Advance blocked for '%s' at '%s': missing %s",
                state.subject_id,
                step.id,
                ", ".join(missing),
            )
            return AdvanceResult(next_step_id=step.id, ok=False, missing_fields=tuple(missing))

        next_step_id = compute_next_step(step, state.inputs)
        state.mark_completed(step.id)
        state.current_step_id = next_step_id
        state.current_stage = self._stage_id(next_step_id)
        state.touch()

        logger.info("Subject '%s' advanced %s -> %s", state.subject_id, step.id, next_step_id)
        return AdvanceResult(next_step_id=next_step_id, ok=True)

    def go_back(self, state: ExecutionState) -> str:
        """Return to the most recently completed step and un-complete it.

        Raises:
            InvalidSessionState: If there is no completed step to return to.
        """
        self.check_state(state)
        if not state.completed_steps:
            raise InvalidSessionState(state.subject_id, "cannot go back: already at first step")

        previous = state.completed_steps[-1]
        if not self.process.has_step(previous):
            raise InvalidSessionState(
                state.subject_id, f"previous step '{previous}' not found", step_id=previous
            )

        state.completed_steps.pop()
        state.current_step_id = previous
        state.current_stage = self._stage_id(previous)
        state.touch()
        return previous

    def reset(self, state: ExecutionState) -> None:
        """Move back to the initial step and discard inputs and history."""
        initial = self.process.initial_step
        state.process_id = self.process.process_id
        state.current_step_id = initial.id
        state.current_stage = initial.stage
        state.inputs = {}
        state.completed_steps = []
        state.touch()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def missing_fields(self, state: ExecutionState) -> List[str]:
        return missing_required_fields(self.current_step(state), state.inputs)

    def compute_next_step(self, state: ExecutionState) -> str:
        return compute_next_step(self.current_step(state), state.inputs)

    def validate_step_inputs(self, state: ExecutionState) -> ValidationResult:
        """Validate the current step's inputs (required fields and field rules)."""
        step = self.current_step(state)
        errors: List[str] = []
        missing = missing_required_fields(step, state.inputs)
        if missing:
            errors.append(f"Missing required fields: {', '.join(missing)}")
        errors.extend(validate_field_values(step, state.inputs))
        return ValidationResult(valid=not errors, errors=tuple(errors))

    def progress(self, state: ExecutionState) -> ProcessProgress:
        total = len(self.process.steps)
        completed = sum(1 for s in state.completed_steps if self.process.has_step(s))
        return ProcessProgress(
            total=total,
            completed=completed,
            remaining=total - completed,
            percentage=_percentage(completed, total),
        )

    def stage_progress(self, state: ExecutionState) -> List[StageProgress]:
        completed = set(state.completed_steps)
        result = []
        for stage in self.process.stages:
            steps = self.process.steps_in_stage(stage.id)
            done = sum(1 for s in steps if s.id in completed)
            result.append(
                StageProgress(
                    stage_id=stage.id,
                    stage_name=stage.name,
                    total=len(steps),
                    completed=done,
                    percentage=_percentage(done, len(steps)),
                )
            )
        return result

    def is_stage_completed(self, state: ExecutionState, stage_id: str) -> bool:
        steps = self.process.steps_in_stage(stage_id)
        if not steps:
            return False
        completed = set(state.completed_steps)
        return all(s.id in completed for s in steps)

    def next_uncompleted_step(self, state: ExecutionState) -> Optional[CompiledStep]:
        completed = set(state.completed_steps)
        for step in self.process.steps:
            if step.id not in completed:
                return step
        return None

    def _stage_id(self, step_id: str) -> Optional[str]:
        step = self.process.get_step(step_id)
        return step.stage if step is not None else None
