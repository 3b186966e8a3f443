"""
errors.py - Runtime errors raised while executing and persisting sessions.

Blocked advances (required fields missing) are not errors; they come back
as AdvanceResult(ok=False). Everything here is surfaced to the caller,
which decides on user-facing messaging.
"""

from __future__ import annotations

from typing import Optional


class SessionError(Exception):
    """Base exception for session-related errors."""

    pass


class SessionNotFound(SessionError):
    """Raised when no state record exists for a subject."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"No session for subject '{subject_id}'")


class SessionAlreadyExists(SessionError):
    """Raised when initializing a subject that already has a record."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Session for subject '{subject_id}' already exists")


class InvalidSessionState(SessionError):
    """Raised when a session cannot be executed against a compiled process.

    Covers a recorded step id the process does not contain, a session that
    belongs to a different process, and advancing a finished session. The
    state is never repaired by guessing a step.
    """

    def __init__(self, subject_id: str, problem: str, step_id: Optional[str] = None):
        self.subject_id = subject_id
        self.problem = problem
        self.step_id = step_id
        super().__init__(f"Invalid session state for '{subject_id}': {problem}")


class InvalidInputValue(SessionError):
    """Raised when an input patch contains a value outside the value model."""

    def __init__(self, field_name: str, value_type: str):
        self.field_name = field_name
        self.value_type = value_type
        super().__init__(
            f"Field '{field_name}' has unsupported value type '{value_type}' "
            "(expected string, number, boolean, list or null)"
        )


class StorageError(SessionError):
    """Raised when a state record cannot be read or written."""

    def __init__(self, subject_id: str, problem: str):
        self.subject_id = subject_id
        self.problem = problem
        super().__init__(f"Storage error for subject '{subject_id}': {problem}")


class ProcessNotAvailable(SessionError):
    """Raised when no compiled process exists for a session to run against."""

    def __init__(self, process_ref: str):
        self.process_ref = process_ref
        super().__init__(f"No compiled process available for {process_ref}")


class InvalidSubjectId(SessionError):
    """Raised when a subject id cannot be used as a record key."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Invalid subject id '{subject_id}' (allowed: letters, digits, '_', '.', '-')")
