"""
errors.py - Load-time and compile-time errors for definition documents.

These errors are resolved entirely while loading and compiling definitions.
They never reach the per-request execution path: a process that raises one
of them is rejected and simply does not exist for the runtime.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class DefinitionError(Exception):
    """Base exception for definition-related errors."""

    pass


class DefinitionParseError(DefinitionError):
    """Raised when a document is malformed or fails minimal-shape validation."""

    def __init__(self, path: Optional[Path], problem: str):
        self.path = path
        self.problem = problem
        location = str(path) if path else "<document>"
        super().__init__(f"Invalid definition {location}: {problem}")


class UnresolvedReference(DefinitionError):
    """Raised when a task reference, transition target or field name is missing.

    Attributes:
        kind: What kind of reference failed ("task", "transition", "stage",
            "required_field").
        ref: The reference that could not be resolved.
        owner: The process, step or task that holds the reference.
    """

    def __init__(self, kind: str, ref: str, owner: str):
        self.kind = kind
        self.ref = ref
        self.owner = owner
        super().__init__(f"Unresolved {kind} reference '{ref}' in {owner}")


class CircularInheritance(DefinitionError):
    """Raised when a task `extends` chain loops back on itself."""

    def __init__(self, chain: Sequence[str]):
        self.chain = tuple(chain)
        super().__init__(f"Circular inheritance detected: {' -> '.join(self.chain)}")


class ProcessCompileError(DefinitionError):
    """Raised for structural problems found while compiling a process."""

    def __init__(self, process_id: str, problem: str):
        self.process_id = process_id
        self.problem = problem
        super().__init__(f"Cannot compile process '{process_id}': {problem}")
