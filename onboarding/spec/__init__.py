"""
onboarding/spec - Declarative process and task definitions.

This package turns YAML definitions into executable processes:
- ProcessSpec: Orchestration (stages, steps, transition rules)
- TaskSpec: Ground truth (field schema, required fields, component id)
- Loader: Reads documents, resolves task inheritance, selects processes
- Compiler: Produces the immutable CompiledProcess the runtime executes
- Catalog: Caches compiled processes per process id and subject profile

Usage:
    from onboarding.spec import (
        ProcessCatalog,
        SubjectProfile,
        compile_process,
        load_processes,
    )

    catalog = ProcessCatalog()
    compiled = catalog.select(SubjectProfile("corporate", "US"))
"""

from .catalog import ProcessCatalog
from .compiler import (
    CompiledCondition,
    CompiledProcess,
    CompiledStep,
    CompileResult,
    compile_process,
)
from .errors import (
    CircularInheritance,
    DefinitionError,
    DefinitionParseError,
    ProcessCompileError,
    UnresolvedReference,
)
from .expressions import (
    Comparison,
    ExpressionSyntaxError,
    Operator,
    ValueKind,
    classify_value,
    evaluate_expression,
    parse_expression,
)
from .loader import (
    list_processes,
    list_tasks,
    load_process,
    load_processes,
    load_task,
    load_task_registry,
    pick_applicable_process,
    resolve_task,
    validate_definitions,
)
from .types import (
    END_STEP,
    AppliesTo,
    FieldOption,
    FieldSpec,
    ProcessSpec,
    StageSpec,
    StepSpec,
    SubjectProfile,
    TaskRegistry,
    TaskSchema,
    TaskSpec,
    TransitionCondition,
    TransitionRule,
)

__all__ = [
    # Types
    "END_STEP",
    "AppliesTo",
    "FieldOption",
    "FieldSpec",
    "ProcessSpec",
    "StageSpec",
    "StepSpec",
    "SubjectProfile",
    "TaskRegistry",
    "TaskSchema",
    "TaskSpec",
    "TransitionCondition",
    "TransitionRule",
    # Errors
    "CircularInheritance",
    "DefinitionError",
    "DefinitionParseError",
    "ProcessCompileError",
    "UnresolvedReference",
    # Expressions
    "Comparison",
    "ExpressionSyntaxError",
    "Operator",
    "ValueKind",
    "classify_value",
    "evaluate_expression",
    "parse_expression",
    # Loader
    "list_processes",
    "list_tasks",
    "load_process",
    "load_processes",
    "load_task",
    "load_task_registry",
    "pick_applicable_process",
    "resolve_task",
    "validate_definitions",
    # Compiler
    "CompiledCondition",
    "CompiledProcess",
    "CompiledStep",
    "CompileResult",
    "compile_process",
    # Catalog
    "ProcessCatalog",
]
