"""
Test fixtures for the onboarding engine.

Provides temporary definition trees (processes/ and tasks/), state
directories, and wired-up catalog, service and API client fixtures.
"""

from pathlib import Path
from typing import Any, Dict

import pytest
import yaml
from fastapi.testclient import TestClient

from onboarding.config import runtime_config
from onboarding.runtime.service import SessionService
from onboarding.runtime.storage import StateStore
from onboarding.spec.catalog import ProcessCatalog

BUNDLED_DATA_ROOT = Path(__file__).resolve().parent.parent / "onboarding" / "data"


# ============================================================================
# Environment Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Clear ONBOARDING_* overrides and cached config around every test."""
    for name in (
        "ONBOARDING_ENV",
        "ONBOARDING_DATA_DIR",
        "ONBOARDING_STATE_DIR",
        "ONBOARDING_CACHE_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)
    runtime_config.reset_config()
    SessionService.reset()
    yield
    runtime_config.reset_config()
    SessionService.reset()


# ============================================================================
# Definition Tree Helpers
# ============================================================================


def write_yaml(path: Path, data: Dict[str, Any]) -> Path:
    """Write a YAML document, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def write_task(root: Path, ref: str, data: Dict[str, Any]) -> Path:
    return write_yaml(root / "tasks" / f"{ref}.yaml", data)


def write_process(root: Path, name: str, data: Dict[str, Any]) -> Path:
    return write_yaml(root / "processes" / f"{name}.yaml", data)


def simple_task(task_id: str, required=(), fields=None, **extra) -> Dict[str, Any]:
    """Task document whose fields default to one text field per required name."""
    if fields is None:
        fields = [{"name": name, "label": name, "type": "text"} for name in required]
    doc = {
        "id": task_id,
        "component_id": "form",
        "required_fields": list(required),
        "schema": {"fields": fields},
    }
    doc.update(extra)
    return doc


SCENARIO_PROCESS = {
    "id": "scenario",
    "name": "Risk Scenario",
    "version": 1,
    "stages": [
        {"id": "intake", "name": "Intake", "order": 1},
        {"id": "wrapup", "name": "Wrap Up", "order": 2},
    ],
    "steps": [
        {
            "id": "A",
            "stage": "intake",
            "task_ref": "risk",
            "next": {
                "conditions": [{"when": "risk > 70", "then": "B"}],
                "default": "C",
            },
        },
        {"id": "B", "stage": "intake", "task_ref": "notes", "next": {"default": "C"}},
        {"id": "C", "stage": "wrapup", "task_ref": "confirm", "next": {"default": "END"}},
    ],
}


@pytest.fixture
def data_root(tmp_path) -> Path:
    """Definition tree with the A ->(risk>70? B : C), B -> C, C -> END scenario."""
    root = tmp_path / "data"
    write_task(
        root,
        "risk",
        simple_task(
            "risk",
            required=["risk"],
            fields=[{"name": "risk", "label": "Risk", "type": "number"}],
        ),
    )
    write_task(root, "notes", simple_task("notes", required=["notes"]))
    write_task(root, "confirm", simple_task("confirm"))
    write_process(root, "scenario", SCENARIO_PROCESS)
    return root


@pytest.fixture
def state_dir(tmp_path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def store(state_dir) -> StateStore:
    return StateStore(state_dir)


@pytest.fixture
def catalog(data_root) -> ProcessCatalog:
    return ProcessCatalog(data_root, cache_enabled=True, invalidate_on_mtime=False)


@pytest.fixture
def service(catalog, store) -> SessionService:
    return SessionService(catalog=catalog, store=store)


@pytest.fixture
def compiled(catalog):
    """The compiled scenario process."""
    process = catalog.get("scenario")
    assert process is not None
    return process


@pytest.fixture
def api_client(data_root, state_dir):
    """TestClient over an app wired to the temporary trees."""
    from onboarding.api.server import create_app

    app = create_app(data_root=data_root, state_dir=state_dir, enable_cors=False)
    with TestClient(app) as client:
        yield client
