"""
storage.py - Durable per-subject execution state.

The storage layout is one JSON record per subject:

    <state_dir>/
      <subject_id>.json     # ExecutionState serialized

Writes are atomic: the record is written to a temporary file in the same
directory, fsynced and renamed over the destination, so a reader never
observes a partially written record.

Usage:
    from onboarding.runtime.storage import StateStore

    store = StateStore(state_dir)
    store.initialize("acme-corp", "corporate_onboarding", "contact_info")
    state = store.load("acme-corp")
    store.update("acme-corp", {"inputs": {"legal_name": "Acme"}})
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from onboarding.config.runtime_config import get_settings

from .errors import InvalidSubjectId, SessionAlreadyExists, SessionNotFound, StorageError
from .types import ExecutionState, execution_state_from_dict, execution_state_to_dict

# Module logger
logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"

_SUBJECT_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

# Keys a partial update may touch; subject_id is fixed for the record's life
_UPDATABLE_KEYS = (
    "process_id",
    "current_step_id",
    "inputs",
    "completed_steps",
    "current_stage",
)


# -----------------------------------------------------------------------------
# Atomic File I/O Helpers
# -----------------------------------------------------------------------------


def _atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write JSON data to a file atomically.

    Uses a temporary file + os.replace pattern to ensure atomicity.
    This prevents partial writes if the process is killed mid-write.

    Args:
        path: Destination file path.
        data: JSON-serializable data.
        indent: JSON indentation level.
    """
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=path.name + ".",
        dir=parent,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class StateStore:
    """File-per-subject store for ExecutionState records.

    The store only guarantees atomicity of a single write. Read-modify-write
    cycles are serialized through lock(subject_id), which update() takes
    itself and which callers hold across their own load-mutate-save cycles.
    """

    def __init__(self, state_dir: Optional[Path] = None):
        self.state_dir = Path(state_dir) if state_dir is not None else get_settings().state_dir
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Locking and paths
    # -------------------------------------------------------------------------

    def lock(self, subject_id: str) -> threading.RLock:
        """Get or create the re-entrant lock for a subject.

        Args:
            subject_id: The subject identifier.

        Returns:
            A lock shared by every caller using this store instance.
        """
        with self._locks_lock:
            lock = self._locks.get(subject_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[subject_id] = lock
            return lock

    def record_path(self, subject_id: str) -> Path:
        """Path of a subject's record.

        Raises:
            InvalidSubjectId: If the subject id could escape the state directory.
        """
        if not subject_id or not _SUBJECT_ID_RE.match(subject_id) or subject_id in (".", ".."):
            raise InvalidSubjectId(subject_id)
        return self.state_dir / f"{subject_id}{RECORD_SUFFIX}"

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def exists(self, subject_id: str) -> bool:
        return self.record_path(subject_id).is_file()

    def load(self, subject_id: str) -> ExecutionState:
        """Load a subject's state.

        Raises:
            SessionNotFound: If no record exists.
            StorageError: If the record cannot be read or is corrupt.
        """
        path = self.record_path(subject_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise SessionNotFound(subject_id)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt state record for '%s' at %s: %s", subject_id, path, e)
            raise StorageError(subject_id, f"corrupt record: {e}")
        except OSError as e:
            raise StorageError(subject_id, f"read failed: {e}")

        try:
            return execution_state_from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Invalid state record for '%s' at %s: %s", subject_id, path, e)
            raise StorageError(subject_id, f"invalid record: {e}")

    def save(self, state: ExecutionState) -> Path:
        """Overwrite a subject's record atomically.

        The state is written exactly as given; last_updated is not touched.

        Raises:
            StorageError: If the write fails.
        """
        path = self.record_path(state.subject_id)
        try:
            _atomic_write_json(path, execution_state_to_dict(state))
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(state.subject_id, f"write failed: {e}")
        return path

    def initialize(
        self,
        subject_id: str,
        process_id: str,
        initial_step_id: str,
        current_stage: Optional[str] = None,
    ) -> ExecutionState:
        """Create the record for a subject with empty inputs.

        Raises:
            SessionAlreadyExists: If the subject already has a record.
            StorageError: If the write fails.
        """
        with self.lock(subject_id):
            if self.exists(subject_id):
                raise SessionAlreadyExists(subject_id)
            state = ExecutionState(
                subject_id=subject_id,
                process_id=process_id,
                current_step_id=initial_step_id,
                current_stage=current_stage,
            )
            self.save(state)
            logger.info("Initialized state for '%s' (process %s)", subject_id, process_id)
            return state

    def update(self, subject_id: str, partial: Dict[str, Any]) -> ExecutionState:
        """Load, merge a partial update and save under the subject lock.

        inputs are shallow-merged into the stored inputs; other keys replace
        the stored value.

        Raises:
            SessionNotFound: If the subject has no record.
            StorageError: On I/O failure or an unknown key.
        """
        unknown = set(partial) - set(_UPDATABLE_KEYS)
        if unknown:
            raise StorageError(subject_id, f"cannot update keys: {', '.join(sorted(unknown))}")

        with self.lock(subject_id):
            state = self.load(subject_id)
            for key, value in partial.items():
                if key == "inputs":
                    state.inputs.update(value or {})
                elif key == "completed_steps":
                    state.completed_steps = list(dict.fromkeys(value or []))
                else:
                    setattr(state, key, value)
            state.touch()
            self.save(state)
            return state

    def delete(self, subject_id: str) -> bool:
        """Delete a subject's record and release its lock.

        Returns False if there was no record.
        """
        path = self.record_path(subject_id)
        with self.lock(subject_id):
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as e:
                raise StorageError(subject_id, f"delete failed: {e}")
            finally:
                with self._locks_lock:
                    self._locks.pop(subject_id, None)
        logger.info("Deleted state for '%s'", subject_id)
        return True

    def list_subjects(self) -> List[str]:
        """Subject ids with a record, sorted."""
        if not self.state_dir.exists():
            return []
        return sorted(
            p.name[: -len(RECORD_SUFFIX)]
            for p in self.state_dir.iterdir()
            if p.is_file() and p.name.endswith(RECORD_SUFFIX)
        )
