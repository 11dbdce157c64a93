"""
Resume file for tracked units.

Written on shutdown and read on startup so a restart does not show every
previously running service as newly appeared.
"""

import logging
import os
import stat
import tempfile
from typing import Dict, List, Mapping

from pydantic import BaseModel, ValidationError

from docker_monitor.errors import PersistenceFailure
from models.status_models import Unit

logger = logging.getLogger(__name__)

STATE_VERSION = 1
DEFAULT_FILE_MODE = 0o644


class SavedState(BaseModel):
    version: int = STATE_VERSION
    units: List[Unit] = []


def serialize_units(units: Mapping[str, Unit]) -> bytes:
    """Encode the unit mapping as versioned JSON, ordered by key"""
    state = SavedState(units=[units[key] for key in sorted(units)])
    return state.model_dump_json(indent=2).encode('utf-8')


def deserialize_units(data: bytes) -> Dict[str, Unit]:
    """
    Decode bytes produced by serialize_units().

    Raises:
        PersistenceFailure: If the content is not a valid saved state
    """
    try:
        state = SavedState.model_validate_json(data)
    except ValidationError as e:
        raise PersistenceFailure(f"Invalid saved state: {e}") from e
    if state.version != STATE_VERSION:
        raise PersistenceFailure(f"Unsupported saved state version {state.version}")
    return {unit.key: unit for unit in state.units}


class StateStore:
    """Reads and atomically writes the resume file"""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Dict[str, Unit]:
        """
        Load the saved units.

        Never raises: a missing file starts from empty state, and an
        unreadable or corrupt file is logged and also starts from empty state.
        """
        try:
            with open(self.path, 'rb') as f:
                data = f.read()
        except FileNotFoundError:
            logger.info(f"No resume file at {self.path}, starting with empty state")
            return {}
        except OSError as e:
            logger.warning(f"Could not read resume file {self.path}: {e}. Starting with empty state")
            return {}

        try:
            units = deserialize_units(data)
        except PersistenceFailure as e:
            logger.warning(f"Ignoring resume file {self.path}: {e}")
            return {}

        logger.info(f"Loaded {len(units)} units from {self.path}")
        return units

    def _file_mode(self) -> int:
        """Mode of the existing resume file, or 0644 for a new one (mkstemp uses 0600)"""
        try:
            return stat.S_IMODE(os.stat(self.path).st_mode)
        except OSError:
            return DEFAULT_FILE_MODE

    def save(self, units: Mapping[str, Unit]):
        """
        Write the units to disk.

        The content is serialized in memory, written to a temp file next to
        the target and renamed over it, so an interrupted save leaves the
        previous file intact.

        Raises:
            PersistenceFailure: If the file could not be written
        """
        data = serialize_units(units)
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.compose-status-', suffix='.tmp')
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, self._file_mode())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise PersistenceFailure(f"Could not write resume file {self.path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.info(f"Saved {len(units)} units to {self.path}")
