"""
JSON Store - versioned documents persisted one per concern
Malformed or missing documents degrade to their declared default
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class JsonStore(Generic[T]):
    """Load/save a single typed JSON document"""

    def __init__(self, path: Path, type_: Any, default_factory: Callable[[], T]):
        self.path = Path(path)
        self._adapter = TypeAdapter(type_)
        self._default_factory = default_factory

    def load(self) -> T:
        """Load the document, falling back to the default"""
        if not self.path.exists():
            return self._default_factory()

        try:
            return self._adapter.validate_json(self.path.read_bytes())
        except (ValidationError, ValueError) as e:
            logger.warning(f"Corrupt document {self.path}, using default: {e}")
        except OSError as e:
            logger.warning(f"Cannot read {self.path}, using default: {e}")
        return self._default_factory()

    def save(self, value: T) -> None:
        """Write the document atomically"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = self._adapter.dump_json(value, indent=2)

        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def update(self, fn: Callable[[T], T]) -> bool:
        """Apply fn to the stored value; save and return True only if it changed"""
        current = self.load()
        updated = fn(current)
        if updated == current:
            return False
        self.save(updated)
        return True
