"""
Generic JSON collection store.

Each collection (users, products, orders, carts, payments) lives in one file:

    {"schemaVersion": "1.0", "<collection>": [ {...}, ... ]}

Invariants:
    - The collection key is always an array. A missing, empty, unparsable or
      structurally wrong file is replaced with the empty default and logged;
      it is never surfaced to callers.
    - Writes go to a temporary sibling and are renamed over the target, so a
      reader sees either the previous or the next file, never a partial one.
    - Writers are serialized by the store lock; readers are not blocked
      (last write wins).
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..core.locks import LOCK_TIMEOUT_SECONDS, acquire_lock, lock_key_store
from ..utils.exceptions import (
    InvalidStructureError,
    StorageCorruptionError,
    StorageError,
    StorageReadError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SCHEMA_VERSION = "1.0"

T = TypeVar("T", bound=BaseModel)


class FileStore(Generic[T]):
    """Single-writer JSON document store for one collection"""

    def __init__(
        self,
        path: Path,
        collection: str,
        model: Optional[Type[T]] = None,
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS,
    ):
        self.path = Path(path)
        self.collection = collection
        self.model = model
        self.schema_version = schema_version
        self.lock_timeout_seconds = lock_timeout_seconds
        self._lock_key = lock_key_store(self.path)

    def default_data(self) -> Dict[str, Any]:
        return {"schemaVersion": self.schema_version, self.collection: []}

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with acquire_lock(self._lock_key, timeout_seconds=self.lock_timeout_seconds):
            yield

    # -- reading -----------------------------------------------------------

    def _read_raw(self) -> Optional[str]:
        """File contents, or None when the file does not exist."""
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageReadError(f"Error reading {self.collection} data from {self.path}: {e}")

    def _parse(self, raw: str) -> Dict[str, Any]:
        if not raw.strip():
            raise StorageCorruptionError("file is empty")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageCorruptionError(f"invalid JSON: {e}")
        if not isinstance(data, dict):
            raise StorageCorruptionError("top-level value is not an object")
        if not isinstance(data.get(self.collection), list):
            raise StorageCorruptionError(f"'{self.collection}' is missing or not an array")
        return data

    def _try_load(self) -> Optional[Dict[str, Any]]:
        """Parsed data if the file is present and well-formed, else None."""
        raw = self._read_raw()
        if raw is None:
            return None
        try:
            data = self._parse(raw)
        except StorageCorruptionError:
            return None
        if not data.get("schemaVersion"):
            return None
        return data

    def _load_or_heal(self) -> Dict[str, Any]:
        """Load the file, repairing it first if needed. Caller holds the lock."""
        raw = self._read_raw()
        if raw is None:
            logger.info("Creating collection file", collection=self.collection, path=str(self.path))
            data = self.default_data()
            self._atomic_write(data)
            return data

        try:
            data = self._parse(raw)
        except StorageCorruptionError as e:
            logger.warning(
                "Collection file corrupt, resetting to empty default",
                collection=self.collection,
                path=str(self.path),
                reason=e.message,
            )
            data = self.default_data()
            self._atomic_write(data)
            return data

        if not data.get("schemaVersion"):
            logger.info("Adding missing schema version", collection=self.collection, path=str(self.path))
            data["schemaVersion"] = self.schema_version
            self._atomic_write(data)
        return data

    def initialize(self) -> None:
        """Create or repair the collection file. A well-formed file is left untouched."""
        self.read()

    def read(self) -> Dict[str, Any]:
        """
        Return {"schemaVersion": ..., <collection>: [...]}.

        Raises:
            StorageReadError: The file exists but cannot be read
        """
        data = self._try_load()
        if data is not None:
            return data
        # Repair under the lock so a concurrent writer's file is never clobbered
        with self._locked():
            return self._load_or_heal()

    def documents(self) -> List[Dict[str, Any]]:
        return self.read()[self.collection]

    def models(self) -> List[T]:
        """Documents validated against the store's model. Invalid entries are skipped."""
        if self.model is None:
            raise TypeError(f"FileStore for {self.collection} has no model")
        out: List[T] = []
        for i, item in enumerate(self.documents()):
            try:
                out.append(self.model.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(
                    "Skipping invalid document",
                    collection=self.collection,
                    index=i,
                    document_id=(item or {}).get("id") if isinstance(item, dict) else None,
                    error=str(e),
                )
        return out

    # -- writing -----------------------------------------------------------

    def write(self, data: Dict[str, Any]) -> None:
        """
        Validate and atomically replace the collection file.

        Raises:
            InvalidStructureError: The collection key is missing or not an array
            LockTimeoutError: Another writer held the lock for too long
            StorageError: The file could not be written
        """
        if not isinstance(data, dict) or not isinstance(data.get(self.collection), list):
            raise InvalidStructureError(
                f"Invalid data structure: {self.collection} array is required"
            )
        payload = dict(data)
        if not payload.get("schemaVersion"):
            payload["schemaVersion"] = self.schema_version
        with self._locked():
            self._atomic_write(payload)

    @contextmanager
    def transaction(self) -> Iterator[List[Dict[str, Any]]]:
        """
        Hold the store lock across read -> modify -> write.

        Yields the mutable document list; it is written back when the block
        exits normally. An exception inside the block discards the changes.
        """
        with self._locked():
            data = self._load_or_heal()
            documents = data[self.collection]
            yield documents
            data[self.collection] = documents
            self.write(data)

    def _atomic_write(self, payload: Dict[str, Any]) -> None:
        """Write JSON to a temp sibling, then rename it over the target"""
        temp_path: Optional[Path] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tf = tempfile.NamedTemporaryFile(
                mode="w",
                dir=str(self.path.parent),
                prefix=f"{self.path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            )
            temp_path = Path(tf.name)
            with tf:
                json.dump(payload, tf, indent=2, ensure_ascii=False)
                tf.flush()
                os.fsync(tf.fileno())
            os.replace(temp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Error writing {self.collection} data to {self.path}: {e}") from e
