"""JSON-file key/value store used as the baseline persistence tier."""

import os
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Small synchronous string-keyed store backed by one JSON file.

    Every write rewrites the whole file through a temporary file and
    ``os.replace`` so a crash never leaves a half-written document.
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)
        self._lock = threading.Lock()
        self._data: Optional[Dict[str, Any]] = None

    def open(self) -> None:
        """Create the parent directory and load existing contents.

        Raises:
            PersistenceError: If the file cannot be created or parsed
        """
        with self._lock:
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
                if self.file_path.exists():
                    with open(self.file_path, 'r', encoding='utf-8') as f:
                        data = json.load(f)
                    if not isinstance(data, dict):
                        raise PersistenceError(f"{self.file_path} does not contain a JSON object")
                else:
                    data = {}
            except (OSError, json.JSONDecodeError) as e:
                raise PersistenceError(f"Cannot open key/value store {self.file_path}: {e}") from e
            self._data = data
        logger.info(f"Key/value store opened: {self.file_path} ({len(self._data)} keys)")

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            self._require_open()
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._require_open()
            updated = dict(self._data)
            updated[key] = value
            self._write(updated)
            self._data = updated

    def remove(self, key: str) -> None:
        with self._lock:
            self._require_open()
            if key not in self._data:
                return
            updated = dict(self._data)
            del updated[key]
            self._write(updated)
            self._data = updated

    def _require_open(self) -> None:
        if self._data is None:
            raise PersistenceError("Key/value store is not open")

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.file_path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error writing {self.file_path}: {e}")
            raise PersistenceError(f"Cannot write {self.file_path}: {e}") from e
