"""Enhanced persistence tier: audio payloads in SQLite."""

import sqlite3
import logging
from contextlib import closing
from pathlib import Path
from typing import Optional, Tuple

from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class SqliteAudioStore:
    """Stores one binary audio payload per note id."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self._initialized = False

    def initialize(self) -> None:
        """Create the database and the ``audio_blobs`` table.

        Raises:
            PersistenceError: If the database cannot be opened
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with closing(sqlite3.connect(str(self.db_path))) as conn:
                with conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS audio_blobs (
                            note_id INTEGER PRIMARY KEY,
                            payload BLOB NOT NULL,
                            mime_type TEXT,
                            size INTEGER NOT NULL
                        )
                        """
                    )
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open audio database {self.db_path}: {e}") from e
        self._initialized = True
        logger.info(f"Audio store ready: {self.db_path}")

    def put(self, note_id: int, payload: bytes, mime_type: Optional[str] = None) -> None:
        self._execute(
            "INSERT OR REPLACE INTO audio_blobs (note_id, payload, mime_type, size) VALUES (?, ?, ?, ?)",
            (note_id, sqlite3.Binary(payload), mime_type, len(payload)),
        )

    def get(self, note_id: int) -> Optional[Tuple[bytes, Optional[str]]]:
        """Return ``(payload, mime_type)`` or None when no audio is stored."""
        self._require_initialized()
        try:
            with closing(sqlite3.connect(str(self.db_path))) as conn:
                row = conn.execute(
                    "SELECT payload, mime_type FROM audio_blobs WHERE note_id = ?", (note_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot read audio for note {note_id}: {e}") from e
        if row is None:
            return None
        return bytes(row[0]), row[1]

    def delete(self, note_id: int) -> None:
        self._execute("DELETE FROM audio_blobs WHERE note_id = ?", (note_id,))

    def clear(self) -> None:
        self._execute("DELETE FROM audio_blobs", ())

    def _execute(self, sql: str, params: tuple) -> None:
        self._require_initialized()
        try:
            with closing(sqlite3.connect(str(self.db_path))) as conn:
                with conn:
                    conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(f"Audio store error: {e}") from e

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise PersistenceError("Audio store is not initialized")
