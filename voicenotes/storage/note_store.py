"""Baseline note storage: note metadata under a single key."""

import logging
from typing import List, Optional, Tuple

from .key_value_store import KeyValueStore
from ..errors import PersistenceError
from ..models.note import Note

logger = logging.getLogger(__name__)

NOTES_KEY = "voiceNotes"


class NoteStore:
    """Keeps every note's metadata as one JSON list, newest first."""

    def __init__(self, store: KeyValueStore, max_notes: Optional[int] = None):
        """Initialize the note store.

        Args:
            store: Opened key/value store
            max_notes: Keep only the newest notes beyond this count (None = unlimited)
        """
        self.store = store
        self.max_notes = max_notes if max_notes and max_notes > 0 else None

    def load(self) -> List[Note]:
        """All notes ordered by id descending."""
        raw = self.store.get(NOTES_KEY, [])
        if not isinstance(raw, list):
            raise PersistenceError(f"Malformed '{NOTES_KEY}' entry in baseline store")
        notes = []
        for item in raw:
            try:
                notes.append(Note.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed note record {item!r}: {e}")
        notes.sort(key=lambda n: n.id, reverse=True)
        return notes

    def add(self, note: Note) -> Tuple[Note, List[Note]]:
        """Insert or replace a note.

        Returns:
            The stored (audio-free) note and the notes evicted by ``max_notes``
        """
        stored = note.without_audio()
        notes = [n for n in self.load() if n.id != stored.id]
        notes.append(stored)
        notes.sort(key=lambda n: n.id, reverse=True)

        evicted: List[Note] = []
        if self.max_notes is not None and len(notes) > self.max_notes:
            notes, evicted = notes[:self.max_notes], notes[self.max_notes:]
            logger.info(f"Evicting {len(evicted)} oldest notes (max_notes={self.max_notes})")

        self.store.set(NOTES_KEY, [n.to_dict() for n in notes])
        return stored, evicted

    def get(self, note_id: int) -> Optional[Note]:
        for note in self.load():
            if note.id == note_id:
                return note
        return None

    def delete(self, note_id: int) -> bool:
        notes = self.load()
        remaining = [n for n in notes if n.id != note_id]
        if len(remaining) == len(notes):
            return False
        self.store.set(NOTES_KEY, [n.to_dict() for n in remaining])
        return True

    def clear(self) -> None:
        self.store.remove(NOTES_KEY)

    def count(self) -> int:
        return len(self.load())
