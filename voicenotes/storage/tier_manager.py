"""Two-tier note persistence with silent degradation to the baseline tier."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .audio_store import SqliteAudioStore
from .key_value_store import KeyValueStore
from .note_store import NoteStore
from ..errors import PersistenceError
from ..models.note import Note
from ..models.session import SaveResult

logger = logging.getLogger(__name__)

NOTES_FILENAME = "notes.json"
AUDIO_DB_FILENAME = "audio.db"


class PersistenceTierManager:
    """Stores note metadata in the baseline tier and audio in the enhanced tier.

    The enhanced tier is attempted once in ``initialize``. If it cannot be
    opened the manager runs baseline-only for the rest of the process and
    notes simply lose their audio; callers are never told.
    """

    def __init__(self,
                 data_directory: str,
                 enhanced_enabled: bool = True,
                 max_notes: Optional[int] = None,
                 note_store: Optional[NoteStore] = None,
                 audio_store: Optional[SqliteAudioStore] = None):
        """Initialize the persistence manager.

        Args:
            data_directory: Directory holding the notes file and audio database
            enhanced_enabled: Attempt the enhanced (audio) tier at all
            max_notes: Cap on stored notes, oldest evicted first
            note_store: Baseline store override (tests)
            audio_store: Enhanced store override (tests)
        """
        self.data_dir = Path(data_directory)
        self.enhanced_enabled = enhanced_enabled
        self.note_store = note_store or NoteStore(KeyValueStore(str(self.data_dir / NOTES_FILENAME)),
                                                  max_notes=max_notes)
        self.audio_store = audio_store or SqliteAudioStore(str(self.data_dir / AUDIO_DB_FILENAME))
        self._enhanced_available = False
        self._initialized = False

    @property
    def enhanced_available(self) -> bool:
        return self._enhanced_available

    def initialize(self) -> None:
        """Open the baseline tier and try the enhanced tier once.

        Raises:
            PersistenceError: If the baseline tier cannot be opened
        """
        if self._initialized:
            return
        self.note_store.store.open()

        if self.enhanced_enabled:
            try:
                self.audio_store.initialize()
                self._enhanced_available = True
            except PersistenceError as e:
                logger.warning(f"Audio storage unavailable, saving notes without audio: {e}")
                self._enhanced_available = False
        else:
            logger.info("Enhanced storage disabled by configuration")

        self._initialized = True
        logger.info(f"Persistence initialized (enhanced={self._enhanced_available})")

    def save(self, note: Note) -> SaveResult:
        """Persist a note: metadata first, then its audio if possible."""
        if note.audio_ref and not self._enhanced_available:
            note = _without_audio_metadata(note)
        try:
            stored, evicted = self.note_store.add(note)
        except PersistenceError as e:
            logger.error(f"Error saving note {note.id}: {e}")
            return SaveResult(success=False, note_id=note.id, error=str(e))

        for old in evicted:
            self._delete_audio(old.id)

        audio_stored = False
        if note.audio_ref and self._enhanced_available:
            try:
                self.audio_store.put(stored.id, note.audio_ref, note.audio_mime_type)
                audio_stored = True
            except PersistenceError as e:
                logger.warning(f"Audio for note {note.id} not stored: {e}")
                self._forget_audio(stored)

        logger.debug(f"Saved note {stored.id} (audio_stored={audio_stored})")
        return SaveResult(success=True, note_id=stored.id, audio_stored=audio_stored)

    def load(self) -> List[Note]:
        """All notes, newest first, without audio payloads."""
        return self.note_store.load()

    def get(self, note_id: int) -> Optional[Note]:
        return self.note_store.get(note_id)

    def load_audio(self, note_id: int) -> Optional[bytes]:
        if not self._enhanced_available:
            return None
        try:
            found = self.audio_store.get(note_id)
        except PersistenceError as e:
            logger.warning(f"Cannot load audio for note {note_id}: {e}")
            return None
        return found[0] if found else None

    def delete(self, note_id: int) -> bool:
        """Remove a note from both tiers. Deleting a missing note is a no-op."""
        removed = self.note_store.delete(note_id)
        self._delete_audio(note_id)
        if removed:
            logger.info(f"Deleted note {note_id}")
        return removed

    def clear(self) -> None:
        self.note_store.clear()
        if self._enhanced_available:
            try:
                self.audio_store.clear()
            except PersistenceError as e:
                logger.warning(f"Cannot clear audio store: {e}")
        logger.info("All notes cleared")

    def count(self) -> int:
        return self.note_store.count()

    def _delete_audio(self, note_id: int) -> None:
        if not self._enhanced_available:
            return
        try:
            self.audio_store.delete(note_id)
        except PersistenceError as e:
            logger.warning(f"Cannot delete audio for note {note_id}: {e}")

    def _forget_audio(self, note: Note) -> None:
        try:
            if self.note_store.get(note.id) is None:
                return
            self.note_store.add(_without_audio_metadata(note))
        except PersistenceError as e:
            logger.warning(f"Could not clear audio metadata of note {note.id}: {e}")


def _without_audio_metadata(note: Note) -> Note:
    return replace(note, audio_size=0, audio_mime_type=None, audio_ref=None)
