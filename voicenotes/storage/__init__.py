"""Note persistence tiers."""

from .key_value_store import KeyValueStore
from .note_store import NoteStore, NOTES_KEY
from .audio_store import SqliteAudioStore
from .tier_manager import PersistenceTierManager

__all__ = [
    'KeyValueStore',
    'NoteStore',
    'NOTES_KEY',
    'SqliteAudioStore',
    'PersistenceTierManager',
]
