"""Services layer for VoiceNotes application logic."""

from .session_reducer import reduce, Transition
from .session_coordinator import SessionCoordinator, STATUS_TOPIC, NOTE_SAVED_TOPIC
from .notes_service import NotesService

__all__ = [
    "reduce",
    "Transition",
    "SessionCoordinator",
    "STATUS_TOPIC",
    "NOTE_SAVED_TOPIC",
    "NotesService",
]
