"""Data models for the VoiceNotes application."""

from .transcription import TranscriptionResult, NO_SPEECH_DETECTED
from .audio import AudioStats
from .note import Note, NoteFactory, NoteIdGenerator
from .session import SessionPhase, SessionState, SessionStatus, SaveResult
from .events import (
    AudioEvent,
    Command,
    CoordinatorEvent,
    CommandReceived,
    AudioReady,
    TranscriptFragment,
    TranscriptEnded,
    DeviceFailed,
    TranscriptionFailed,
    GraceExpired,
    TranscriptionToggled,
    EffectType,
    Effect,
)

__all__ = [
    "TranscriptionResult",
    "NO_SPEECH_DETECTED",
    "AudioStats",
    "Note",
    "NoteFactory",
    "NoteIdGenerator",
    "SessionPhase",
    "SessionState",
    "SessionStatus",
    "SaveResult",
    # Coordinator events
    "AudioEvent",
    "Command",
    "CoordinatorEvent",
    "CommandReceived",
    "AudioReady",
    "TranscriptFragment",
    "TranscriptEnded",
    "DeviceFailed",
    "TranscriptionFailed",
    "GraceExpired",
    "TranscriptionToggled",
    "EffectType",
    "Effect",
]
