"""Session-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import VoiceNotesError


class SessionPhase(Enum):
    """Lifecycle phase of the recording session coordinator."""
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    FINALIZING = "finalizing"
    ERROR = "error"


@dataclass(frozen=True)
class SessionState:
    """Transient coordinator state. Never persisted."""
    phase: SessionPhase = SessionPhase.IDLE
    session_number: int = 0
    elapsed_ms: int = 0
    segment_started_at: Optional[float] = None  # monotonic seconds, set only while RECORDING

    transcription_enabled: bool = True
    transcription_active: bool = False
    transcription_generation: int = 0
    ended_generation: int = 0  # highest recognition run known to have ended

    # Join barrier buffers, only populated while FINALIZING
    audio_ready: bool = False
    pending_audio: Optional[bytes] = None
    audio_mime_type: Optional[str] = None
    transcript_ready: bool = False

    error: Optional[VoiceNotesError] = None

    def elapsed_at(self, now: float) -> int:
        """Active recording time in milliseconds as of ``now``."""
        if self.segment_started_at is None:
            return self.elapsed_ms
        return self.elapsed_ms + max(0, int((now - self.segment_started_at) * 1000))


@dataclass
class SaveResult:
    """Outcome of persisting a note."""
    success: bool
    note_id: Optional[int] = None
    audio_stored: bool = False
    error: Optional[str] = None


@dataclass
class SessionStatus:
    """Snapshot published on the ``session.status`` topic."""
    phase: SessionPhase
    session_number: int
    elapsed_ms: int
    transcription_enabled: bool
    final_text: str = ""
    preview_text: str = ""
    audio_level: float = 0.0
    error_title: Optional[str] = None
    error_description: Optional[str] = None
    last_save: Optional[SaveResult] = None
