"""Event models: audio frames, user commands, coordinator events and effects."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any, Dict

from ..errors import VoiceNotesError


@dataclass
class AudioEvent:
    """Audio chunk event published on the audio frame topic."""
    chunk_id: str
    audio_data: bytes
    timestamp: float  # Unix timestamp when chunk was captured
    sequence_number: int
    sample_rate: int = 16000
    channels: int = 1
    chunk_duration_ms: Optional[int] = None
    final: bool = False  # True for the last chunk of a capture

    def __post_init__(self):
        """Calculate chunk duration if not provided."""
        if self.chunk_duration_ms is None and self.audio_data:
            # 16-bit audio (2 bytes per sample)
            bytes_per_second = self.sample_rate * self.channels * 2
            self.chunk_duration_ms = int(len(self.audio_data) / bytes_per_second * 1000)


class Command(Enum):
    """Logical commands resolved from user activations."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    ACKNOWLEDGE = "acknowledge"


# Coordinator events. ``at`` is monotonic time stamped on submission;
# ``session`` tags device signals with the session that produced them.

@dataclass(frozen=True)
class CoordinatorEvent:
    at: float = field(default=0.0, compare=False)


@dataclass(frozen=True)
class CommandReceived(CoordinatorEvent):
    command: Command = Command.PRIMARY


@dataclass(frozen=True)
class AudioReady(CoordinatorEvent):
    session: int = 0
    audio: Optional[bytes] = field(default=None, repr=False)
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class TranscriptFragment(CoordinatorEvent):
    session: int = 0
    text: str = ""
    is_final: bool = False


@dataclass(frozen=True)
class TranscriptEnded(CoordinatorEvent):
    session: int = 0
    generation: int = 0


@dataclass(frozen=True)
class DeviceFailed(CoordinatorEvent):
    session: int = 0
    error: Optional[VoiceNotesError] = None


@dataclass(frozen=True)
class TranscriptionFailed(CoordinatorEvent):
    session: int = 0
    error: Optional[VoiceNotesError] = None
    generation: int = 0
    run_ended: bool = False  # the failed run will not signal its end


@dataclass(frozen=True)
class GraceExpired(CoordinatorEvent):
    session: int = 0


@dataclass(frozen=True)
class TranscriptionToggled(CoordinatorEvent):
    enabled: bool = True


class EffectType(Enum):
    """External side effects requested by the session reducer."""
    RESET_ACCUMULATOR = "reset_accumulator"
    APPEND_FRAGMENT = "append_fragment"
    START_CAPTURE = "start_capture"
    PAUSE_CAPTURE = "pause_capture"
    RESUME_CAPTURE = "resume_capture"
    STOP_CAPTURE = "stop_capture"
    START_TRANSCRIPTION = "start_transcription"
    STOP_TRANSCRIPTION = "stop_transcription"
    ARM_GRACE_TIMER = "arm_grace_timer"
    CANCEL_GRACE_TIMER = "cancel_grace_timer"
    PERSIST_NOTE = "persist_note"
    RELEASE_DEVICES = "release_devices"
    PUBLISH_STATUS = "publish_status"


@dataclass(frozen=True)
class Effect:
    type: EffectType
    payload: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]
