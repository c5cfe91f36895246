"""Note data model: the durable artifact produced by a recording session."""

import time
import threading
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any, Callable


DEFAULT_TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M"


@dataclass(frozen=True)
class Note:
    """A finished voice note.

    Only the metadata fields are stored in the baseline tier; ``audio_ref``
    travels with the note from the coordinator to the enhanced tier and is
    ``None`` on notes loaded back from storage.
    """
    id: int
    created_at: str
    duration_seconds: int
    transcript: str = ""
    has_transcript: bool = False
    audio_size: int = 0
    audio_mime_type: Optional[str] = None
    audio_ref: Optional[bytes] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Baseline-tier representation (JSON serializable, no audio)."""
        data = asdict(self)
        data.pop("audio_ref")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            id=int(data["id"]),
            created_at=data.get("created_at", ""),
            duration_seconds=int(data.get("duration_seconds", 0)),
            transcript=data.get("transcript") or "",
            has_transcript=bool(data.get("has_transcript", False)),
            audio_size=int(data.get("audio_size", 0)),
            audio_mime_type=data.get("audio_mime_type"),
        )

    def without_audio(self) -> "Note":
        return Note.from_dict(self.to_dict())


class NoteIdGenerator:
    """Issues time-derived, strictly increasing note ids (epoch milliseconds)."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last_id = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last_id:
                candidate = self._last_id + 1
            self._last_id = candidate
            return candidate


class NoteFactory:
    """Builds notes at join time: assigns the id and the creation timestamp."""

    def __init__(self,
                 timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
                 id_generator: Optional[NoteIdGenerator] = None,
                 now: Callable[[], datetime] = datetime.now):
        self.timestamp_format = timestamp_format
        self.id_generator = id_generator or NoteIdGenerator()
        self._now = now

    def create(self,
               transcript: str,
               duration_seconds: int,
               audio: Optional[bytes] = None,
               audio_mime_type: Optional[str] = None,
               transcription_enabled: bool = True) -> Note:
        transcript = " ".join((transcript or "").split())
        return Note(
            id=self.id_generator.next_id(),
            created_at=self._now().strftime(self.timestamp_format),
            duration_seconds=max(0, int(duration_seconds)),
            transcript=transcript,
            has_transcript=bool(transcript) and transcription_enabled,
            audio_size=len(audio) if audio else 0,
            audio_mime_type=audio_mime_type if audio else None,
            audio_ref=audio or None,
        )
