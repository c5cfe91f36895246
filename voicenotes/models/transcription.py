"""Transcription-related data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List


NO_SPEECH_DETECTED = "[NO_SPEECH_DETECTED]"


@dataclass
class TranscriptionResult:
    """Result of a transcription operation."""
    text: str
    confidence: float
    processing_time: float
    timestamp: datetime
    service: str
    language: str = "it-IT"
    alternatives: Optional[List[dict]] = None
    is_final: bool = True
    chunk_id: Optional[str] = None

    @property
    def has_speech(self) -> bool:
        return bool(self.text and self.text.strip() and self.text != NO_SPEECH_DETECTED)
