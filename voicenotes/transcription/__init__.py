"""Transcription module for VoiceNotes."""

from .base import AbstractTranscriptionBackend, AbstractTranscriptionEngine
from .accumulator import TranscriptAccumulator
from .consumers import ChunkedTranscriber
from ..models.transcription import TranscriptionResult

__all__ = [
    "AbstractTranscriptionBackend",
    "AbstractTranscriptionEngine",
    "TranscriptAccumulator",
    "ChunkedTranscriber",
    "TranscriptionResult",
]
