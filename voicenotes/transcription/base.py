"""Abstract base classes for transcription backends and engines."""

from abc import ABC, abstractmethod
from typing import Callable
import logging

from ..errors import TranscriptionServiceError
from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[str, bool], None]
EndCallback = Callable[[], None]
TranscriptionErrorCallback = Callable[[TranscriptionServiceError], None]


class AbstractTranscriptionBackend(ABC):
    """Speech-to-text service that transcribes one buffer at a time."""

    def __init__(self, language: str = "it-IT"):
        """Initialize backend with language preference."""
        self.language = language

    @abstractmethod
    def transcribe_chunk(self, chunk_id: str, audio_chunk: bytes) -> TranscriptionResult:
        """Transcribe an audio chunk and return result.

        Args:
            chunk_id: Identifier used for logging and result correlation
            audio_chunk: Raw 16-bit PCM audio data

        Returns:
            TranscriptionResult with transcription and metadata
        """
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Clean up backend resources."""
        pass


class AbstractTranscriptionEngine(ABC):
    """Transcription capability consumed by the session coordinator.

    Each ``start`` opens a recognition run; the matching ``stop`` makes the
    engine deliver any remaining fragments and then call ``on_end`` once.
    """

    @abstractmethod
    def start(self,
              on_fragment: FragmentCallback,
              on_end: EndCallback,
              on_error: TranscriptionErrorCallback) -> None:
        """Begin a recognition run.

        Raises:
            TranscriptionServiceError: If recognition cannot start
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """End the current run. Must not block."""
        pass

    def shutdown(self) -> None:
        """Release engine resources when the application exits."""
        pass
