"""Google Speech-to-Text transcription backend."""

import time
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

from .base import AbstractTranscriptionBackend
from ..errors import TranscriptionServiceError
from ..models.transcription import TranscriptionResult, NO_SPEECH_DETECTED

logger = logging.getLogger(__name__)


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Google Speech-to-Text API backend for chunk transcription."""

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "it-IT",
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 request_timeout: float = 5.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the submitted PCM audio
            language: Language code (e.g., 'it-IT', 'en-US')
            use_enhanced: Whether to use enhanced model
            enable_automatic_punctuation: Enable automatic punctuation
            request_timeout: Per-request timeout in seconds
        """
        super().__init__(language)
        if not credentials_path:
            raise TranscriptionServiceError("Google credentials path is required")
        self.credentials_path = credentials_path
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.request_timeout = request_timeout
        self.client = None
        self.project_id = None
        self.service_name = "Google Speech-to-Text"
        self.config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=sample_rate,
            language_code=self.language,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            model="latest_short",
        )

    def initialize(self) -> bool:
        """Initialize Google Speech client from service account credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        try:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        except (OSError, ValueError) as e:
            logger.error(f"Invalid Google credentials: {e}")
            return False

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")
        return True

    def transcribe_chunk(self, chunk_id: str, audio_chunk: bytes) -> TranscriptionResult:
        """Transcribe audio chunk using Google Speech-to-Text."""
        if self.client is None:
            raise TranscriptionServiceError("Google Speech backend not initialized")

        start_time = time.time()
        logger.debug(f"Chunk ID: {chunk_id}; Audio chunk size: {len(audio_chunk)} bytes; "
                     f"Language: {self.language}")

        audio = speech.RecognitionAudio(content=audio_chunk)
        try:
            response = self.client.recognize(config=self.config, audio=audio, timeout=self.request_timeout)
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT recognize deadline exceeded for chunk %s", chunk_id)
            raise TranscriptionServiceError(f"Google Speech recognize timeout (chunk={chunk_id}): {e}") from e
        except gax_exceptions.ServiceUnavailable as e:
            logger.error("Google STT service unavailable for chunk %s", chunk_id)
            raise TranscriptionServiceError(f"Google Speech service unavailable (chunk={chunk_id}): {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error("Google STT API call error for chunk %s: %s", chunk_id, e)
            raise TranscriptionServiceError(f"Google Speech API error (chunk={chunk_id}): {e}") from e
        processing_time = time.time() - start_time

        if not response.results:
            logger.debug("--- NO SPEECH DETECTED ---")
            return TranscriptionResult(
                text=NO_SPEECH_DETECTED,
                confidence=0.0,
                processing_time=processing_time,
                timestamp=datetime.now(),
                service=self.service_name,
                language=self.language,
                chunk_id=chunk_id,
            )

        # Results cover consecutive portions of the chunk
        texts = [r.alternatives[0].transcript for r in response.results if r.alternatives]
        first = response.results[0].alternatives[0]
        logger.debug(f"Transcript='{' '.join(texts)}' (conf={first.confidence:.2f}, "
                     f"processing_time={processing_time:.3f}s)")
        return TranscriptionResult(
            text=" ".join(t.strip() for t in texts if t.strip()),
            confidence=first.confidence,
            processing_time=processing_time,
            timestamp=datetime.now(),
            service=self.service_name,
            language=self.language,
            chunk_id=chunk_id,
        )

    def cleanup(self) -> None:
        """Clean up Google Speech client resources."""
        self.client = None

    def get_stats(self) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "language": self.language,
            "use_enhanced": self.use_enhanced,
            "enable_punctuation": self.enable_automatic_punctuation,
        }
