"""Notes service: builds the recording pipeline and exposes stored notes."""

import threading
import logging
from typing import Optional, Dict, Any, List

from ..audio.audio_pub import AudioPublisher, AUDIO_FRAME_TOPIC
from ..audio.base import AbstractCaptureDevice, NullCaptureDevice
from ..config import VoiceNotesConfig
from ..errors import ConfigurationError, PersistenceError, TranscriptionServiceError
from ..export.report import ExportWriter, build_report, ExportReport
from ..models.note import Note, NoteFactory
from ..storage.tier_manager import PersistenceTierManager
from ..transcription.base import AbstractTranscriptionEngine
from ..transcription.consumers import ChunkedTranscriber
from ..ui.gesture_dispatcher import GestureDispatcher
from .session_coordinator import SessionCoordinator

logger = logging.getLogger(__name__)


class NotesService:
    """High-level API used by the CLI.

    Wires capture, transcription and persistence into a session coordinator
    from configuration, and gives read/delete/export access to stored notes.
    Methods that the UI calls directly return result dicts and log errors
    instead of raising.
    """

    def __init__(self,
                 config: VoiceNotesConfig,
                 persistence: Optional[PersistenceTierManager] = None):
        """Initialize notes service.

        Args:
            config: Application configuration
            persistence: Persistence manager override (tests)
        """
        self.config = config
        self.persistence = persistence or PersistenceTierManager(
            data_directory=config.get_data_directory(),
            enhanced_enabled=config.get('storage.enhanced_enabled', True),
            max_notes=config.get_max_notes(),
        )
        self.coordinator: Optional[SessionCoordinator] = None
        self.transcription: Optional[AbstractTranscriptionEngine] = None
        self.transcription_error: Optional[str] = None
        logger.info("NotesService initialized")

    def initialize(self) -> None:
        """Open storage.

        Raises:
            PersistenceError: If the baseline tier cannot be opened
        """
        self.persistence.initialize()

    # -- recording ------------------------------------------------------------

    def create_coordinator(self,
                           capture: Optional[AbstractCaptureDevice] = None,
                           transcription: Optional[AbstractTranscriptionEngine] = None,
                           timer_factory=threading.Timer) -> SessionCoordinator:
        """Build the session coordinator from configuration.

        Explicit ``capture``/``transcription`` arguments replace the
        configured devices.
        """
        if capture is None:
            capture = self._create_capture()
        if transcription is None and self.config.get('transcription.enabled', True):
            transcription = self._create_transcription()
        self.transcription = transcription

        self.coordinator = SessionCoordinator(
            capture=capture,
            transcription=transcription,
            persistence=self.persistence,
            note_factory=NoteFactory(timestamp_format=self.config.get('notes.timestamp_format')),
            grace_period_seconds=float(self.config.get('session.grace_period_seconds', 10.0)),
            transcription_enabled=transcription is not None,
            timer_factory=timer_factory,
        )
        return self.coordinator

    def create_gesture_dispatcher(self, coordinator: SessionCoordinator, timer_factory=threading.Timer) -> GestureDispatcher:
        return GestureDispatcher(
            on_command=coordinator.send_command,
            is_error=coordinator.is_error,
            window_seconds=self.config.get_gesture_window_seconds(),
            timer_factory=timer_factory,
        )

    def _create_capture(self) -> AbstractCaptureDevice:
        if not self.config.get('audio.enabled', True):
            logger.info("Audio capture disabled, recording text-only notes")
            return NullCaptureDevice()

        from ..audio.capture import AudioCapture

        publisher = AudioPublisher(AUDIO_FRAME_TOPIC)
        return AudioCapture(
            callback=publisher.publish_audio_event,
            sample_rate=self.config.get('audio.sample_rate', 16000),
            chunk_size=self.config.get('audio.chunk_size', 1024),
            channels=self.config.get('audio.channels', 1),
        )

    def _create_transcription(self) -> Optional[AbstractTranscriptionEngine]:
        """Create the transcription engine, or None when it cannot be set up."""
        backend_name = self.config.get('transcription.backend', 'google')
        if backend_name in (None, 'none'):
            logger.info("Transcription backend disabled")
            return None
        if backend_name != 'google':
            raise ConfigurationError(f"Unknown transcription backend: {backend_name}")
        if not self.config.get('audio.enabled', True):
            logger.info("Transcription needs audio capture, disabling it")
            return None

        try:
            backend = self._create_google_speech_backend()
        except (ConfigurationError, TranscriptionServiceError) as e:
            self.transcription_error = str(e)
            logger.warning(f"Transcription unavailable, recording audio only: {e}")
            return None

        sample_rate = self.config.get('audio.sample_rate', 16000)
        chunk_size = self.config.get('audio.chunk_size', 1024)
        chunk_duration = float(self.config.get('transcription.chunk_duration_seconds', 3.0))
        chunks_per_second = sample_rate / chunk_size
        trigger_chunks = int(chunks_per_second * chunk_duration)
        logger.info(f"Transcription trigger: {trigger_chunks} chunks ({chunk_duration}s)")
        return ChunkedTranscriber(backend=backend, trigger_chunks=trigger_chunks, topic=AUDIO_FRAME_TOPIC)

    def _create_google_speech_backend(self):
        from ..transcription.google_backend import GoogleSpeechBackend

        credentials_path = self.config.get_google_credentials_path()
        language = self.config.get('google_cloud.language', 'it-IT')
        use_enhanced = self.config.get('google_cloud.use_enhanced_model', True)
        enable_punctuation = self.config.get('google_cloud.enable_automatic_punctuation', True)

        logger.info("Initializing Google Speech backend...")
        logger.debug(f"Config: language={language}, enhanced={use_enhanced}, punctuation={enable_punctuation}")
        backend = GoogleSpeechBackend(
            credentials_path=credentials_path,
            sample_rate=self.config.get('audio.sample_rate', 16000),
            language=language,
            use_enhanced=use_enhanced,
            enable_automatic_punctuation=enable_punctuation,
        )
        if not backend.initialize():
            raise TranscriptionServiceError("Google Speech backend failed to initialize")
        logger.info(f"Google Speech backend initialized successfully: {backend.get_stats()}")
        return backend

    def shutdown(self) -> None:
        if self.coordinator is not None:
            self.coordinator.shutdown()
        if self.transcription is not None:
            self.transcription.shutdown()
        logger.info("NotesService shutdown complete")

    # -- stored notes -----------------------------------------------------------

    def list_notes(self) -> List[Note]:
        return self.persistence.load()

    def get_note(self, note_id: int) -> Optional[Note]:
        return self.persistence.get(note_id)

    def get_note_audio(self, note_id: int) -> Optional[bytes]:
        return self.persistence.load_audio(note_id)

    def count_notes(self) -> int:
        return self.persistence.count()

    def delete_note(self, note_id: int) -> Dict[str, Any]:
        try:
            removed = self.persistence.delete(note_id)
        except PersistenceError as e:
            logger.error(f"Error deleting note {note_id}: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True, "removed": removed}

    def clear_notes(self) -> Dict[str, Any]:
        try:
            self.persistence.clear()
        except PersistenceError as e:
            logger.error(f"Error clearing notes: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True}

    def build_report(self) -> ExportReport:
        return build_report(self.list_notes())

    def export_notes(self, output_directory: Optional[str] = None) -> Dict[str, Any]:
        """Write the aggregate, summary and JSON exports."""
        notes = self.list_notes()
        if not notes:
            return {"success": False, "error": "No notes to export"}

        writer = ExportWriter(output_directory or self.config.get_export_directory())
        try:
            files = writer.write_all(notes)
        except OSError as e:
            logger.error(f"Error exporting notes: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True, "files": files, "note_count": len(notes)}

    def export_note(self, note_id: int, output_directory: Optional[str] = None) -> Dict[str, Any]:
        note = self.get_note(note_id)
        if note is None:
            return {"success": False, "error": f"Note {note_id} not found"}
        writer = ExportWriter(output_directory or self.config.get_export_directory())
        try:
            path = writer.write_note(note)
        except OSError as e:
            logger.error(f"Error exporting note {note_id}: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True, "file": path}
