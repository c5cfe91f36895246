"""Recording session coordinator: event queue, reducer and effect runner."""

import time
import queue
import logging
import threading
from dataclasses import replace
from typing import Callable, List, Optional

from pubsub import pub

from .session_reducer import reduce
from ..audio.base import AbstractCaptureDevice
from ..errors import DeviceAcquisitionError, VoiceNotesError, user_message
from ..models.events import (
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
    Effect,
    EffectType,
)
from ..models.note import Note, NoteFactory
from ..models.session import SessionPhase, SessionState, SessionStatus, SaveResult
from ..transcription.accumulator import TranscriptAccumulator
from ..transcription.base import AbstractTranscriptionEngine

logger = logging.getLogger(__name__)

STATUS_TOPIC = "session.status"
NOTE_SAVED_TOPIC = "notes.saved"


class SessionCoordinator:
    """Owns the recording session and serializes every state change.

    Devices and timers only ``submit`` events; a single worker thread (or
    ``drain()`` in tests) reduces them one at a time and runs the resulting
    effects against the injected collaborators.
    """

    def __init__(self,
                 capture: AbstractCaptureDevice,
                 transcription: Optional[AbstractTranscriptionEngine],
                 persistence,
                 note_factory: Optional[NoteFactory] = None,
                 grace_period_seconds: float = 10.0,
                 transcription_enabled: bool = True,
                 clock: Callable[[], float] = time.monotonic,
                 timer_factory=threading.Timer,
                 accumulator: Optional[TranscriptAccumulator] = None):
        """Initialize the coordinator.

        Args:
            capture: Capture device used for every session
            transcription: Transcription engine, or None for audio-only notes
            persistence: Object with ``save(note) -> SaveResult``
            note_factory: Builds notes from finished sessions
            grace_period_seconds: Wait for the second completion signal
            transcription_enabled: Initial value of the transcription toggle
            clock: Monotonic time source used to stamp events
            timer_factory: ``(delay, callback)`` factory for the grace timer
            accumulator: Transcript accumulator shared with the UI
        """
        self.capture = capture
        self.transcription = transcription
        self.persistence = persistence
        self.note_factory = note_factory or NoteFactory()
        self.grace_period_seconds = grace_period_seconds
        self.clock = clock
        self.timer_factory = timer_factory
        self.accumulator = accumulator or TranscriptAccumulator()

        self.state = SessionState(transcription_enabled=transcription_enabled and transcription is not None)
        self.last_save: Optional[SaveResult] = None
        self.last_note: Optional[Note] = None

        self.event_queue: "queue.Queue" = queue.Queue()
        self.worker_thread: Optional[threading.Thread] = None
        self._grace_timer = None
        self._lock = threading.RLock()

    # -- public API ---------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    def is_error(self) -> bool:
        return self.state.phase is SessionPhase.ERROR

    @property
    def elapsed_ms(self) -> int:
        return self.state.elapsed_at(self.clock())

    def submit(self, event: CoordinatorEvent) -> None:
        """Queue an event; safe to call from any thread."""
        if not event.at:
            event = replace(event, at=self.clock())
        self.event_queue.put(event)

    def send_command(self, command: Command) -> None:
        self.submit(CommandReceived(command=command))

    def set_transcription_enabled(self, enabled: bool) -> None:
        if enabled and self.transcription is None:
            logger.warning("No transcription engine configured, toggle ignored")
            return
        self.submit(TranscriptionToggled(enabled=enabled))

    def start(self) -> None:
        """Process queued events on a background worker thread."""
        if self.worker_thread and self.worker_thread.is_alive():
            return
        self.worker_thread = threading.Thread(target=self._worker_loop, daemon=True)
        self.worker_thread.name = "SessionCoordinator"
        self.worker_thread.start()
        logger.info("Session coordinator started")

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the worker and release every device."""
        logger.info("Shutting down session coordinator...")
        if self.worker_thread and self.worker_thread.is_alive():
            self.event_queue.put(None)
            self.worker_thread.join(timeout)
            if self.worker_thread.is_alive():
                logger.warning("Coordinator worker did not terminate cleanly.")
        self.reset()

    def drain(self) -> int:
        """Process every queued event on the calling thread.

        Events submitted while draining (synchronous device callbacks) are
        processed too. Returns the number of events handled.
        """
        handled = 0
        while True:
            try:
                event = self.event_queue.get_nowait()
            except queue.Empty:
                return handled
            try:
                if event is not None:
                    self.handle(event)
                    handled += 1
            finally:
                self.event_queue.task_done()

    def handle(self, event: CoordinatorEvent) -> None:
        """Reduce one event and run its effects."""
        with self._lock:
            transition = reduce(self.state, event)
            previous = self.state.phase
            self.state = transition.state
            if previous is not self.state.phase:
                logger.info(f"Session {self.state.session_number}: {previous.name} -> {self.state.phase.name}")
            self._run_effects(transition.effects)

    def reset(self) -> None:
        """Force the coordinator back to IDLE, releasing held devices."""
        with self._lock:
            logger.info("Resetting session coordinator")
            self._cancel_grace_timer()
            self._release_devices()
            self.accumulator.reset()
            self.state = SessionState(session_number=self.state.session_number,
                                      transcription_enabled=self.state.transcription_enabled)
            self._publish_status()

    def status(self) -> SessionStatus:
        state = self.state
        title = description = None
        if state.error is not None:
            title, description = user_message(state.error)
        return SessionStatus(
            phase=state.phase,
            session_number=state.session_number,
            elapsed_ms=state.elapsed_at(self.clock()),
            transcription_enabled=state.transcription_enabled,
            final_text=self.accumulator.current_final(),
            preview_text=self.accumulator.current_preview(),
            audio_level=self.capture.level if state.phase is SessionPhase.RECORDING else 0.0,
            error_title=title,
            error_description=description,
            last_save=self.last_save,
        )

    # -- worker ---------------------------------------------------------------

    def _worker_loop(self) -> None:
        while True:
            event = self.event_queue.get()
            try:
                if event is None:
                    logger.debug("Coordinator received sentinel, exiting.")
                    break
                self.handle(event)
            except Exception as e:
                logger.error(f"Unhandled exception processing {event!r}: {e}", exc_info=True)
            finally:
                self.event_queue.task_done()

    # -- effects ----------------------------------------------------------------

    def _run_effects(self, effects) -> None:
        follow_ups: List[CoordinatorEvent] = []
        for effect in effects:
            try:
                follow_up = self._run_effect(effect)
            except DeviceAcquisitionError as e:
                logger.error(f"Capture device unavailable: {e}")
                self.handle(DeviceFailed(at=self.clock(), session=self.state.session_number, error=e))
                return
            if follow_up is not None:
                follow_ups.append(follow_up)
        for event in follow_ups:
            self.handle(event)

    def _run_effect(self, effect: Effect) -> Optional[CoordinatorEvent]:
        effect_type = effect.type
        if effect_type is EffectType.RESET_ACCUMULATOR:
            self.accumulator.reset()
        elif effect_type is EffectType.APPEND_FRAGMENT:
            self.accumulator.on_fragment(effect["text"], effect["is_final"])
        elif effect_type is EffectType.START_CAPTURE:
            session = effect["session"]
            self.capture.start(on_error=lambda error: self.submit(DeviceFailed(session=session, error=error)))
        elif effect_type is EffectType.PAUSE_CAPTURE:
            self.capture.pause()
        elif effect_type is EffectType.RESUME_CAPTURE:
            self.capture.resume()
        elif effect_type is EffectType.STOP_CAPTURE:
            session = effect["session"]
            self.capture.stop(on_complete=lambda audio, mime_type: self.submit(
                AudioReady(session=session, audio=audio, mime_type=mime_type)))
        elif effect_type is EffectType.START_TRANSCRIPTION:
            return self._start_transcription(effect["session"], effect["generation"])
        elif effect_type is EffectType.STOP_TRANSCRIPTION:
            if self.transcription is not None:
                self.transcription.stop()
        elif effect_type is EffectType.ARM_GRACE_TIMER:
            self._arm_grace_timer(effect["session"])
        elif effect_type is EffectType.CANCEL_GRACE_TIMER:
            self._cancel_grace_timer()
        elif effect_type is EffectType.PERSIST_NOTE:
            self._persist_note(effect)
        elif effect_type is EffectType.RELEASE_DEVICES:
            self._release_devices()
        elif effect_type is EffectType.PUBLISH_STATUS:
            self._publish_status()
        return None

    def _start_transcription(self, session: int, generation: int) -> Optional[CoordinatorEvent]:
        if self.transcription is None:
            return TranscriptionFailed(at=self.clock(), session=session, generation=generation, run_ended=True,
                                       error=None)
        try:
            self.transcription.start(
                on_fragment=lambda text, is_final: self.submit(
                    TranscriptFragment(session=session, text=text, is_final=is_final)),
                on_end=lambda: self.submit(TranscriptEnded(session=session, generation=generation)),
                on_error=lambda error: self.submit(TranscriptionFailed(session=session, error=error)),
            )
        except VoiceNotesError as e:
            logger.warning(f"Transcription could not start, continuing without it: {e}")
            return TranscriptionFailed(at=self.clock(), session=session, generation=generation, run_ended=True,
                                       error=e)
        return None

    def _arm_grace_timer(self, session: int) -> None:
        self._cancel_grace_timer()
        timer = self.timer_factory(self.grace_period_seconds,
                                   lambda: self.submit(GraceExpired(session=session)))
        if hasattr(timer, "daemon"):
            timer.daemon = True
        self._grace_timer = timer
        timer.start()
        logger.debug(f"Grace timer armed for session {session} ({self.grace_period_seconds}s)")

    def _cancel_grace_timer(self) -> None:
        timer, self._grace_timer = self._grace_timer, None
        if timer is not None:
            timer.cancel()

    def _persist_note(self, effect: Effect) -> None:
        note = self.note_factory.create(
            transcript=self.accumulator.current_final(),
            duration_seconds=effect["duration_seconds"],
            audio=effect["audio"],
            audio_mime_type=effect["mime_type"],
            transcription_enabled=effect["transcription_enabled"],
        )
        try:
            result = self.persistence.save(note)
        except Exception as e:
            logger.error(f"Error saving note {note.id}: {e}", exc_info=True)
            result = SaveResult(success=False, note_id=note.id, error=str(e))

        self.last_note = note
        self.last_save = result
        if result.success:
            logger.info(f"Note {note.id} saved ({note.duration_seconds}s, audio_stored={result.audio_stored})")
        else:
            logger.error(f"Note {note.id} not saved: {result.error}")
        self._send(NOTE_SAVED_TOPIC, note=note, result=result)

    def _release_devices(self) -> None:
        try:
            self.capture.release()
        except Exception as e:
            logger.warning(f"Error releasing capture device: {e}")
        if self.transcription is not None:
            self.transcription.stop()

    def _publish_status(self) -> None:
        self._send(STATUS_TOPIC, status=self.status())

    def _send(self, topic: str, **kwargs) -> None:
        # Listener failures must not break the state machine
        try:
            pub.sendMessage(topic, **kwargs)
        except Exception as e:
            logger.warning(f"Listener error on {topic}: {e}", exc_info=True)
