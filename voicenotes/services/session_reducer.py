"""Recording session state machine as a pure reducer.

``reduce(state, event)`` returns the next state plus the list of side effects
the coordinator must carry out. It never touches devices, clocks or storage,
so every interleaving of completion signals can be replayed in tests.

Phases::

    IDLE -> RECORDING <-> PAUSED -> FINALIZING -> IDLE
      any phase --device error--> ERROR --acknowledge--> IDLE

FINALIZING is a join over two signals: the capture's audio-ready and the
transcription's end of run. Either may arrive first; the note is persisted
when both are in, or when the grace timer expires with at least one of them.
"""

import logging
from dataclasses import dataclass, replace
from typing import Tuple

from ..errors import DeviceRuntimeError, JoinTimeoutError
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
from ..models.session import SessionPhase, SessionState

logger = logging.getLogger(__name__)

ACTIVE_PHASES = (SessionPhase.RECORDING, SessionPhase.PAUSED, SessionPhase.FINALIZING)


@dataclass(frozen=True)
class Transition:
    """Result of reducing one event."""
    state: SessionState
    effects: Tuple[Effect, ...] = ()

    @property
    def ignored(self) -> bool:
        return not self.effects


def _effect(effect_type: EffectType, **payload) -> Effect:
    return Effect(effect_type, payload)


_STATUS = _effect(EffectType.PUBLISH_STATUS)


def reduce(state: SessionState, event: CoordinatorEvent) -> Transition:
    """Compute the transition for ``event`` in ``state``."""
    if isinstance(event, CommandReceived):
        return _on_command(state, event)
    if isinstance(event, TranscriptFragment):
        return _on_fragment(state, event)
    if isinstance(event, TranscriptEnded):
        return _on_transcript_ended(state, event)
    if isinstance(event, AudioReady):
        return _on_audio_ready(state, event)
    if isinstance(event, GraceExpired):
        return _on_grace_expired(state, event)
    if isinstance(event, DeviceFailed):
        return _on_device_failed(state, event)
    if isinstance(event, TranscriptionFailed):
        return _on_transcription_failed(state, event)
    if isinstance(event, TranscriptionToggled):
        return _on_transcription_toggled(state, event)
    logger.warning(f"Unknown coordinator event: {event!r}")
    return Transition(state)


def _on_command(state: SessionState, event: CommandReceived) -> Transition:
    command = event.command
    phase = state.phase

    if command is Command.ACKNOWLEDGE:
        if phase is not SessionPhase.ERROR:
            return Transition(state)
        return Transition(
            _fresh_idle(state),
            (_effect(EffectType.RELEASE_DEVICES), _effect(EffectType.RESET_ACCUMULATOR), _STATUS),
        )

    if command is Command.PRIMARY:
        if phase is SessionPhase.IDLE:
            return _start_session(state, event.at)
        if phase is SessionPhase.RECORDING:
            return _pause(state, event.at)
        if phase is SessionPhase.PAUSED:
            return _resume(state, event.at)
        logger.debug(f"PRIMARY ignored in {phase.name}")
        return Transition(state)

    if command is Command.SECONDARY:
        if phase in (SessionPhase.RECORDING, SessionPhase.PAUSED):
            return _begin_finalize(state, event.at)
        logger.debug(f"SECONDARY ignored in {phase.name}")
        return Transition(state)

    return Transition(state)


def _start_session(state: SessionState, at: float) -> Transition:
    session = state.session_number + 1
    transcribe = state.transcription_enabled
    generation = 1 if transcribe else 0
    new_state = SessionState(
        phase=SessionPhase.RECORDING,
        session_number=session,
        elapsed_ms=0,
        segment_started_at=at,
        transcription_enabled=state.transcription_enabled,
        transcription_active=transcribe,
        transcription_generation=generation,
        ended_generation=0,
    )
    effects = [
        _effect(EffectType.RESET_ACCUMULATOR),
        _effect(EffectType.START_CAPTURE, session=session),
    ]
    if transcribe:
        effects.append(_effect(EffectType.START_TRANSCRIPTION, session=session, generation=generation))
    effects.append(_STATUS)
    return Transition(new_state, tuple(effects))


def _pause(state: SessionState, at: float) -> Transition:
    new_state = replace(state,
                        phase=SessionPhase.PAUSED,
                        elapsed_ms=state.elapsed_at(at),
                        segment_started_at=None)
    effects = [_effect(EffectType.PAUSE_CAPTURE)]
    if state.transcription_active:
        effects.append(_effect(EffectType.STOP_TRANSCRIPTION))
    effects.append(_STATUS)
    return Transition(new_state, tuple(effects))


def _resume(state: SessionState, at: float) -> Transition:
    new_state = replace(state, phase=SessionPhase.RECORDING, segment_started_at=at)
    effects = [_effect(EffectType.RESUME_CAPTURE)]
    if state.transcription_active:
        generation = state.transcription_generation + 1
        new_state = replace(new_state, transcription_generation=generation)
        effects.append(_effect(EffectType.START_TRANSCRIPTION,
                               session=state.session_number, generation=generation))
    effects.append(_STATUS)
    return Transition(new_state, tuple(effects))


def _begin_finalize(state: SessionState, at: float) -> Transition:
    was_recording = state.phase is SessionPhase.RECORDING
    # Ready only once the last recognition run started in this session has
    # signalled its end. Sessions that never started a run are at generation 0.
    transcript_ready = state.ended_generation >= state.transcription_generation
    new_state = replace(state,
                        phase=SessionPhase.FINALIZING,
                        elapsed_ms=state.elapsed_at(at),
                        segment_started_at=None,
                        audio_ready=False,
                        pending_audio=None,
                        audio_mime_type=None,
                        transcript_ready=transcript_ready)
    effects = [_effect(EffectType.STOP_CAPTURE, session=state.session_number)]
    if state.transcription_active and was_recording:
        effects.append(_effect(EffectType.STOP_TRANSCRIPTION))
    effects.append(_effect(EffectType.ARM_GRACE_TIMER, session=state.session_number))
    effects.append(_STATUS)
    return Transition(new_state, tuple(effects))


def _on_fragment(state: SessionState, event: TranscriptFragment) -> Transition:
    if event.session != state.session_number or state.phase not in ACTIVE_PHASES:
        return Transition(state)
    return Transition(state, (
        _effect(EffectType.APPEND_FRAGMENT, text=event.text, is_final=event.is_final),
        _STATUS,
    ))


def _on_transcript_ended(state: SessionState, event: TranscriptEnded) -> Transition:
    if event.session != state.session_number or state.phase not in ACTIVE_PHASES:
        return Transition(state)
    new_state = replace(state, ended_generation=max(state.ended_generation, event.generation))
    if state.phase is not SessionPhase.FINALIZING:
        return Transition(new_state)
    if event.generation < state.transcription_generation:
        logger.debug(f"Ignoring end of stale recognition run {event.generation}")
        return Transition(new_state)
    return _maybe_join(replace(new_state, transcript_ready=True))


def _on_audio_ready(state: SessionState, event: AudioReady) -> Transition:
    if (event.session != state.session_number
            or state.phase is not SessionPhase.FINALIZING
            or state.audio_ready):
        return Transition(state)
    new_state = replace(state,
                        audio_ready=True,
                        pending_audio=event.audio,
                        audio_mime_type=event.mime_type)
    return _maybe_join(new_state)


def _maybe_join(state: SessionState) -> Transition:
    if state.audio_ready and state.transcript_ready:
        return _complete(state, state.pending_audio, state.audio_mime_type)
    return Transition(state, (_STATUS,))


def _complete(state: SessionState, audio, mime_type) -> Transition:
    persist = _effect(EffectType.PERSIST_NOTE,
                      session=state.session_number,
                      duration_seconds=state.elapsed_ms // 1000,
                      audio=audio,
                      mime_type=mime_type,
                      transcription_enabled=state.transcription_generation > 0)
    return Transition(_fresh_idle(state), (
        persist,
        _effect(EffectType.CANCEL_GRACE_TIMER),
        _effect(EffectType.RELEASE_DEVICES),
        _STATUS,
    ))


def _on_grace_expired(state: SessionState, event: GraceExpired) -> Transition:
    if event.session != state.session_number or state.phase is not SessionPhase.FINALIZING:
        return Transition(state)
    if state.transcript_ready:
        logger.warning("Audio not ready within grace period, saving text only")
        return _complete(state, None, None)
    if state.audio_ready:
        logger.warning("Transcription did not finish within grace period, saving accumulated text")
        return _complete(state, state.pending_audio, state.audio_mime_type)
    return _fail(state, JoinTimeoutError("Neither audio nor transcript arrived within the grace period"))


def _on_device_failed(state: SessionState, event: DeviceFailed) -> Transition:
    if event.session != state.session_number or state.phase not in ACTIVE_PHASES:
        return Transition(state)
    return _fail(state, event.error or DeviceRuntimeError("Capture device failed"))


def _fail(state: SessionState, error) -> Transition:
    new_state = replace(_fresh_idle(state), phase=SessionPhase.ERROR, error=error)
    return Transition(new_state, (
        _effect(EffectType.CANCEL_GRACE_TIMER),
        _effect(EffectType.RELEASE_DEVICES),
        _effect(EffectType.RESET_ACCUMULATOR),
        _STATUS,
    ))


def _on_transcription_failed(state: SessionState, event: TranscriptionFailed) -> Transition:
    if event.session != state.session_number or state.phase not in ACTIVE_PHASES:
        return Transition(state)
    if not event.run_ended:
        return Transition(state, (_STATUS,))
    # The failed run will never signal its end: treat it as ended now and
    # keep recording without transcription for the rest of the session.
    new_state = replace(state,
                        transcription_active=False,
                        ended_generation=max(state.ended_generation, event.generation))
    if state.phase is SessionPhase.FINALIZING and event.generation >= state.transcription_generation:
        return _maybe_join(replace(new_state, transcript_ready=True))
    return Transition(new_state, (_STATUS,))


def _on_transcription_toggled(state: SessionState, event: TranscriptionToggled) -> Transition:
    new_state = replace(state, transcription_enabled=event.enabled)
    if state.phase is SessionPhase.RECORDING:
        if event.enabled and not state.transcription_active:
            generation = state.transcription_generation + 1
            return Transition(
                replace(new_state, transcription_active=True, transcription_generation=generation),
                (_effect(EffectType.START_TRANSCRIPTION, session=state.session_number, generation=generation),
                 _STATUS),
            )
        if not event.enabled and state.transcription_active:
            return Transition(replace(new_state, transcription_active=False),
                              (_effect(EffectType.STOP_TRANSCRIPTION), _STATUS))
    elif state.phase is SessionPhase.PAUSED:
        # Paused runs are already stopped; the next resume follows the flag.
        new_state = replace(new_state, transcription_active=event.enabled)
    return Transition(new_state, (_STATUS,))


def _fresh_idle(state: SessionState) -> SessionState:
    return SessionState(
        phase=SessionPhase.IDLE,
        session_number=state.session_number,
        transcription_enabled=state.transcription_enabled,
    )
