"""Microphone capture with pause/resume, frame publishing and WAV output."""

import io
import time
import wave
import logging
import threading
from threading import Thread, Event
from typing import Optional, List, Callable
from datetime import datetime

import numpy as np
import pyaudio

from .base import AbstractCaptureDevice, CaptureCompleteCallback, DeviceErrorCallback
from ..errors import DeviceAcquisitionError, DeviceRuntimeError
from ..models.audio import AudioStats
from ..models.events import AudioEvent

logger = logging.getLogger(__name__)

WAV_MIME_TYPE = "audio/wav"

# PortAudio error codes surfaced by PyAudio as OSError.errno
_PA_INVALID_DEVICE = -9996
_PA_INVALID_CHANNEL_COUNT = -9998
_PA_INVALID_SAMPLE_RATE = -9997
_PA_DEVICE_UNAVAILABLE = -9985
_PA_SAMPLE_FORMAT_NOT_SUPPORTED = -9994


def _acquisition_reason(error: Exception) -> str:
    code = getattr(error, "errno", None)
    if code == _PA_INVALID_DEVICE:
        return DeviceAcquisitionError.NOT_FOUND
    if code == _PA_DEVICE_UNAVAILABLE:
        return DeviceAcquisitionError.BUSY
    if code in (_PA_INVALID_SAMPLE_RATE, _PA_INVALID_CHANNEL_COUNT, _PA_SAMPLE_FORMAT_NOT_SUPPORTED):
        return DeviceAcquisitionError.UNSUPPORTED
    if isinstance(error, PermissionError):
        return DeviceAcquisitionError.PERMISSION_DENIED
    return DeviceAcquisitionError.UNKNOWN


class AudioCapture(AbstractCaptureDevice):
    """Continuous microphone capture in a background thread.

    Frames are kept in memory for the final WAV payload and, while not
    paused, published through ``callback`` so a transcriber can consume them.
    """

    def __init__(
        self,
        callback: Optional[Callable[[AudioEvent], None]] = None,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            callback: Receives every captured AudioEvent while not paused
            sample_rate: Audio sample rate (16kHz suits speech recognition)
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.audio_event_callback = callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False
        self.is_paused = False
        self._lock = threading.Lock()
        self._on_complete: Optional[CaptureCompleteCallback] = None
        self._on_error: Optional[DeviceErrorCallback] = None

        # Captured audio
        self.audio_data: List[bytes] = []

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.peak_level = 0.0

        # PyAudio resources
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    def start(self, on_error: DeviceErrorCallback) -> None:
        """Open the input stream and start recording in a background thread."""
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info("Starting audio recording")
        try:
            self._open_audio_stream()
        except Exception as e:
            self._close_audio_stream()
            reason = _acquisition_reason(e)
            logger.error(f"Could not open audio input ({reason}): {e}")
            raise DeviceAcquisitionError(f"Could not open audio input: {e}", reason=reason) from e

        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.peak_level = 0.0
        self.audio_data = []
        self.is_paused = False
        self._on_error = on_error
        self._on_complete = None

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.is_recording = True
        self.recording_thread.start()

    def pause(self) -> None:
        if self.is_recording and not self.is_paused:
            self.is_paused = True
            logger.info("Audio recording paused")

    def resume(self) -> None:
        if self.is_recording and self.is_paused:
            self.is_paused = False
            logger.info("Audio recording resumed")

    def stop(self, on_complete: CaptureCompleteCallback) -> None:
        """Ask the recording thread to finish; ``on_complete`` gets the WAV bytes."""
        with self._lock:
            if not self.is_recording or self.recording_thread is None:
                logger.warning("No recording in progress")
                complete_now = True
            else:
                self._on_complete = on_complete
                complete_now = False
        if complete_now:
            on_complete(None, None)
            return

        logger.info("Stopping audio recording")
        self.stop_event.set()

    def release(self) -> None:
        """Stop the thread without delivering audio and close the device."""
        with self._lock:
            self._on_complete = None
            self._on_error = None
        self.stop_event.set()
        thread = self.recording_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
        self._close_audio_stream()
        self.is_recording = False
        self.is_paused = False

    def _open_audio_stream(self) -> None:
        self.pyaudio_instance = pyaudio.PyAudio()
        self.stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.chunk_size,
            stream_callback=None
        )
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")

    def _close_audio_stream(self) -> None:
        with self._lock:
            stream, self.stream = self.stream, None
            instance, self.pyaudio_instance = self.pyaudio_instance, None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")
        if instance is not None:
            instance.terminate()

    def _read_audio_chunk(self) -> bytes:
        audio_chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
        self.total_chunks += 1
        return audio_chunk

    @property
    def level(self) -> float:
        if not self.is_recording or self.is_paused:
            return 0.0
        return self.peak_level

    def _update_peak_level(self, audio_chunk: bytes) -> None:
        samples = np.frombuffer(audio_chunk, dtype=np.int16)
        if samples.size:
            self.peak_level = float(np.abs(samples.astype(np.int32)).max()) / 32768.0

    def _publish_audio_event(self, audio_chunk: bytes, final: bool = False) -> None:
        if not self.audio_event_callback:
            return
        audio_event = AudioEvent(
            chunk_id=f"chunk_{self.total_chunks}",
            audio_data=audio_chunk,
            timestamp=time.time(),
            sequence_number=self.total_chunks,
            sample_rate=self.sample_rate,
            channels=self.channels,
            final=final
        )
        self.audio_event_callback(audio_event)

    def _record_continuously(self) -> None:
        """Internal method: recording loop in background thread."""
        failure: Optional[Exception] = None
        try:
            while not self.stop_event.is_set():
                audio_chunk = self._read_audio_chunk()
                if self.is_paused:
                    continue
                self.audio_data.append(audio_chunk)
                self._update_peak_level(audio_chunk)
                self._publish_audio_event(audio_chunk)
        except Exception as e:
            failure = e
            logger.error(f"Audio capture failed: {e}")
        finally:
            self._close_audio_stream()
            self.is_recording = False
            logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

        with self._lock:
            on_complete, self._on_complete = self._on_complete, None
            on_error, self._on_error = self._on_error, None

        if on_complete is not None:
            on_complete(self.to_wav_bytes(), WAV_MIME_TYPE if self.audio_data else None)
        elif failure is not None and on_error is not None:
            on_error(DeviceRuntimeError(f"Audio capture failed: {failure}"))

    def to_wav_bytes(self) -> Optional[bytes]:
        """Encode captured frames as a WAV payload, or None if nothing was captured."""
        if not self.audio_data:
            logger.warning("No audio data captured")
            return None

        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(pyaudio.get_sample_size(self.format))
            wf.setframerate(self.sample_rate)
            for chunk in self.audio_data:
                wf.writeframes(chunk)
        return buffer.getvalue()

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            is_paused=self.is_paused,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )
