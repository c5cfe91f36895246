"""Pytest configuration and fixtures for VoiceNotes tests."""

import pytest
import tempfile
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from unittest.mock import Mock, MagicMock, patch
import numpy as np

from voicenotes.audio.base import AbstractCaptureDevice
from voicenotes.models.note import NoteFactory, NoteIdGenerator
from voicenotes.models.session import SaveResult
from voicenotes.services.session_coordinator import SessionCoordinator
from voicenotes.transcription.base import AbstractTranscriptionEngine


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without threads or hardware")
    config.addinivalue_line("markers", "integration: tests wiring several components together")
    config.addinivalue_line("markers", "slow: tests that sleep on real timers")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")


# -- deterministic time ---------------------------------------------------------

class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    """threading.Timer stand-in that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled

    def fire(self):
        if self.active:
            self.cancelled = True
            self.function()


class FakeTimerFactory:
    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval, function) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]

    def active(self) -> List[FakeTimer]:
        return [t for t in self.timers if t.active]


# -- fake devices ----------------------------------------------------------------

class FakeCapture(AbstractCaptureDevice):
    """Capture device whose completion is delivered by the test."""

    def __init__(self, start_error: Optional[Exception] = None):
        self.start_error = start_error
        self.calls: List[str] = []
        self.on_error = None
        self.on_complete = None
        self.release_count = 0
        self.peak = 0.0

    def start(self, on_error):
        self.calls.append("start")
        if self.start_error is not None:
            raise self.start_error
        self.on_error = on_error

    def pause(self):
        self.calls.append("pause")

    def resume(self):
        self.calls.append("resume")

    def stop(self, on_complete):
        self.calls.append("stop")
        self.on_complete = on_complete

    def complete(self, audio: Optional[bytes] = b"AUDIO", mime_type: Optional[str] = "audio/wav"):
        callback, self.on_complete = self.on_complete, None
        callback(audio, mime_type)

    def fail(self, error):
        self.on_error(error)

    def release(self):
        self.calls.append("release")
        self.release_count += 1

    @property
    def level(self):
        return self.peak


class FakeRun:
    def __init__(self, on_fragment, on_end, on_error):
        self.on_fragment = on_fragment
        self.on_end = on_end
        self.on_error = on_error

    def fragment(self, text: str, is_final: bool = True):
        self.on_fragment(text, is_final)

    def end(self):
        self.on_end()

    def error(self, error):
        self.on_error(error)


class FakeTranscription(AbstractTranscriptionEngine):
    """Transcription engine that records runs; tests drive the callbacks."""

    def __init__(self, start_error: Optional[Exception] = None):
        self.start_error = start_error
        self.runs: List[FakeRun] = []
        self.stop_count = 0

    def start(self, on_fragment, on_end, on_error):
        if self.start_error is not None:
            raise self.start_error
        self.runs.append(FakeRun(on_fragment, on_end, on_error))

    def stop(self):
        self.stop_count += 1

    @property
    def current(self) -> FakeRun:
        return self.runs[-1]


# -- fixtures --------------------------------------------------------------------

@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing (1024 samples, 440 Hz)."""
    sample_rate = 16000
    duration = 1024 / sample_rate
    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * 440 * t)
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.read.return_value = b'\x00' * 2048
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()


@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def fake_transcription():
    return FakeTranscription()


@pytest.fixture
def mock_persistence():
    """Persistence stand-in that accepts every note."""
    persistence = MagicMock()
    persistence.save.side_effect = lambda note: SaveResult(success=True, note_id=note.id,
                                                           audio_stored=note.audio_ref is not None)
    return persistence


@pytest.fixture
def note_factory():
    ids = iter(range(1_700_000_000_000, 1_800_000_000_000))
    return NoteFactory(id_generator=NoteIdGenerator(clock=lambda: next(ids) / 1000.0),
                       now=lambda: datetime(2024, 3, 15, 9, 30))


@pytest.fixture
def make_coordinator(fake_capture, fake_transcription, mock_persistence, note_factory, fake_clock, timer_factory):
    """Factory for coordinators wired to the fakes; keyword args override them."""
    def _make(**overrides):
        kwargs = dict(
            capture=fake_capture,
            transcription=fake_transcription,
            persistence=mock_persistence,
            note_factory=note_factory,
            grace_period_seconds=5.0,
            clock=fake_clock,
            timer_factory=timer_factory,
        )
        kwargs.update(overrides)
        return SessionCoordinator(**kwargs)
    return _make


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=16000):
        samples = int(duration_seconds * sample_rate)
        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = np.sin(2 * np.pi * 440 * t)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")
        return (wave_data * 32767).astype(np.int16).tobytes()

    return generate_audio


@pytest.fixture
def config_file(temp_data_dir):
    """Write a YAML config into the temp dir and return its path."""
    def _write(content: str) -> str:
        path = Path(temp_data_dir) / "voicenotes.yaml"
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _write
