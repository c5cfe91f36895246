"""Unit tests for AudioCapture class."""

import pytest
from unittest.mock import Mock, patch

from voicenotes.audio.base import NullCaptureDevice
from voicenotes.audio.capture import AudioCapture, WAV_MIME_TYPE
from voicenotes.errors import DeviceAcquisitionError, DeviceRuntimeError


def stop_after(capture, reads, chunk=b'\x01\x00' * 1024):
    """Stream.read side effect that sets the stop event on the ``reads``-th call."""
    count = {"n": 0}

    def read(size, exception_on_overflow=False):
        count["n"] += 1
        if count["n"] >= reads:
            capture.stop_event.set()
        return chunk

    return read


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self):
        """Test AudioCapture initialization with default parameters."""
        capture = AudioCapture()

        assert capture.sample_rate == 16000
        assert capture.chunk_size == 1024
        assert capture.channels == 1
        assert capture.is_recording is False
        assert capture.is_paused is False
        assert capture.total_chunks == 0
        assert capture.peak_level == 0.0
        assert len(capture.audio_data) == 0

    def test_start_opens_stream_and_thread(self, mock_pyaudio):
        """Starting opens the input stream and spawns a daemon thread."""
        capture = AudioCapture()

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start(on_error=Mock())

            assert capture.is_recording is True
            assert capture.start_time is not None
            assert capture.recording_thread.daemon is True
            capture.recording_thread.join(1.0)
            mock_record.assert_called_once()

        kwargs = mock_pyaudio['instance'].open.call_args.kwargs
        assert kwargs['input'] is True
        assert kwargs['rate'] == 16000

    @pytest.mark.parametrize("error, reason", [
        (OSError(-9996, "Invalid input device"), DeviceAcquisitionError.NOT_FOUND),
        (OSError(-9985, "Device unavailable"), DeviceAcquisitionError.BUSY),
        (OSError(-9997, "Invalid sample rate"), DeviceAcquisitionError.UNSUPPORTED),
        (PermissionError("denied"), DeviceAcquisitionError.PERMISSION_DENIED),
        (RuntimeError("boom"), DeviceAcquisitionError.UNKNOWN),
    ])
    def test_start_failure_maps_reason(self, mock_pyaudio, error, reason):
        """Open failures become DeviceAcquisitionError with a categorized reason."""
        mock_pyaudio['instance'].open.side_effect = error
        capture = AudioCapture()

        with pytest.raises(DeviceAcquisitionError) as exc_info:
            capture.start(on_error=Mock())

        assert exc_info.value.reason == reason
        assert capture.is_recording is False
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_pause_and_resume_flags(self):
        capture = AudioCapture()
        capture.is_recording = True

        capture.pause()
        assert capture.is_paused is True
        capture.resume()
        assert capture.is_paused is False

    def test_pause_ignored_when_not_recording(self):
        capture = AudioCapture()
        capture.pause()
        assert capture.is_paused is False

    def test_stop_without_recording_completes_immediately(self):
        """Stopping an idle capture still delivers the completion signal once."""
        capture = AudioCapture()
        on_complete = Mock()

        capture.stop(on_complete)

        on_complete.assert_called_once_with(None, None)

    def test_recording_loop_delivers_wav_on_stop(self, mock_pyaudio):
        """The loop keeps frames and hands a WAV payload to on_complete."""
        events = []
        capture = AudioCapture(callback=events.append)
        stream = mock_pyaudio['stream']
        stream.read.side_effect = stop_after(capture, 3)
        capture.stream = stream
        capture.pyaudio_instance = mock_pyaudio['instance']
        on_complete = Mock()
        capture._on_complete = on_complete

        capture._record_continuously()

        audio, mime_type = on_complete.call_args[0]
        assert audio.startswith(b"RIFF")
        assert mime_type == WAV_MIME_TYPE
        assert len(capture.audio_data) == 3
        assert [e.sequence_number for e in events] == [1, 2, 3]
        assert capture.is_recording is False
        stream.close.assert_called_once()

    def test_paused_frames_are_dropped(self, mock_pyaudio):
        events = []
        capture = AudioCapture(callback=events.append)
        stream = mock_pyaudio['stream']
        stream.read.side_effect = stop_after(capture, 4)
        capture.stream = stream
        capture.pyaudio_instance = mock_pyaudio['instance']
        capture.is_paused = True

        capture._record_continuously()

        assert capture.audio_data == []
        assert events == []
        assert capture.total_chunks == 4

    def test_read_failure_reports_runtime_error(self, mock_pyaudio):
        """A device failure mid-session goes to on_error, not on_complete."""
        capture = AudioCapture()
        stream = mock_pyaudio['stream']
        stream.read.side_effect = OSError(-9981, "Input overflowed")
        capture.stream = stream
        capture.pyaudio_instance = mock_pyaudio['instance']
        on_error = Mock()
        capture._on_error = on_error

        capture._record_continuously()

        on_error.assert_called_once()
        assert isinstance(on_error.call_args[0][0], DeviceRuntimeError)

    def test_release_discards_audio(self, mock_pyaudio):
        capture = AudioCapture()
        capture.stream = mock_pyaudio['stream']
        capture.pyaudio_instance = mock_pyaudio['instance']
        capture._on_complete = Mock()
        capture.is_recording = True

        capture.release()

        assert capture._on_complete is None
        assert capture.stream is None
        assert capture.is_recording is False
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_release_is_idempotent(self):
        capture = AudioCapture()
        capture.release()
        capture.release()
        assert capture.is_recording is False

    def test_to_wav_bytes_empty(self):
        assert AudioCapture().to_wav_bytes() is None

    def test_peak_level(self, sample_audio_chunk):
        capture = AudioCapture()
        capture._update_peak_level(sample_audio_chunk)
        assert 0.9 < capture.peak_level <= 1.0

    def test_level_follows_peak_only_while_capturing(self, sample_audio_chunk):
        capture = AudioCapture()
        capture._update_peak_level(sample_audio_chunk)
        assert capture.level == 0.0

        capture.is_recording = True
        assert capture.level == capture.peak_level

        capture.is_paused = True
        assert capture.level == 0.0

    def test_null_device_has_no_level(self):
        assert NullCaptureDevice().level == 0.0

    def test_recording_stats(self, audio_test_data):
        capture = AudioCapture()
        capture.audio_data = [audio_test_data("silence", 0.1)]
        capture.total_chunks = 2

        stats = capture.get_recording_stats()

        assert stats.total_chunks == 2
        assert stats.is_recording is False
        assert stats.sample_rate == 16000


@pytest.mark.unit
class TestNullCaptureDevice:

    def test_stop_completes_without_audio(self):
        device = NullCaptureDevice()
        device.start(on_error=Mock())
        assert device.is_recording is True

        on_complete = Mock()
        device.stop(on_complete)

        on_complete.assert_called_once_with(None, None)
        assert device.is_recording is False


@pytest.mark.unit
class TestAudioPublisher:

    def test_publish_sends_event_on_topic(self):
        from pubsub import pub
        from voicenotes.audio.audio_pub import AudioPublisher
        from voicenotes.models.events import AudioEvent

        received = []

        def listener(event):
            received.append(event)

        topic = "test_publisher_frames"
        pub.subscribe(listener, topic)
        try:
            event = AudioEvent(chunk_id="chunk_1", audio_data=b'\x00' * 3200, timestamp=0.0, sequence_number=1)
            AudioPublisher(topic).publish_audio_event(event)
        finally:
            pub.unsubscribe(listener, topic)

        assert received == [event]
        assert event.chunk_duration_ms == 100
