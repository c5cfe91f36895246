"""End-to-end tests: coordinator worker thread, real storage, exports and CLI."""

import json
import time
import threading
import pytest
from pathlib import Path

from pubsub import pub

from voicenotes.audio.base import NullCaptureDevice
from voicenotes.config import VoiceNotesConfig
from voicenotes.main import main
from voicenotes.models.events import Command
from voicenotes.models.session import SessionPhase
from voicenotes.services.notes_service import NotesService
from voicenotes.services.session_coordinator import NOTE_SAVED_TOPIC

TEXT_ONLY_CONFIG = """
audio:
  enabled: false
transcription:
  enabled: false
session:
  grace_period_seconds: 1.0
storage:
  data_directory: data
export:
  output_directory: exports
logging:
  file_path: logs/test.log
"""


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def config_path(config_file):
    return config_file(TEXT_ONLY_CONFIG)


@pytest.fixture
def service(config_path):
    service = NotesService(VoiceNotesConfig(config_path))
    service.initialize()
    yield service
    service.shutdown()


@pytest.fixture
def saved_notes():
    received = []
    done = threading.Event()

    def listener(note, result):
        received.append((note, result))
        done.set()

    pub.subscribe(listener, NOTE_SAVED_TOPIC)
    yield received, done
    pub.unsubscribe(listener, NOTE_SAVED_TOPIC)


@pytest.mark.integration
class TestSessionFlow:

    def test_text_only_session_is_saved(self, service, saved_notes):
        """With audio and transcription disabled a session still produces a note."""
        received, done = saved_notes
        coordinator = service.create_coordinator()
        assert isinstance(coordinator.capture, NullCaptureDevice)
        coordinator.start()

        coordinator.send_command(Command.PRIMARY)
        coordinator.send_command(Command.SECONDARY)

        assert done.wait(3.0), "note was never saved"
        note, result = received[0]
        assert result.success is True
        assert result.audio_stored is False
        assert wait_for(lambda: coordinator.phase is SessionPhase.IDLE)
        assert [n.id for n in service.list_notes()] == [note.id]

    def test_transcribed_session_with_worker_thread(self, service, saved_notes, fake_transcription):
        received, done = saved_notes
        coordinator = service.create_coordinator(transcription=fake_transcription)
        coordinator.start()

        coordinator.send_command(Command.PRIMARY)
        assert wait_for(lambda: len(fake_transcription.runs) == 1)
        fake_transcription.current.fragment("tag lavoro - preparare la demo")
        coordinator.send_command(Command.SECONDARY)
        assert wait_for(lambda: coordinator.phase is SessionPhase.FINALIZING)
        fake_transcription.current.end()

        assert done.wait(3.0)
        note, _ = received[0]
        stored = service.get_note(note.id)
        assert stored.transcript == "tag lavoro - preparare la demo"
        assert stored.has_transcript is True

    def test_grace_timer_expires_on_real_timer(self, service, fake_transcription, saved_notes):
        """Transcription never ends: the real grace timer saves the text it has."""
        received, done = saved_notes
        coordinator = service.create_coordinator(transcription=fake_transcription)
        coordinator.start()

        coordinator.send_command(Command.PRIMARY)
        assert wait_for(lambda: len(fake_transcription.runs) == 1)
        fake_transcription.current.fragment("parziale")
        coordinator.send_command(Command.SECONDARY)

        assert done.wait(3.0)
        assert received[0][0].transcript == "parziale"

    def test_shutdown_mid_session_discards_it(self, service, fake_capture):
        coordinator = service.create_coordinator(capture=fake_capture)
        coordinator.start()
        coordinator.send_command(Command.PRIMARY)
        assert wait_for(lambda: coordinator.phase is SessionPhase.RECORDING)

        coordinator.shutdown()

        assert coordinator.phase is SessionPhase.IDLE
        assert fake_capture.release_count >= 1
        assert service.count_notes() == 0


@pytest.mark.integration
class TestNotesServiceExport:

    def _record(self, service, transcription, text):
        coordinator = service.coordinator or service.create_coordinator(transcription=transcription)
        coordinator.send_command(Command.PRIMARY)
        coordinator.drain()
        transcription.current.fragment(text)
        coordinator.send_command(Command.SECONDARY)
        coordinator.drain()
        transcription.current.end()
        coordinator.drain()

    def test_export_writes_three_files(self, service, fake_transcription, temp_data_dir):
        self._record(service, fake_transcription, "ambito lavoro riunione fine nota libera")
        self._record(service, fake_transcription, "tag casa - comprare il latte")
        assert service.count_notes() == 2

        result = service.export_notes()

        assert result["success"] is True
        assert result["note_count"] == 2
        summary = Path(result["files"]["summary"]).read_text(encoding="utf-8")
        assert "casa: 1" in summary
        assert "generale: 1" in summary
        assert "lavoro: 1" in summary
        payload = json.loads(Path(result["files"]["json"]).read_text(encoding="utf-8"))
        assert payload["total_notes"] == 2
        assert Path(result["files"]["aggregate"]).parent == Path(temp_data_dir) / "exports"

    def test_export_without_notes(self, service):
        result = service.export_notes()
        assert result == {"success": False, "error": "No notes to export"}

    def test_delete_and_clear(self, service, fake_transcription):
        self._record(service, fake_transcription, "uno")
        self._record(service, fake_transcription, "due")
        newest = service.list_notes()[0]

        assert service.delete_note(newest.id) == {"success": True, "removed": True}
        assert service.delete_note(newest.id) == {"success": True, "removed": False}
        assert service.clear_notes() == {"success": True}
        assert service.count_notes() == 0


@pytest.mark.integration
class TestCommandLine:

    def _run(self, argv):
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
        return exc_info.value.code

    def test_list_empty(self, config_path, capsys):
        assert self._run(["--config", config_path, "list"]) == 0
        assert "No notes saved" in capsys.readouterr().out

    def test_headless_record_then_list_and_export(self, config_path, temp_data_dir):
        assert self._run(["--config", config_path, "record", "--duration", "0.1"]) == 0
        assert self._run(["--config", config_path, "list"]) == 0
        assert self._run(["--config", config_path, "export"]) == 0

        exports = list((Path(temp_data_dir) / "exports").iterdir())
        assert len(exports) == 3

    def test_show_missing_note(self, config_path):
        assert self._run(["--config", config_path, "show", "12345"]) == 1

    def test_clear_requires_confirmation(self, config_path):
        assert self._run(["--config", config_path, "clear"]) == 1
        assert self._run(["--config", config_path, "clear", "--yes"]) == 0

    def test_bad_config_exits_with_2(self, temp_data_dir):
        missing = str(Path(temp_data_dir) / "missing.yaml")
        assert self._run(["--config", missing, "list"]) == 2
