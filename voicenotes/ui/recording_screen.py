"""Live terminal screen for recording voice notes."""

import logging
from typing import Optional

from pubsub import pub
from rich.align import Align
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.note import Note
from ..models.session import SessionPhase, SessionStatus, SaveResult
from ..services.session_coordinator import SessionCoordinator, STATUS_TOPIC, NOTE_SAVED_TOPIC
from .gesture_dispatcher import GestureDispatcher
from .keyboard_input import create_input_handler

logger = logging.getLogger(__name__)

ACTIVATION_KEYS = (" ", "\r", "\n")

_PHASE_STYLES = {
    SessionPhase.IDLE: ("READY", "bold green"),
    SessionPhase.RECORDING: ("RECORDING", "bold red"),
    SessionPhase.PAUSED: ("PAUSED", "bold yellow"),
    SessionPhase.FINALIZING: ("SAVING", "bold cyan"),
    SessionPhase.ERROR: ("ERROR", "bold white on red"),
}


def format_elapsed(elapsed_ms: int) -> str:
    seconds = elapsed_ms // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_level(level: float, width: int = 20) -> str:
    filled = round(min(max(level, 0.0), 1.0) * width)
    return "█" * filled + "░" * (width - filled)


class RecordingScreen:
    """Rich Live view over the session coordinator.

    Keys: SPACE/ENTER is the record button (tap = start/pause/resume,
    double tap = stop and save, any tap after an error = acknowledge),
    ``t`` toggles transcription, ``r`` force-resets, ``q`` quits.
    """

    def __init__(self,
                 coordinator: SessionCoordinator,
                 dispatcher: GestureDispatcher,
                 console: Optional[Console] = None,
                 transcription_note: Optional[str] = None):
        self.coordinator = coordinator
        self.dispatcher = dispatcher
        self.console = console or Console()
        self.transcription_note = transcription_note
        self.status: SessionStatus = coordinator.status()
        self.last_note: Optional[Note] = None
        self.last_result: Optional[SaveResult] = None
        self.running = False
        self.input_handler = None

    # -- pubsub listeners ---------------------------------------------------

    def on_status(self, status: SessionStatus) -> None:
        self.status = status

    def on_note_saved(self, note: Note, result: SaveResult) -> None:
        self.last_note = note
        self.last_result = result

    # -- input -----------------------------------------------------------------

    def handle_key_input(self, key: str) -> bool:
        """Handle a keypress. Returns True to continue, False to quit."""
        if key == 'q':
            if self.coordinator.phase in (SessionPhase.RECORDING, SessionPhase.PAUSED, SessionPhase.FINALIZING):
                logger.info("Quit requested during an active session, discarding it")
            return False
        if key in ACTIVATION_KEYS:
            self.dispatcher.on_activation()
        elif key == 't':
            self.coordinator.set_transcription_enabled(not self.coordinator.state.transcription_enabled)
        elif key == 'r':
            self.dispatcher.reset()
            self.coordinator.reset()
        else:
            logger.debug(f"Unhandled key: {key!r}")
        return True

    # -- rendering -------------------------------------------------------------

    def create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main", ratio=1),
            Layout(name="footer", size=3),
        )
        return layout

    def update_display(self, layout: Layout) -> None:
        status = self.coordinator.status() if self.status.phase is SessionPhase.RECORDING else self.status
        label, style = _PHASE_STYLES[status.phase]
        transcription = "on" if status.transcription_enabled else "off"

        header = Text.assemble(
            ("VoiceNotes", "bold blue"), "  |  ",
            (label, style), "  |  ",
            format_elapsed(status.elapsed_ms), "  |  ",
            f"Transcription: {transcription}",
        )
        layout["header"].update(Panel(Align.center(header), style="bright_blue"))
        layout["main"].update(self._main_panel(status))

        controls = Text.assemble(
            ("SPACE", "bold green"), " tap: record/pause  double tap: save  ",
            ("T", "bold yellow"), " transcription  ",
            ("R", "bold blue"), " reset  ",
            ("Q", "bold red"), " quit",
        )
        layout["footer"].update(Panel(Align.center(controls), style="bright_black"))

    def _main_panel(self, status: SessionStatus) -> Panel:
        if status.phase is SessionPhase.ERROR:
            body = Text.assemble(
                (f"{status.error_title}\n\n", "bold red"),
                status.error_description or "",
                ("\n\nPress SPACE to acknowledge", "dim"),
            )
            return Panel(body, title="Error", border_style="red")

        table = Table(show_header=False, box=None, expand=True)
        table.add_column("Field", style="cyan", width=14)
        table.add_column("Value", style="white")
        if status.phase is SessionPhase.RECORDING:
            table.add_row("Level", Text(format_level(status.audio_level), style="green"))
        if status.final_text or status.preview_text:
            transcript = Text(status.final_text)
            if status.preview_text:
                transcript.append(" " + status.preview_text, style="dim italic")
            table.add_row("Transcript", transcript)
        elif status.phase is SessionPhase.IDLE:
            table.add_row("", Text("Tap SPACE to start recording", style="dim italic"))
        if self.transcription_note:
            table.add_row("Transcription", Text(self.transcription_note, style="yellow"))
        if self.last_note is not None and self.last_result is not None:
            table.add_row("Last note", self._describe_save(self.last_note, self.last_result))
        return Panel(table, title="Session", border_style="green")

    @staticmethod
    def _describe_save(note: Note, result: SaveResult) -> Text:
        if not result.success:
            return Text(f"Not saved: {result.error}", style="red")
        audio = "with audio" if result.audio_stored else "without audio"
        return Text(f"#{note.id} saved {note.created_at}, {note.duration_seconds}s, {audio}", style="green")

    # -- lifecycle -------------------------------------------------------------

    def run(self) -> None:
        pub.subscribe(self.on_status, STATUS_TOPIC)
        pub.subscribe(self.on_note_saved, NOTE_SAVED_TOPIC)
        self.running = True
        self.coordinator.start()
        self.input_handler = create_input_handler(self.handle_key_input)
        layout = self.create_layout()
        try:
            self.input_handler.start()
            with Live(layout, console=self.console, refresh_per_second=10, screen=True):
                while self.running and not self.input_handler.wait(0.1):
                    self.update_display(layout)
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        self.running = False
        if self.input_handler:
            self.input_handler.stop()
        self.dispatcher.reset()
        pub.unsubscribe(self.on_status, STATUS_TOPIC)
        pub.unsubscribe(self.on_note_saved, NOTE_SAVED_TOPIC)
        if self.last_note is not None:
            self.console.print(f"Last note: #{self.last_note.id} ({self.last_note.duration_seconds}s)")
        logger.info("RecordingScreen cleanup completed")
