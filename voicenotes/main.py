"""Main application entry point for VoiceNotes."""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from . import __version__
from .config import VoiceNotesConfig
from .errors import VoiceNotesError, PersistenceError
from .models.events import Command
from .models.session import SessionPhase
from .services.notes_service import NotesService

logger = logging.getLogger(__name__)

console = Console()


def setup_logging(config: VoiceNotesConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'logs/voicenotes.log')
    console_output = config.get('logging.console_output', False)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info(f"VoiceNotes {__version__} starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


# -- commands ----------------------------------------------------------------

def cmd_record(service: NotesService, args) -> int:
    from .ui.recording_screen import RecordingScreen

    coordinator = service.create_coordinator()
    if args.duration:
        return _record_for(service, args.duration)

    dispatcher = service.create_gesture_dispatcher(coordinator)
    screen = RecordingScreen(coordinator, dispatcher, console=console,
                             transcription_note=service.transcription_error)
    screen.run()
    return 0


def _record_for(service: NotesService, duration: float) -> int:
    """Headless mode: record one note for ``duration`` seconds and save it."""
    coordinator = service.coordinator
    coordinator.start()
    coordinator.send_command(Command.PRIMARY)
    console.print(f"Recording for {duration}s...", style="bold red")
    time.sleep(duration)
    coordinator.send_command(Command.SECONDARY)

    deadline = time.monotonic() + coordinator.grace_period_seconds + 5.0
    while time.monotonic() < deadline:
        if coordinator.last_save is not None or coordinator.phase is SessionPhase.ERROR:
            break
        time.sleep(0.1)

    status = coordinator.status()
    if status.phase is SessionPhase.ERROR:
        console.print(f"{status.error_title}: {status.error_description}", style="bold red")
        return 1
    result = coordinator.last_save
    if result is None or not result.success:
        console.print(f"Note not saved: {result.error if result else 'timed out'}", style="bold red")
        return 1
    note = coordinator.last_note
    console.print(f"Saved note {note.id} ({note.duration_seconds}s)", style="bold green")
    if note.transcript:
        console.print(note.transcript, markup=False)
    return 0


def cmd_list(service: NotesService, args) -> int:
    from .ui.notes_view import render_notes_table

    notes = service.list_notes()
    if not notes:
        console.print("No notes saved", style="yellow")
        return 0
    console.print(render_notes_table(notes))
    return 0


def cmd_show(service: NotesService, args) -> int:
    from .ui.notes_view import render_note_panel

    note = service.get_note(args.note_id)
    if note is None:
        console.print(f"Note {args.note_id} not found", style="bold red")
        return 1
    audio = service.get_note_audio(note.id)
    console.print(render_note_panel(note, has_audio=audio is not None))
    if args.audio_out and audio is not None:
        Path(args.audio_out).write_bytes(audio)
        console.print(f"Audio written to {args.audio_out}")
    if args.export:
        result = service.export_note(note.id)
        if not result["success"]:
            console.print(f"Export failed: {result['error']}", style="bold red")
            return 1
        console.print(f"Exported to {result['file']}")
    return 0


def cmd_delete(service: NotesService, args) -> int:
    result = service.delete_note(args.note_id)
    if not result["success"]:
        console.print(f"Delete failed: {result['error']}", style="bold red")
        return 1
    if result["removed"]:
        console.print(f"Deleted note {args.note_id}", style="green")
    else:
        console.print(f"Note {args.note_id} not found", style="yellow")
    return 0


def cmd_clear(service: NotesService, args) -> int:
    if not args.yes:
        console.print(f"This deletes all {service.count_notes()} notes; pass --yes to confirm", style="yellow")
        return 1
    result = service.clear_notes()
    if not result["success"]:
        console.print(f"Clear failed: {result['error']}", style="bold red")
        return 1
    console.print("All notes deleted", style="green")
    return 0


def cmd_export(service: NotesService, args) -> int:
    result = service.export_notes(args.output_dir)
    if not result["success"]:
        console.print(result["error"], style="yellow")
        return 1
    console.print(f"Exported {result['note_count']} notes:", style="green")
    for path in result["files"].values():
        console.print(f"  {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voicenotes",
        description="VoiceNotes - record, transcribe and organize short voice notes",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"VoiceNotes v{__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    record = subparsers.add_parser("record", help="Record notes interactively")
    record.add_argument("--duration", type=float,
                        help="Record a single note for this many seconds without the interactive screen")
    record.set_defaults(func=cmd_record)

    list_parser = subparsers.add_parser("list", help="List saved notes")
    list_parser.set_defaults(func=cmd_list)

    show = subparsers.add_parser("show", help="Show one note")
    show.add_argument("note_id", type=int)
    show.add_argument("--audio-out", type=str, help="Write the stored audio to this file")
    show.add_argument("--export", action="store_true", help="Also export the note as a text file")
    show.set_defaults(func=cmd_show)

    delete = subparsers.add_parser("delete", help="Delete one note")
    delete.add_argument("note_id", type=int)
    delete.set_defaults(func=cmd_delete)

    clear = subparsers.add_parser("clear", help="Delete every note")
    clear.add_argument("--yes", action="store_true", help="Confirm deletion")
    clear.set_defaults(func=cmd_clear)

    export = subparsers.add_parser("export", help="Export notes grouped by scope")
    export.add_argument("--output-dir", type=str, help="Directory for export files (overrides config)")
    export.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for VoiceNotes."""
    args = build_parser().parse_args(argv)

    try:
        config = VoiceNotesConfig(args.config)
    except VoiceNotesError as e:
        console.print(f"Configuration error: {e}", style="bold red")
        sys.exit(2)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    service = NotesService(config)
    try:
        service.initialize()
        exit_code = args.func(service, args)
    except PersistenceError as e:
        logger.error(f"Storage error: {e}")
        console.print(f"Storage error: {e}", style="bold red")
        exit_code = 1
    except KeyboardInterrupt:
        console.print("\nGoodbye!")
        exit_code = 0
    except VoiceNotesError as e:
        logger.error(f"Application error: {e}", exc_info=True)
        console.print(f"Error: {e}", style="bold red")
        exit_code = 1
    finally:
        service.shutdown()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
