"""Rich renderables for stored notes."""

from typing import List

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..export.scope_classifier import classify, primary_scope
from ..models.note import Note

PREVIEW_LENGTH = 60


def _preview(transcript: str) -> str:
    if not transcript:
        return "[solo audio]"
    if len(transcript) <= PREVIEW_LENGTH:
        return transcript
    return transcript[:PREVIEW_LENGTH - 3] + "..."


def render_notes_table(notes: List[Note]) -> Table:
    table = Table(title=f"Voice notes ({len(notes)})", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Created", style="white", no_wrap=True)
    table.add_column("Duration", justify="right")
    table.add_column("Scope", style="yellow")
    table.add_column("Transcript")
    for note in notes:
        table.add_row(
            str(note.id),
            note.created_at,
            f"{note.duration_seconds}s",
            primary_scope(note.transcript),
            Text(_preview(note.transcript)),
        )
    return table


def render_note_panel(note: Note, has_audio: bool) -> Panel:
    words = len(note.transcript.split())
    body = Text.assemble(
        ("Created: ", "bold"), f"{note.created_at}\n",
        ("Duration: ", "bold"), f"{note.duration_seconds}s\n",
        ("Words: ", "bold"), f"{words}\n",
        ("Audio: ", "bold"), f"{note.audio_size} bytes" if has_audio else "not stored", "\n\n",
        note.transcript or ("[solo audio]", "dim"),
    )
    chunks = classify(note.transcript)
    if chunks:
        body.append("\n\nScopes:", style="bold")
        for chunk in chunks:
            detail = chunk.content or chunk.subject or "-"
            body.append(f"\n  {chunk.scope}: {detail}")
    return Panel(body, title=f"Note {note.id}", border_style="blue")
