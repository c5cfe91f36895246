"""Aggregate reports over stored notes.

Everything here is a pure function of the notes passed in; reports are
rebuilt on every export so changes to the scope rules apply to old notes.
"""

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional

from .scope_classifier import DEFAULT_SCOPE, ScopedChunk, classify, primary_scope
from ..models.note import Note

logger = logging.getLogger(__name__)

AUDIO_ONLY_PLACEHOLDER = "[solo audio]"
EMPTY_PLACEHOLDER = "[nessun contenuto]"
EXPORT_FORMAT_VERSION = "1"


@dataclass
class ReportEntry:
    """One chunk listed under a scope heading."""
    scope: str
    content: str
    subject: str
    note_id: int
    created_at: str
    duration_seconds: int
    audio_only: bool = False


@dataclass
class ExportReport:
    """Rendered export: Markdown document plus plain-text summary."""
    document: str
    summary: str
    counts: Dict[str, int] = field(default_factory=dict)
    total: int = 0
    note_count: int = 0


class ExportFilenames(NamedTuple):
    aggregate: str
    summary: str
    full_json: str


def group_by_scope(notes: Iterable[Note]) -> "OrderedDict[str, List[ReportEntry]]":
    """Classify every note and group the chunks by scope, alphabetically."""
    groups: Dict[str, List[ReportEntry]] = {}
    for note in notes:
        chunks = classify(note.transcript)
        audio_only = not chunks
        if audio_only:
            chunks = [ScopedChunk(scope=DEFAULT_SCOPE, content="")]
        for chunk in chunks:
            scope = chunk.scope.lower()
            groups.setdefault(scope, []).append(ReportEntry(
                scope=scope,
                content=chunk.content,
                subject=chunk.subject,
                note_id=note.id,
                created_at=note.created_at,
                duration_seconds=note.duration_seconds,
                audio_only=audio_only,
            ))
    return OrderedDict((scope, groups[scope]) for scope in sorted(groups))


def build_report(notes: List[Note], exported_at: Optional[datetime] = None) -> ExportReport:
    """Render the aggregate Markdown document and the per-scope summary."""
    exported_at = exported_at or datetime.now()
    export_date = exported_at.strftime("%d/%m/%Y")
    groups = group_by_scope(notes)
    counts = OrderedDict((scope, len(entries)) for scope, entries in groups.items())
    total = sum(counts.values())

    lines = [
        "# Note Vocali Aggregate",
        f"Data export: {export_date}",
        f"Totale note: {len(notes)}",
        f"Totale estratti: {total}",
        "",
    ]
    for scope, entries in groups.items():
        lines.append(f"## {scope.upper()}")
        lines.append("")
        for index, entry in enumerate(entries, 1):
            lines.append(f"### Estratto {index}")
            lines.append(f"{entry.created_at} - {entry.duration_seconds}s")
            if entry.subject:
                lines.append(f"Oggetto: {entry.subject}")
            lines.append("")
            lines.append(_entry_text(entry))
            lines.append("")
            lines.append("---")
            lines.append("")

    summary_lines = [
        "RIEPILOGO AMBITI",
        f"Data export: {export_date}",
        f"Note: {len(notes)}",
        "",
    ]
    summary_lines.extend(f"{scope}: {count}" for scope, count in counts.items())
    summary_lines.extend(["", f"Totale: {total}"])

    logger.debug(f"Report built: {len(notes)} notes, {total} chunks, {len(counts)} scopes")
    return ExportReport(
        document="\n".join(lines).rstrip() + "\n",
        summary="\n".join(summary_lines) + "\n",
        counts=dict(counts),
        total=total,
        note_count=len(notes),
    )


def _entry_text(entry: ReportEntry) -> str:
    if entry.content:
        return entry.content
    return AUDIO_ONLY_PLACEHOLDER if entry.audio_only else EMPTY_PLACEHOLDER


def export_json(notes: List[Note], exported_at: Optional[datetime] = None) -> str:
    """Full JSON dump of every note with its primary scope."""
    exported_at = exported_at or datetime.now()
    records = []
    for note in notes:
        record = note.to_dict()
        record["scope"] = primary_scope(note.transcript)
        records.append(record)
    payload = {
        "exported_at": exported_at.isoformat(),
        "total_notes": len(notes),
        "format_version": EXPORT_FORMAT_VERSION,
        "notes": records,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_note_text(note: Note) -> str:
    """Plain-text export of a single note."""
    return (
        "NOTA VOCALE\n"
        f"Data: {note.created_at}\n"
        f"Durata: {note.duration_seconds}s\n"
        f"Ambito: {primary_scope(note.transcript)}\n"
        "\n"
        f"{note.transcript or AUDIO_ONLY_PLACEHOLDER}\n"
        "\n"
        "---\n"
        "Esportata da Voice Notes\n"
    )


def export_filenames(today: Optional[date] = None) -> ExportFilenames:
    stamp = (today or date.today()).isoformat()
    return ExportFilenames(
        aggregate=f"note_aggregate_{stamp}.md",
        summary=f"riepilogo_ambiti_{stamp}.txt",
        full_json=f"voice_notes_export_{stamp}.json",
    )


class ExportWriter:
    """Writes export content strings into an output directory."""

    def __init__(self, output_directory: str):
        self.output_dir = Path(output_directory)

    def write_all(self, notes: List[Note], exported_at: Optional[datetime] = None) -> Dict[str, Path]:
        """Write the aggregate document, the summary and the JSON dump.

        Returns:
            Mapping of export kind to the written file path
        """
        exported_at = exported_at or datetime.now()
        report = build_report(notes, exported_at)
        names = export_filenames(exported_at.date())
        written = {
            "aggregate": self._write(names.aggregate, report.document),
            "summary": self._write(names.summary, report.summary),
            "json": self._write(names.full_json, export_json(notes, exported_at)),
        }
        logger.info(f"Exported {len(notes)} notes to {self.output_dir}")
        return written

    def write_note(self, note: Note) -> Path:
        created = datetime.fromtimestamp(note.id / 1000.0)
        filename = f"nota_{created.strftime('%Y-%m-%d-%H-%M-%S')}.txt"
        return self._write(filename, render_note_text(note))

    def _write(self, filename: str, content: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        logger.debug(f"Wrote {path}")
        return path
