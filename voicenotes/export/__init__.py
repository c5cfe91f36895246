"""Scope classification and note exports."""

from .scope_classifier import ScopedChunk, DEFAULT_SCOPE, classify, primary_scope
from .report import (
    ExportReport,
    ExportWriter,
    build_report,
    export_filenames,
    export_json,
    render_note_text,
)

__all__ = [
    'ScopedChunk',
    'DEFAULT_SCOPE',
    'classify',
    'primary_scope',
    'ExportReport',
    'ExportWriter',
    'build_report',
    'export_filenames',
    'export_json',
    'render_note_text',
]
