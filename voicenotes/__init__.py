"""VoiceNotes: record, transcribe and organize short voice notes."""

__version__ = "0.1.0"
