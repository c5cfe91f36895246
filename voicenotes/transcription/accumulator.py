"""Transcript accumulator for a recording session.

Recognition services restart their internal result numbering after an idle
period or after a pause/resume cycle, so the accumulated transcript is never
re-derived from the stream: every final fragment is appended to what is
already there, and interim fragments only ever touch the volatile preview.
"""

import logging
import threading
from typing import List

logger = logging.getLogger(__name__)


class TranscriptAccumulator:
    """Append-only final transcript plus a volatile in-progress preview."""

    def __init__(self):
        self._finals: List[str] = []
        self._preview: str = ""
        self.lock = threading.RLock()

    def on_fragment(self, text: str, is_final: bool) -> None:
        """Apply one recognition fragment."""
        with self.lock:
            if is_final:
                if text and text.strip():
                    self._finals.append(text)
                    logger.debug(f"Appended final fragment ({len(self._finals)} total): {text[:50]}")
                self._preview = ""
            else:
                self._preview = text or ""

    def reset(self) -> None:
        """Clear everything. Only called when a brand-new session begins."""
        with self.lock:
            self._finals.clear()
            self._preview = ""

    def current_final(self) -> str:
        """Accumulated final text, whitespace-normalized."""
        with self.lock:
            return " ".join(" ".join(self._finals).split())

    def current_preview(self) -> str:
        with self.lock:
            return self._preview

    @property
    def fragment_count(self) -> int:
        with self.lock:
            return len(self._finals)
