"""Split transcripts into topic-scoped chunks.

Two spoken marker forms are recognized, case-insensitively:

    ambito <label> [subject ...] fine
    tag <label> - <content ...>

Text not covered by a marker belongs to the default scope ``generale``.
A marker word that does not complete its form is ordinary content.
"""

import re
import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "generale"
KEYWORD_SCOPES = ("urgente", "importante", "lavoro", "famiglia", "casa")

_TOKEN_RE = re.compile(r"[-–—]+|[^\s\-–—]+")
_DASH_CHARS = "-–—"
_TRAILING_PUNCTUATION = ".,;:!?"


@dataclass(frozen=True)
class ScopedChunk:
    """A transcript excerpt and the scope it belongs to."""
    scope: str
    content: str
    subject: str = ""


class _Token(NamedTuple):
    text: str
    start: int
    end: int

    @property
    def is_dash(self) -> bool:
        return self.text[0] in _DASH_CHARS

    @property
    def word(self) -> str:
        return self.text.strip(_TRAILING_PUNCTUATION).lower()


def _tokenize(text: str) -> List[_Token]:
    return [_Token(m.group(0), m.start(), m.end()) for m in _TOKEN_RE.finditer(text)]


class _Scanner:
    """Single pass over the tokens, emitting chunks as markers close them."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.chunks: List[Tuple[ScopedChunk, bool]] = []
        self.scope = DEFAULT_SCOPE
        self.opened_by_marker = False
        self.content_start = 0

    def run(self) -> List[Tuple[ScopedChunk, bool]]:
        i = 0
        while i < len(self.tokens):
            token = self.tokens[i]
            word = token.word
            if word == "ambito":
                consumed = self._named_scope(i)
            elif word == "tag":
                consumed = self._tag(i)
            else:
                consumed = 0
            i += consumed or 1
        self._close(len(self.text))
        return self.chunks

    def _label_at(self, index: int) -> Optional[str]:
        if index >= len(self.tokens) or self.tokens[index].is_dash:
            return None
        return self.tokens[index].word or None

    def _named_scope(self, i: int) -> int:
        label = self._label_at(i + 1)
        if label is None:
            return 0
        end = self._find_word("fine", i + 2)
        if end is None:
            return 0
        subject_start = self.tokens[i + 1].end
        subject_end = self.tokens[end].start
        self._close(self.tokens[i].start)
        subject = " ".join(self.text[subject_start:subject_end].split())
        self.chunks.append((ScopedChunk(scope=label, content="", subject=subject), True))
        self._open(DEFAULT_SCOPE, self.tokens[end].end, by_marker=False)
        return end - i + 1

    def _tag(self, i: int) -> int:
        label = self._label_at(i + 1)
        if label is None or i + 2 >= len(self.tokens) or not self.tokens[i + 2].is_dash:
            return 0
        self._close(self.tokens[i].start)
        self._open(label, self.tokens[i + 2].end, by_marker=True)
        return 3

    def _find_word(self, word: str, start: int) -> Optional[int]:
        for index in range(start, len(self.tokens)):
            if self.tokens[index].word == word:
                return index
        return None

    def _open(self, scope: str, content_start: int, by_marker: bool) -> None:
        self.scope = scope
        self.content_start = content_start
        self.opened_by_marker = by_marker

    def _close(self, end: int) -> None:
        content = " ".join(self.text[self.content_start:end].split())
        if content or self.opened_by_marker:
            self.chunks.append((ScopedChunk(scope=self.scope, content=content), self.opened_by_marker))
        self.opened_by_marker = False


def classify(transcript: str) -> List[ScopedChunk]:
    """Split a transcript into scoped chunks, preserving order."""
    if not transcript or not transcript.strip():
        return []
    return [chunk for chunk, _ in _Scanner(transcript).run()]


def primary_scope(transcript: str) -> str:
    """Single scope label for a whole note.

    The first marker wins; otherwise a known keyword among the first three
    words; otherwise the default scope.
    """
    if not transcript or not transcript.strip():
        return DEFAULT_SCOPE
    for chunk, marked in _Scanner(transcript).run():
        if marked:
            return chunk.scope
    first_words = " ".join(transcript.lower().split()[:3])
    for keyword in KEYWORD_SCOPES:
        if keyword in first_words:
            return keyword
    return DEFAULT_SCOPE
