"""Unit tests for TranscriptAccumulator."""

import pytest

from voicenotes.transcription.accumulator import TranscriptAccumulator


@pytest.mark.unit
class TestTranscriptAccumulator:

    def test_final_fragments_are_appended(self):
        acc = TranscriptAccumulator()
        acc.on_fragment("hello ", True)
        acc.on_fragment("world", True)

        assert acc.current_final() == "hello world"
        assert acc.fragment_count == 2

    def test_interim_only_touches_preview(self):
        acc = TranscriptAccumulator()
        acc.on_fragment("ciao", True)
        acc.on_fragment("come st", False)

        assert acc.current_final() == "ciao"
        assert acc.current_preview() == "come st"

        acc.on_fragment("come stai", True)
        assert acc.current_preview() == ""
        assert acc.current_final() == "ciao come stai"

    def test_restarted_numbering_does_not_overwrite(self):
        """A recognizer that restarts after a pause must not replace earlier text."""
        acc = TranscriptAccumulator()
        acc.on_fragment("prima parte", True)
        acc.on_fragment("prima", True)

        assert acc.current_final() == "prima parte prima"

    def test_blank_finals_are_skipped(self):
        acc = TranscriptAccumulator()
        acc.on_fragment("   ", True)
        acc.on_fragment("", True)
        assert acc.current_final() == ""
        assert acc.fragment_count == 0

    def test_whitespace_is_normalized(self):
        acc = TranscriptAccumulator()
        acc.on_fragment("  uno\n", True)
        acc.on_fragment("\tdue  tre ", True)
        assert acc.current_final() == "uno due tre"

    def test_reset_clears_everything(self):
        acc = TranscriptAccumulator()
        acc.on_fragment("testo", True)
        acc.on_fragment("anteprima", False)

        acc.reset()

        assert acc.current_final() == ""
        assert acc.current_preview() == ""
