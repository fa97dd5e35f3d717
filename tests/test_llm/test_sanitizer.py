"""
Tests for Prompt Sanitizer

Tests for filmflow/llm/sanitizer.py
"""

from filmflow.llm.sanitizer import sanitize_prompt


class TestSanitizePrompt:
    """Tests for sanitize_prompt."""

    def test_replaces_flagged_words(self):
        """Test flagged words become neutral equivalents."""
        assert sanitize_prompt("Damn, this shit is fucking great") == "darn, this stuff is really great"

    def test_apostrophe_form(self):
        """Test the clipped form is replaced as a whole."""
        assert sanitize_prompt("fuckin' A") == "really A"

    def test_word_boundaries(self):
        """Test words that merely contain a flagged word are untouched."""
        assert sanitize_prompt("Say hello to Shelley") == "Say hello to Shelley"

    def test_strips_control_characters_keeps_layout(self):
        """Test control characters go but tabs and newlines stay."""
        assert sanitize_prompt("INT.\tROOM\x00\r\nSARAH\x1b") == "INT.\tROOM\r\nSARAH"

    def test_empty(self):
        """Test empty input passes through."""
        assert sanitize_prompt("") == ""
        assert sanitize_prompt(None) == ""
