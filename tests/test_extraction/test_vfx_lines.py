"""
Tests for VFX Line Parsing

Tests for filmflow/extraction/vfx_lines.py
"""

import pytest

from filmflow.extraction.vfx_lines import parse_vfx_line, parse_vfx_lines


class TestParseVfxLine:
    """Tests for single-line validation."""

    def test_vfx_line(self):
        """Test a complete VFX line."""
        line = parse_vfx_line("1|true|Explosion destroys building|explosion, destruction,debris")

        assert line.scene_number == 1
        assert line.is_vfx_scene is True
        assert line.description == "Explosion destroys building"
        assert line.keywords == ["explosion", "destruction", "debris"]

    def test_non_vfx_line(self):
        """Test a non-VFX line with empty trailing columns."""
        line = parse_vfx_line("2|false||")

        assert line.is_vfx_scene is False
        assert line.description == ""
        assert line.keywords == []

    def test_boolean_case_insensitive(self):
        """Test TRUE and False are accepted."""
        assert parse_vfx_line("3|TRUE|Fire|fire").is_vfx_scene is True
        assert parse_vfx_line("3|False||").is_vfx_scene is False

    @pytest.mark.parametrize("line", [
        "1|true|Explosion",
        "1|true|Explosion|fire|extra",
    ])
    def test_wrong_column_count(self, line):
        """Test lines without exactly four columns are rejected."""
        with pytest.raises(ValueError, match="columns"):
            parse_vfx_line(line)

    @pytest.mark.parametrize("number", ["0", "-1", "one", "1.5", ""])
    def test_bad_scene_number(self, number):
        """Test scene numbers must be positive integers."""
        with pytest.raises(ValueError):
            parse_vfx_line(f"{number}|false||")

    @pytest.mark.parametrize("flag", ["yes", "1", "maybe", ""])
    def test_bad_boolean(self, flag):
        """Test only true/false are accepted."""
        with pytest.raises(ValueError, match="boolean"):
            parse_vfx_line(f"1|{flag}|Explosion|fire")

    def test_vfx_without_description(self):
        """Test a VFX scene must describe its effects."""
        with pytest.raises(ValueError, match="description"):
            parse_vfx_line("1|true| |fire")

    def test_unknown_scene_number(self):
        """Test scene numbers outside the batch are rejected."""
        with pytest.raises(ValueError, match="unknown"):
            parse_vfx_line("7|false||", known_scene_numbers={1, 2})


class TestParseVfxLines:
    """Tests for whole-response parsing."""

    def test_prose_and_blank_lines_ignored(self):
        """Test non-data lines neither parse nor count as malformed."""
        text = (
            "Here is the analysis:\n"
            "\n"
            "1|true|Car explosion|explosion,fire\n"
            "2|false||\n"
            "Let me know if you need more.\n"
        )

        result = parse_vfx_lines(text, known_scene_numbers=[1, 2])

        assert [a.scene_number for a in result.analyses] == [1, 2]
        assert result.malformed == []

    def test_malformed_line_does_not_stop_parsing(self):
        """Test a bad line is recorded and later lines still parse."""
        text = "1|perhaps|Explosion|fire\n2|true|Rain machine|weather\n"

        result = parse_vfx_lines(text, known_scene_numbers=[1, 2])

        assert result.scene_numbers == {2}
        assert len(result.malformed) == 1
        assert result.malformed[0].line_number == 1
        assert "boolean" in result.malformed[0].reason

    def test_duplicate_scene_first_valid_wins(self):
        """Test a repeated scene number keeps the first valid line."""
        text = (
            "1|maybe|Bad|x\n"
            "1|true|First good|fire\n"
            "1|false||\n"
        )

        result = parse_vfx_lines(text, known_scene_numbers=[1])

        assert len(result.analyses) == 1
        assert result.analyses[0].description == "First good"
        reasons = [m.reason for m in result.malformed]
        assert len(reasons) == 2
        assert "duplicate scene number 1" in reasons

    def test_code_fence_backticks_stripped(self):
        """Test stray backticks around a line are tolerated."""
        result = parse_vfx_lines("```\n`1|false||`\n```")

        assert result.scene_numbers == {1}

    def test_empty_text(self):
        """Test empty and None text parse to nothing."""
        assert parse_vfx_lines("").analyses == []
        assert parse_vfx_lines(None).analyses == []
