"""
Tests for Scene Extraction

Tests for filmflow/analysis/scenes.py and filmflow/analysis/regex_scenes.py
"""

import pytest

from filmflow.analysis.regex_scenes import (
    clean_screenplay_text,
    extract_scenes_with_regex,
    parse_heading,
)
from filmflow.analysis.scenes import extract_scenes, parse_scene_items
from filmflow.core.exceptions import PipelineStageError, StageValidationError

from conftest import ScriptedGenerator, as_json


class TestRegexScenes:
    """Tests for the deterministic slugline parser."""

    @pytest.mark.parametrize("line,expected", [
        ("INT. COFFEE SHOP - DAY", ("COFFEE SHOP", "DAY")),
        ("EXT. ROOFTOP NIGHT", ("ROOFTOP", "NIGHT")),
        ("INTERIOR WAREHOUSE", ("WAREHOUSE", "UNSPECIFIED")),
    ])
    def test_parse_heading(self, line, expected):
        """Test the supported slugline shapes."""
        assert parse_heading(line) == expected

    def test_non_heading(self):
        """Test action lines are not headings."""
        assert parse_heading("SARAH walks into the room.") is None

    def test_clean_screenplay_text(self):
        """Test page numbers and CONTINUED markers are dropped."""
        text = "INT. ROOM - DAY\r\n12\r\nCONTINUED\r\nAction."

        cleaned = clean_screenplay_text(text)

        assert "12" not in cleaned
        assert "CONTINUED" not in cleaned
        assert cleaned.startswith("INT. ROOM - DAY")

    def test_extracts_scenes_in_order(self, sample_script):
        """Test each slugline starts a new scene."""
        scenes = extract_scenes_with_regex(sample_script)

        assert [s.id for s in scenes] == ["scene_1", "scene_2", "scene_3"]
        assert [s.location for s in scenes] == ["COFFEE SHOP", "CITY STREET", "COFFEE SHOP"]
        assert [s.time_of_day for s in scenes] == ["DAY", "NIGHT", "NIGHT"]

    def test_character_cues(self, sample_script):
        """Test ALL-CAPS cues become scene characters."""
        scenes = extract_scenes_with_regex(sample_script)

        assert scenes[0].characters == ["SARAH", "JOHN"]
        assert scenes[1].characters == ["JOHN"]
        assert scenes[2].characters == []

    def test_keyword_hints(self, sample_script):
        """Test VFX and product keywords are picked up per scene."""
        scenes = extract_scenes_with_regex(sample_script)

        assert "explosion" in scenes[1].vfx_needs
        assert "fire" in scenes[1].vfx_needs
        assert scenes[0].vfx_needs == []
        assert "laptop" in scenes[0].product_placement_opportunities

    def test_no_sluglines(self):
        """Test text without sluglines yields no scenes."""
        assert extract_scenes_with_regex("Just some prose.\nMore prose.") == []


class TestParseSceneItems:
    """Tests for validating model-produced scenes."""

    def test_orders_and_renumbers(self):
        """Test items are put in script order and invalid ones are dropped."""
        items = [
            {"sceneNumber": 2, "location": "EXT. STREET - NIGHT", "content": "Chase."},
            {"sceneNumber": 1, "location": "INT. BAR - DAY", "content": "Talk.", "characters": "MAYA, LEO"},
            {"sceneNumber": 3, "location": "", "content": "Nowhere."},
        ]

        scenes = parse_scene_items(items)

        assert [(s.id, s.location) for s in scenes] == [
            ("scene_1", "INT. BAR - DAY"),
            ("scene_2", "EXT. STREET - NIGHT"),
        ]
        assert scenes[0].characters == ["MAYA", "LEO"]

    def test_page_end_not_before_start(self):
        """Test page_end is clamped to at least page_start."""
        scenes = parse_scene_items([{"location": "INT. A", "content": "x", "pageStart": 5, "pageEnd": 2}])

        assert scenes[0].page_start == 5
        assert scenes[0].page_end == 5


class TestExtractScenes:
    """Tests for the scene extraction stage."""

    @pytest.mark.asyncio
    async def test_model_scenes(self, config, sample_script):
        """Test the model's scene list is used when valid."""
        generator = ScriptedGenerator([as_json({"scenes": [
            {"sceneNumber": 1, "location": "INT. COFFEE SHOP - DAY", "content": "Sarah waits."},
        ]})])

        scenes = await extract_scenes(generator, sample_script, config)

        assert len(scenes) == 1
        assert scenes[0].location == "INT. COFFEE SHOP - DAY"
        assert "Analyze this script and extract all scenes" in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_falls_back_to_sluglines(self, config, sample_script):
        """Test provider exhaustion falls back to the slugline parser."""
        scenes = await extract_scenes(ScriptedGenerator(), sample_script, config)

        assert len(scenes) == 3

    @pytest.mark.asyncio
    async def test_unparseable_reply_falls_back(self, config, sample_script):
        """Test prose replies fall back to the slugline parser."""
        scenes = await extract_scenes(ScriptedGenerator(["I can't read scripts."]), sample_script, config)

        assert len(scenes) == 3

    @pytest.mark.asyncio
    async def test_no_fallback(self, config, sample_script):
        """Test the stage fails when fallback is disabled."""
        with pytest.raises(PipelineStageError):
            await extract_scenes(ScriptedGenerator(), sample_script, config, use_regex_fallback=False)

    @pytest.mark.asyncio
    async def test_empty_script(self, config):
        """Test an empty script is rejected before any call."""
        generator = ScriptedGenerator()

        with pytest.raises(StageValidationError):
            await extract_scenes(generator, "  \n ", config)

        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_nothing_found(self, config):
        """Test the stage fails when neither path finds scenes."""
        with pytest.raises(PipelineStageError):
            await extract_scenes(ScriptedGenerator(), "No headings here at all.", config)
