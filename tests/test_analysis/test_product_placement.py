"""
Tests for Product Placement

Tests for filmflow/analysis/product_placement.py
"""

import pytest

from filmflow.analysis.product_placement import (
    FALLBACK_CREATIVE_PROMPT,
    analyze_product_placement,
    generate_creative_placement_prompt,
    parse_categories,
)
from filmflow.core.exceptions import PipelineStageError

from conftest import ScriptedGenerator, as_json


def placement(scene_id, score, reason="Characters linger over drinks here", categories=("BEVERAGE",)):
    return {
        "sceneBreakdownId": scene_id,
        "brandabilityScore": score,
        "brandabilityReason": reason,
        "suggestedCategories": list(categories),
    }


class TestParseCategories:
    """Tests for category filtering."""

    def test_known_categories_only(self):
        """Test unknown categories are dropped and case is normalized."""
        assert parse_categories(["beverage", "WEAPONS", "Technology", "BEVERAGE"]) == ["BEVERAGE", "TECHNOLOGY"]


class TestAnalyzeProductPlacement:
    """Tests for the product placement stage."""

    @pytest.mark.asyncio
    async def test_top_n_highest_first(self, config, sample_scenes):
        """Test only the top N scenes are kept, best first."""
        config.pipeline.placement_top_n = 2
        generator = ScriptedGenerator([as_json({"brandableScenes": [
            placement("scene_1", 60),
            placement("scene_2", 90, categories=("AUTOMOTIVE", "bogus")),
            placement("scene_3", 75),
        ]})])

        result = await analyze_product_placement(generator, sample_scenes, config)

        assert [(b.scene_id, b.score) for b in result] == [("scene_2", 90), ("scene_3", 75)]
        assert sample_scenes[1].product_placement_opportunities == ["AUTOMOTIVE"]
        assert "product placement strategist" in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_ties_keep_script_order(self, config, sample_scenes):
        """Test equal scores are ordered by scene position."""
        generator = ScriptedGenerator([as_json([placement("scene_3", 80), placement("scene_1", 80)])])

        result = await analyze_product_placement(generator, sample_scenes, config)

        assert [b.scene_id for b in result] == ["scene_1", "scene_3"]

    @pytest.mark.asyncio
    async def test_untrusted_items_rejected(self, config, sample_scenes):
        """Test unknown scenes and thin reasons are rejected; duplicates keep the best score."""
        generator = ScriptedGenerator([as_json([
            placement("scene_9", 99),
            placement("scene_1", 95, reason="ok"),
            placement("scene_2", 40),
            placement("scene_2", 70),
        ])])

        result = await analyze_product_placement(generator, sample_scenes, config)

        assert [(b.scene_id, b.score) for b in result] == [("scene_2", 70)]

    @pytest.mark.asyncio
    async def test_single_object_reply(self, config, sample_scenes):
        """Test a lone scored scene is accepted."""
        generator = ScriptedGenerator([as_json(placement("scene_1", 55))])

        result = await analyze_product_placement(generator, sample_scenes, config)

        assert [b.scene_id for b in result] == ["scene_1"]

    @pytest.mark.asyncio
    async def test_provider_failure(self, config, sample_scenes):
        """Test provider exhaustion fails the stage."""
        with pytest.raises(PipelineStageError):
            await analyze_product_placement(ScriptedGenerator(), sample_scenes, config)


class TestCreativePlacementPrompt:
    """Tests for creative placement prompts."""

    @pytest.mark.asyncio
    async def test_generated_prompt(self, config, sample_scenes):
        """Test a usable generated prompt is returned stripped."""
        text = "  Cinematic still of Sarah sipping an iced coffee, logo turned to camera.  "

        result = await generate_creative_placement_prompt(
            ScriptedGenerator([text]), sample_scenes[0], "iced coffee", "BEVERAGE", "Brew Co", config
        )

        assert result == text.strip()

    @pytest.mark.asyncio
    async def test_short_output_falls_back(self, config, sample_scenes):
        """Test too-short output falls back to the template."""
        result = await generate_creative_placement_prompt(
            ScriptedGenerator(["Coffee."]), sample_scenes[0], "iced coffee", "BEVERAGE", "Brew Co", config
        )

        assert result == FALLBACK_CREATIVE_PROMPT.format(location=sample_scenes[0].location, product="iced coffee")

    @pytest.mark.asyncio
    async def test_failure_falls_back(self, config, sample_scenes):
        """Test provider exhaustion falls back to the template."""
        result = await generate_creative_placement_prompt(
            ScriptedGenerator(), sample_scenes[0], "sedan", "AUTOMOTIVE", "Motor Co", config
        )

        assert "sedan" in result
