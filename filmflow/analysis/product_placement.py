"""
Product placement stage.

Scores scenes for brand integration potential and keeps the top N.
"""

from typing import Dict, List, Optional

from filmflow.analysis.helpers import as_str_list, clamp_int, first_present, stage_options, truncate
from filmflow.analysis.models import BrandableScene, Scene
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import ProductCategory, ResponseFormat, StageName
from filmflow.core.exceptions import (
    AllProvidersFailed,
    ExtractionFailure,
    PipelineStageError,
    StageValidationError,
)
from filmflow.core.logging_config import get_logger
from filmflow.extraction.json_extractor import extract_list
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.product_placement")

MIN_REASON_LENGTH = 10
MIN_CREATIVE_PROMPT_LENGTH = 20
SCENE_EXCERPT_CHARS = 500

PLACEMENT_PROMPT = """You are a product placement strategist for feature films. Review the scenes below
and identify the ones best suited to natural brand integration.

Evaluation criteria:
- Visual prominence: can a product be clearly seen without being forced?
- Narrative fit: does the product belong in the setting and action?
- Character interaction: do characters naturally handle or use products?
- Audience engagement: is the moment memorable?
- Brand safety: avoid violent, tragic or controversial moments.

Product categories: {categories}

Scenes:
{scenes}

Return as JSON:
{{"brandableScenes": [
  {{
    "sceneBreakdownId": "scene_1",
    "brandabilityScore": 85,
    "brandabilityReason": "Why the scene suits placement",
    "suggestedCategories": ["BEVERAGE", "TECHNOLOGY"],
    "placementContext": "How the product appears on screen"
  }}
]}}
"""

CREATIVE_PROMPT = """Write a single image-generation prompt (one paragraph, no preamble) for a
cinematic film still that naturally integrates a product into this scene.

Scene: {location} ({time_of_day})
Description: {description}
Product: {product}
Category: {category}
Brand: {brand}

The product should feel organic to the moment, never like an advertisement.
"""

FALLBACK_CREATIVE_PROMPT = (
    "Cinematic film still, {location}. A {product} is naturally integrated into the scene. "
    "Photorealistic, high detail."
)


def parse_categories(values) -> List[str]:
    """Keep only known ProductCategory values, uppercased and de-duplicated."""
    valid = {c.value for c in ProductCategory}
    categories = []
    for value in as_str_list(values):
        upper = value.strip().upper()
        if upper in valid and upper not in categories:
            categories.append(upper)
    return categories


def brandable_scene_from_dict(data: dict, scene_ids: set) -> Optional[BrandableScene]:
    """Validate one scored scene; None when it cannot be trusted."""
    if not isinstance(data, dict):
        return None
    scene_id = str(first_present(data, "sceneBreakdownId", "sceneId", "scene_id", default="")).strip()
    reason = str(first_present(data, "brandabilityReason", "reason", default="")).strip()
    if scene_id not in scene_ids or len(reason) < MIN_REASON_LENGTH:
        return None
    return BrandableScene(
        scene_id=scene_id,
        score=clamp_int(first_present(data, "brandabilityScore", "score"), 1, 100, 1),
        reason=reason,
        suggested_categories=parse_categories(first_present(data, "suggestedCategories", "categories")),
        placement_context=str(first_present(data, "placementContext", "placement_context", default="")),
    )


async def analyze_product_placement(
    generator: ContentGenerator,
    scenes: List[Scene],
    config: FilmflowConfig,
) -> List[BrandableScene]:
    """
    Rank scenes by brandability.

    Categories of the kept scenes are written to
    Scene.product_placement_opportunities.

    Returns:
        Up to placement_top_n scenes, highest score first

    Raises:
        StageValidationError: If there are no scenes
        PipelineStageError: If no provider produced a parseable answer
    """
    if not scenes:
        raise StageValidationError("Product placement needs at least one scene")

    described = "\n\n".join(
        f"[{s.id}] {s.location} ({s.time_of_day})\n"
        f"{truncate(s.description or s.content, SCENE_EXCERPT_CHARS)}"
        for s in scenes
    )
    primary, options = stage_options(config, StageName.PRODUCT_PLACEMENT)
    prompt = PLACEMENT_PROMPT.format(
        categories=", ".join(c.value for c in ProductCategory),
        scenes=truncate(described, config.pipeline.script_char_budget),
    )

    try:
        text = await generator.generate(primary, prompt, options)
        items = extract_list(text, "brandableScenes", required_field="sceneBreakdownId")
    except (AllProvidersFailed, ExtractionFailure) as e:
        raise PipelineStageError(StageName.PRODUCT_PLACEMENT.value, str(e))

    by_id: Dict[str, Scene] = {s.id: s for s in scenes}
    best: Dict[str, BrandableScene] = {}
    for item in items:
        candidate = brandable_scene_from_dict(item, set(by_id))
        if candidate is None:
            logger.warning(f"Rejected placement item: {str(item)[:120]}")
            continue
        current = best.get(candidate.scene_id)
        if current is None or candidate.score > current.score:
            best[candidate.scene_id] = candidate

    order = {s.id: i for i, s in enumerate(scenes)}
    ranked = sorted(best.values(), key=lambda b: (-b.score, order[b.scene_id]))
    top = ranked[:config.pipeline.placement_top_n]

    for brandable in top:
        by_id[brandable.scene_id].product_placement_opportunities = list(brandable.suggested_categories)

    logger.info(f"Product placement: {len(top)} of {len(ranked)} brandable scene(s) kept")
    return top


async def generate_creative_placement_prompt(
    generator: ContentGenerator,
    scene: Scene,
    product_name: str,
    category: str,
    brand: str,
    config: FilmflowConfig,
) -> str:
    """
    Image prompt showing a product inside a scene.

    Falls back to a fixed template when generation fails or the output is
    too short to be a usable prompt.
    """
    fallback = FALLBACK_CREATIVE_PROMPT.format(location=scene.location, product=product_name)
    primary, options = stage_options(
        config,
        StageName.PRODUCT_PLACEMENT,
        response_format=ResponseFormat.TEXT,
        max_tokens=500,
        temperature=0.8,
    )
    prompt = CREATIVE_PROMPT.format(
        location=scene.location,
        time_of_day=scene.time_of_day,
        description=truncate(scene.description or scene.content, SCENE_EXCERPT_CHARS),
        product=product_name,
        category=category,
        brand=brand,
    )
    try:
        text = (await generator.generate(primary, prompt, options)).strip()
    except AllProvidersFailed as e:
        logger.warning(f"Creative placement prompt fell back to template: {e}")
        return fallback

    if len(text) < MIN_CREATIVE_PROMPT_LENGTH:
        return fallback
    return text
