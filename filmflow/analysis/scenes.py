"""
Scene extraction stage.

Asks the scenes provider chain for a structured scene list and falls back
to the deterministic slugline extractor when no usable list comes back.
"""

from typing import List, Optional

from filmflow.analysis.helpers import as_str_list, clamp_int, first_present, stage_options, truncate
from filmflow.analysis.models import Scene
from filmflow.analysis.regex_scenes import clean_screenplay_text, extract_scenes_with_regex
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import StageName
from filmflow.core.exceptions import (
    AllProvidersFailed,
    ExtractionFailure,
    PipelineStageError,
    StageValidationError,
)
from filmflow.core.logging_config import get_logger
from filmflow.extraction.json_extractor import extract_list
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.scenes")

SCENE_PROMPT = """Analyze this script and extract all scenes. For each scene, identify:
- Scene number
- Location (INT./EXT. and specific place)
- Time of day
- Brief description
- Characters present
- Full scene content
- Page numbers (estimate)
- Estimated duration in minutes
- Any VFX needs
- Product placement opportunities

Return JSON with this structure:
{{
  "scenes": [
    {{
      "id": "scene_1",
      "sceneNumber": 1,
      "location": "INT. COFFEE SHOP - DAY",
      "timeOfDay": "DAY",
      "description": "Brief scene description",
      "characters": ["CHARACTER1", "CHARACTER2"],
      "content": "Full scene dialogue and action",
      "pageStart": 1,
      "pageEnd": 3,
      "duration": 5,
      "vfxNeeds": ["practical effects needed"],
      "productPlacementOpportunities": ["coffee brands", "laptops"]
    }}
  ]
}}

Script content:
{script}
"""


def scene_from_dict(data: dict, position: int) -> Optional[Scene]:
    """
    Validate one model-produced scene.

    Returns None when the item lacks content or a location.
    """
    if not isinstance(data, dict):
        return None

    location = str(first_present(data, "location", "heading", default="")).strip()
    content = str(first_present(data, "content", "description", default="")).strip()
    if not location or not content:
        return None

    page_start = clamp_int(first_present(data, "pageStart", "page_start"), 1, 100000, 1)
    page_end = clamp_int(first_present(data, "pageEnd", "page_end"), page_start, 100000, page_start)

    return Scene(
        id=f"scene_{position}",
        scene_number=position,
        location=location,
        time_of_day=str(first_present(data, "timeOfDay", "time_of_day", default="UNSPECIFIED")).upper(),
        description=str(data.get("description") or ""),
        characters=as_str_list(data.get("characters")),
        content=content,
        page_start=page_start,
        page_end=page_end,
        duration=clamp_int(data.get("duration"), 1, 600, 1),
        vfx_needs=as_str_list(first_present(data, "vfxNeeds", "vfx_needs")),
        product_placement_opportunities=as_str_list(
            first_present(data, "productPlacementOpportunities", "product_placement_opportunities")
        ),
    )


def _script_order(item: dict, index: int) -> tuple:
    number = item.get("sceneNumber", item.get("scene_number")) if isinstance(item, dict) else None
    return (clamp_int(number, 1, 10 ** 6, index + 1), index)


def parse_scene_items(items: List[dict]) -> List[Scene]:
    """Validate items, keep script order and renumber from 1."""
    ordered = [item for _, item in sorted(
        ((_script_order(item, i), item) for i, item in enumerate(items)),
        key=lambda pair: pair[0],
    )]

    scenes: List[Scene] = []
    for item in ordered:
        scene = scene_from_dict(item, len(scenes) + 1)
        if scene is None:
            logger.warning(f"Rejected scene item without content or location: {str(item)[:120]}")
            continue
        scenes.append(scene)
    return scenes


async def extract_scenes(
    generator: ContentGenerator,
    script: str,
    config: FilmflowConfig,
    use_regex_fallback: bool = True,
) -> List[Scene]:
    """
    Extract scenes from a screenplay.

    Args:
        generator: Content generator
        script: Screenplay text
        config: Application configuration
        use_regex_fallback: Fall back to slugline parsing on model failure

    Returns:
        Scenes in script order

    Raises:
        StageValidationError: If the script is empty
        PipelineStageError: If no scenes could be produced
    """
    cleaned = clean_screenplay_text(script)
    if not cleaned:
        raise StageValidationError("Script is empty")

    primary, options = stage_options(config, StageName.SCENES)
    prompt = SCENE_PROMPT.format(script=truncate(cleaned, config.pipeline.script_char_budget))

    failure = None
    try:
        text = await generator.generate(primary, prompt, options)
        scenes = parse_scene_items(extract_list(text, "scenes", required_field="location"))
        if scenes:
            logger.info(f"Extracted {len(scenes)} scenes")
            return scenes
        failure = "model returned no valid scenes"
    except (AllProvidersFailed, ExtractionFailure) as e:
        failure = str(e)

    if not use_regex_fallback:
        raise PipelineStageError(StageName.SCENES.value, failure)

    logger.warning(f"Scene extraction via model failed ({failure}); using slugline parser")
    scenes = extract_scenes_with_regex(cleaned)
    if not scenes:
        raise PipelineStageError(StageName.SCENES.value, f"{failure}; no sluglines found")
    return scenes
