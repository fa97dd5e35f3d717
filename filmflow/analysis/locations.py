"""
Location suggestion stage.

Scenes are grouped by location type; each group gets a ranked list of
real-world filming locations, best tax incentive first, then cheapest.
"""

import re
from decimal import Decimal
from typing import Dict, List, Optional

from filmflow.analysis.helpers import as_float, first_present, normalize_name, stage_options, truncate
from filmflow.analysis.models import LocationCandidate, Scene, SceneLocationSuggestion
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import StageName
from filmflow.core.exceptions import AllProvidersFailed, ExtractionFailure, PipelineStageError
from filmflow.core.logging_config import get_logger
from filmflow.extraction.json_extractor import extract_list
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.locations")

MIN_SCRIPT_LENGTH = 100

_PREFIX = re.compile(r"^(INT\./EXT\.|EXT\./INT\.|I/E\.?|INT\.?|EXT\.?|INTERIOR|EXTERIOR)\s+", re.IGNORECASE)
_SUFFIX = re.compile(
    r"\s*[-–—]\s*(DAY|NIGHT|MORNING|AFTERNOON|EVENING|DAWN|DUSK|CONTINUOUS|LATER|MOMENTS LATER)\s*$",
    re.IGNORECASE,
)

LOCATION_PROMPT = """You are an expert Location Scout AI for film production. Based on the script and
scene breakdown below, suggest real-world filming locations for each location type.

For every location type give {count} suggestions. Weigh production tax incentives,
cost, logistics and weather against the total budget of ${budget}.

Script:
{script}

Location types (with the scenes that use them):
{locations}

Return as JSON array:
[
  {{
    "sceneId": "scene_1",
    "locationType": "COFFEE SHOP",
    "suggestions": [
      {{
        "location": "Specific venue or area",
        "city": "City",
        "state": "State/Province",
        "country": "Country",
        "taxIncentive": 25,
        "estimatedCost": 15000,
        "logistics": "Access, permits, crew base",
        "weatherConsiderations": "Seasonal notes"
      }}
    ]
  }}
]
"""


def location_type(location: str) -> str:
    """Normalize a slugline location: no INT./EXT. prefix, no time suffix, uppercased."""
    text = _PREFIX.sub("", (location or "").strip())
    text = _SUFFIX.sub("", text)
    return " ".join(text.split()).upper() or "UNKNOWN"


def group_scenes_by_location(scenes: List[Scene]) -> Dict[str, List[str]]:
    """Location type -> scene ids, in first-seen order."""
    groups: Dict[str, List[str]] = {}
    for scene in scenes:
        groups.setdefault(location_type(scene.location), []).append(scene.id)
    return groups


def candidate_from_dict(data: dict) -> Optional[LocationCandidate]:
    if not isinstance(data, dict):
        return None
    name = str(first_present(data, "location", "name", default="")).strip()
    if not name:
        return None
    return LocationCandidate(
        location=name,
        city=str(data.get("city") or ""),
        state=str(data.get("state") or ""),
        country=str(data.get("country") or ""),
        tax_incentive=max(0.0, as_float(first_present(data, "taxIncentive", "tax_incentive"))),
        estimated_cost=max(0.0, as_float(first_present(data, "estimatedCost", "estimated_cost"))),
        logistics=str(data.get("logistics") or ""),
        weather_considerations=str(
            first_present(data, "weatherConsiderations", "weather_considerations", default="")
        ),
    )


def rank_candidates(candidates: List[LocationCandidate]) -> List[LocationCandidate]:
    """Highest tax incentive first; cheaper wins ties."""
    return sorted(candidates, key=lambda c: (-c.tax_incentive, c.estimated_cost))


def _resolve_type(item: dict, groups: Dict[str, List[str]], scene_types: Dict[str, str]) -> Optional[str]:
    raw_type = first_present(item, "locationType", "location_type")
    if raw_type:
        normalized = location_type(str(raw_type))
        if normalized in groups:
            return normalized
        for known in groups:
            if normalize_name(known) == normalize_name(str(raw_type)):
                return known
    scene_id = str(first_present(item, "sceneId", "scene_id", default=""))
    return scene_types.get(scene_id)


async def suggest_locations(
    generator: ContentGenerator,
    script: str,
    scenes: List[Scene],
    budget: Decimal,
    config: FilmflowConfig,
) -> List[SceneLocationSuggestion]:
    """
    Suggest filming locations per location type.

    Args:
        generator: Content generator
        script: Screenplay text
        scenes: Extracted scenes
        budget: Total project budget
        config: Application configuration

    Returns:
        One entry per location type that received suggestions, in the
        order location types first appear in the script. Empty when the
        script is too short to scout.

    Raises:
        PipelineStageError: If no provider produced a parseable answer
    """
    if len((script or "").strip()) < MIN_SCRIPT_LENGTH or not scenes:
        logger.info("Script too short for location scouting, skipping")
        return []

    groups = group_scenes_by_location(scenes)
    scene_types = {sid: loc for loc, ids in groups.items() for sid in ids}
    primary, options = stage_options(config, StageName.LOCATIONS)
    prompt = LOCATION_PROMPT.format(
        count=config.pipeline.location_suggestions_per_type,
        budget=f"{Decimal(budget):,.0f}",
        script=truncate(script, config.pipeline.location_script_budget),
        locations="\n".join(f"- {loc}: {', '.join(ids)}" for loc, ids in groups.items()),
    )

    try:
        text = await generator.generate(primary, prompt, options)
        items = extract_list(text, "locations", required_field="suggestions")
    except (AllProvidersFailed, ExtractionFailure) as e:
        raise PipelineStageError(StageName.LOCATIONS.value, str(e))

    collected: Dict[str, List[LocationCandidate]] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        loc_type = _resolve_type(item, groups, scene_types)
        raw_suggestions = item.get("suggestions")
        if isinstance(raw_suggestions, dict):
            raw_suggestions = [raw_suggestions]
        candidates = [c for c in (candidate_from_dict(s) for s in raw_suggestions or []) if c]
        if loc_type is None or not candidates:
            logger.warning(f"Rejected location item: {str(item)[:120]}")
            continue
        collected.setdefault(loc_type, []).extend(candidates)

    results = []
    limit = config.pipeline.location_suggestions_per_type
    for loc_type, scene_ids in groups.items():
        if loc_type not in collected:
            continue
        results.append(SceneLocationSuggestion(
            location_type=loc_type,
            scene_ids=list(scene_ids),
            suggestions=rank_candidates(collected[loc_type])[:limit],
        ))

    logger.info(f"Location suggestions for {len(results)} of {len(groups)} location type(s)")
    return results
