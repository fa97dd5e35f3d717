"""
VFX analysis stage.

Scenes go out in batches and come back as one pipe-delimited line per
scene. Lines are validated individually; scenes the model skipped and
lines it garbled are reported instead of guessed at.
"""

import asyncio
from dataclasses import replace
from typing import Dict, List, Optional

from filmflow.analysis.helpers import as_float, first_present, stage_options, truncate
from filmflow.analysis.models import (
    Scene,
    VfxAnalysisResult,
    VfxIssue,
    VfxSceneAnalysis,
    VfxTierDetails,
)
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import VFX_TIER_GUIDELINES, ResponseFormat, StageName, VfxTier
from filmflow.core.exceptions import (
    AllProvidersFailed,
    ExtractionFailure,
    PipelineStageError,
    StageValidationError,
)
from filmflow.core.logging_config import get_logger
from filmflow.core.retry import LLM_RETRY_CONFIG, RetryConfig, retry_async_call
from filmflow.extraction.json_extractor import Expect, extract_structured
from filmflow.extraction.vfx_lines import parse_vfx_lines
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.vfx")

SCENE_EXCERPT_CHARS = 400

VFX_PROMPT = """You are a VFX supervisor breaking down a screenplay. For each scene below decide
whether it needs visual effects work.

VFX scenes include explosions, fire, digital environments, creatures, supernatural
events, flying, large-scale destruction, crowd replication, set extensions and
anything that cannot be captured practically in camera.
Non-VFX scenes are ordinary dialogue, practical locations and simple action.

Respond with EXACTLY one line per scene and nothing else, in this format:
sceneNumber|isVfxScene|description|keywords

Examples:
1|true|Explosion destroys building|explosion,destruction,debris
2|false||
3|true|Character flies through air|flying,supernatural,gravity

Scenes:
{scenes}
"""

TIER_PROMPT = """You are a VFX producer estimating costs. For the VFX sequence below, estimate
the work at the {tier} production quality tier.

Tier guideline: {guideline}

Sequence description: {description}
Keywords: {keywords}

Return as JSON:
{{
  "vfxElementsSummary": "What has to be built at this tier",
  "estimatedVfxCost": 25000,
  "costEstimationNotes": "Assumptions behind the estimate"
}}
"""


def vfx_batch_retry_config() -> RetryConfig:
    return replace(LLM_RETRY_CONFIG, retryable_exceptions=(AllProvidersFailed,))


def _batches(scenes: List[Scene], size: int) -> List[List[Scene]]:
    size = max(1, size)
    return [scenes[i:i + size] for i in range(0, len(scenes), size)]


def _describe_scene(scene: Scene) -> str:
    excerpt = truncate(" ".join(scene.content.split()), SCENE_EXCERPT_CHARS)
    summary = scene.description or excerpt
    return f"Scene {scene.scene_number}: {scene.location} ({scene.time_of_day}) - {summary}"


async def _analyze_batch(
    generator: ContentGenerator,
    batch: List[Scene],
    config: FilmflowConfig,
) -> str:
    primary, options = stage_options(config, StageName.VFX, response_format=ResponseFormat.TEXT)
    prompt = VFX_PROMPT.format(scenes="\n".join(_describe_scene(s) for s in batch))
    return await generator.generate(primary, prompt, options)


async def analyze_vfx(
    generator: ContentGenerator,
    scenes: List[Scene],
    config: FilmflowConfig,
    sleep=asyncio.sleep,
) -> VfxAnalysisResult:
    """
    Identify VFX scenes and attach keywords to each scene's vfx_needs.

    Args:
        generator: Content generator
        scenes: Scenes to analyze (modified in place)
        config: Application configuration
        sleep: Awaitable sleep used for batch retry backoff

    Returns:
        VfxAnalysisResult with per-scene analyses and reported issues

    Raises:
        StageValidationError: If there are no scenes
        PipelineStageError: If no scene could be analyzed
    """
    if not scenes:
        raise StageValidationError("VFX analysis needs at least one scene")

    result = VfxAnalysisResult()
    by_number: Dict[int, Scene] = {s.scene_number: s for s in scenes}
    batches = _batches(scenes, config.pipeline.vfx_batch_size)

    for index, batch in enumerate(batches, start=1):
        numbers = [s.scene_number for s in batch]
        try:
            text = await retry_async_call(
                _analyze_batch,
                generator,
                batch,
                config,
                config=vfx_batch_retry_config(),
                sleep=sleep,
            )
        except AllProvidersFailed as e:
            logger.error(f"VFX batch {index}/{len(batches)} failed: {e}")
            result.issues.append(VfxIssue("batch_failed", f"scenes {numbers[0]}-{numbers[-1]}: {e}"))
            result.issues.extend(
                VfxIssue("missing_scene", "batch failed", n) for n in numbers
            )
            continue

        parsed = parse_vfx_lines(text, known_scene_numbers=numbers)
        for bad in parsed.malformed:
            result.issues.append(
                VfxIssue("malformed_line", f"line {bad.line_number}: {bad.reason} ({bad.text})")
            )

        for line in parsed.analyses:
            scene = by_number[line.scene_number]
            scene.vfx_needs = list(line.keywords) if line.is_vfx_scene else []
            result.analyses.append(VfxSceneAnalysis(
                scene_number=line.scene_number,
                scene_id=scene.id,
                is_vfx_scene=line.is_vfx_scene,
                vfx_description=line.description,
                vfx_keywords=list(line.keywords),
            ))

        for number in numbers:
            if number not in parsed.scene_numbers:
                result.issues.append(VfxIssue("missing_scene", "no line in response", number))

    if not result.analyses:
        raise PipelineStageError(
            StageName.VFX.value,
            f"no scene received a usable VFX line ({len(result.issues)} issue(s))",
        )

    result.analyses.sort(key=lambda a: a.scene_number)
    missing = result.missing_scene_numbers
    if missing:
        logger.warning(f"VFX response missing {len(missing)} scene(s): {missing}")
    logger.info(
        f"VFX analysis complete: {result.vfx_scene_count} VFX scene(s) "
        f"out of {len(result.analyses)} analyzed"
    )
    return result


async def _tier_details(
    generator: ContentGenerator,
    tier: VfxTier,
    description: str,
    keywords: List[str],
    config: FilmflowConfig,
) -> Optional[VfxTierDetails]:
    primary, options = stage_options(config, StageName.VFX, max_tokens=800, temperature=0.4)
    prompt = TIER_PROMPT.format(
        tier=tier.value,
        guideline=VFX_TIER_GUIDELINES[tier],
        description=description,
        keywords=", ".join(keywords) or "none",
    )
    try:
        data = extract_structured(
            await generator.generate(primary, prompt, options),
            Expect.OBJECT,
            required_field="estimatedVfxCost",
        )
    except (AllProvidersFailed, ExtractionFailure) as e:
        logger.warning(f"VFX tier {tier.value} skipped: {e}")
        return None

    summary = first_present(data, "vfxElementsSummary", "elements_summary")
    cost = first_present(data, "estimatedVfxCost", "estimated_cost")
    if not summary or cost is None:
        logger.warning(f"VFX tier {tier.value} skipped: incomplete response")
        return None
    return VfxTierDetails(
        tier=tier.value,
        elements_summary=str(summary),
        estimated_cost=max(0, int(as_float(cost))),
        cost_notes=str(first_present(data, "costEstimationNotes", "cost_notes", default="")),
    )


async def generate_vfx_tier_details(
    generator: ContentGenerator,
    description: str,
    keywords: List[str],
    config: FilmflowConfig,
) -> List[VfxTierDetails]:
    """Cost estimates at LOW, MEDIUM and HIGH quality; failed tiers are left out."""
    details = []
    for tier in VfxTier:
        tier_details = await _tier_details(generator, tier, description, keywords, config)
        if tier_details is not None:
            details.append(tier_details)
    return details
