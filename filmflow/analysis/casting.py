"""
Casting suggestion stage.

Characters are cast one at a time, in the order requested, with a fixed
delay between calls. Every requested character ends up either with a
recommendation or in missing_characters; nothing is dropped silently.
"""

import asyncio
import json
from dataclasses import replace
from typing import Any, Dict, List, Optional

from filmflow.analysis.helpers import (
    as_str_list,
    clamp_int,
    first_present,
    normalize_name,
    stage_options,
)
from filmflow.analysis.models import (
    ActorAnalysis,
    ActorSuggestion,
    CastingRecommendation,
    CastingResult,
    Character,
    CharacterSummary,
    EnsembleCasting,
    EnsembleCombination,
)
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import (
    DEFAULT_CASTING_STRATEGY,
    SIGNIFICANT_SUPPORTING_SCREEN_TIME,
    BudgetTier,
    Importance,
    StageName,
)
from filmflow.core.exceptions import (
    AllProvidersFailed,
    ExtractionFailure,
    PipelineStageError,
    StageValidationError,
)
from filmflow.core.logging_config import get_logger
from filmflow.core.retry import CASTING_RETRY_CONFIG, RetryConfig, retry_async_call
from filmflow.extraction.json_extractor import Expect, extract_list, extract_structured
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.casting")

MAX_ENSEMBLE_LEADS = 5

RANK_PROMPT = """You are a top Hollywood casting director with 20+ years of experience. Analyze this character and provide casting suggestions.

CHARACTER PROFILE:
Name: {name}
Description: {description}
Age: {age}
Gender: {gender}
Personality: {personality}
Importance: {importance}
Physical Description: {physical}
Character Arc: {arc}
Motivations: {motivations}

CASTING REQUIREMENTS:
Role Type: {role_type}
Significance: {significance}/100
Arc Complexity: {arc_complexity}
Casting Notes: {casting_notes}

PROJECT BUDGET TIER: {budget_tier}

Return as JSON with this exact structure:
{{
  "characterName": "{name}",
  "primarySuggestions": [
    {{
      "actorName": "Actor Name",
      "reasoning": "Why this actor fits",
      "fitScore": 85,
      "availability": "Available Q2 2025",
      "estimatedFee": "$2-5M",
      "marketValue": "A-list|B-list|Rising|Character|Newcomer",
      "workingRelationships": ["Director Name", "Co-star Name"]
    }}
  ],
  "alternativeSuggestions": []
}}

Suggest realistic, currently active actors with industry-accurate fee estimates.
"""

BATCH_PROMPT = """Based on these character descriptions, suggest appropriate actors for each role.
Consider age, physical characteristics, acting range and current availability.
Return one entry for EVERY character listed, using the exact character name.

PROJECT BUDGET TIER: {budget_tier}

Characters:
{characters}

Return as JSON array:
[
  {{
    "characterName": "CHARACTER_NAME",
    "primarySuggestions": [
      {{"actorName": "Actor Name", "reasoning": "Why", "fitScore": 85, "availability": "Available 2025", "estimatedFee": "$2-5M", "workingRelationships": []}}
    ],
    "alternativeSuggestions": []
  }}
]
"""

ENSEMBLE_PROMPT = """As an expert casting director, suggest ensemble casting combinations for these lead characters:

CHARACTERS:
{characters}

PROJECT BUDGET: {budget_tier}

Consider actor chemistry, previous collaborations, age-appropriate pairings,
market appeal and budget distribution across leads.

Return as JSON:
{{
  "castingCombinations": [
    {{
      "combination": [{{"character": "Character Name", "actor": "Actor Name"}}],
      "chemistryScore": 85,
      "totalBudget": "$15-25M",
      "marketAppeal": 78,
      "reasoning": "Why this combination works"
    }}
  ],
  "castingDirectorNotes": ["Industry insight"]
}}

Provide 3-5 combinations with varying budget and risk profiles.
"""

STRATEGY_PROMPT = """Based on this casting analysis, provide strategic recommendations:

Characters: {significant} significant roles
Budget Tier: {budget_tier}
Lead Characters: {leads}

Return as JSON:
{{
  "budgetAllocation": "How to distribute casting budget across roles",
  "marketingAngle": "How the cast can be marketed",
  "riskAssessment": "Casting risks and mitigation strategies",
  "timeline": "Recommended casting timeline and milestones"
}}
"""

ACTOR_ANALYSIS_PROMPT = """You are an experienced casting director. Evaluate how well "{actor}" fits the role of "{character}".

ROLE CONTEXT:
{context}

Return as JSON:
{{
  "fitScore": 75,
  "strengths": ["strength 1", "strength 2"],
  "concerns": ["concern 1"],
  "recommendation": "One paragraph verdict"
}}
"""

_RETRYABLE_CASTING_ERRORS = (AllProvidersFailed, ExtractionFailure, StageValidationError)


def casting_retry_config() -> RetryConfig:
    return replace(CASTING_RETRY_CONFIG, retryable_exceptions=_RETRYABLE_CASTING_ERRORS)


# =============================================================================
# PARSING
# =============================================================================

def actor_from_dict(data: Any) -> Optional[ActorSuggestion]:
    if isinstance(data, str) and data.strip():
        return ActorSuggestion(actor_name=data.strip())
    if not isinstance(data, dict):
        return None
    name = str(first_present(data, "actorName", "actor_name", "name", default="")).strip()
    if not name:
        return None
    return ActorSuggestion(
        actor_name=name,
        reasoning=str(data.get("reasoning") or ""),
        fit_score=clamp_int(first_present(data, "fitScore", "fit_score"), 1, 100, 50),
        availability=str(data.get("availability") or ""),
        estimated_fee=str(first_present(data, "estimatedFee", "estimated_fee", default="")),
        market_value=str(first_present(data, "marketValue", "market_value", default="")),
        working_relationships=as_str_list(first_present(data, "workingRelationships", "working_relationships")),
    )


def _ranked(items: Any) -> List[ActorSuggestion]:
    actors = [a for a in (actor_from_dict(i) for i in (items or [])) if a is not None]
    return sorted(actors, key=lambda a: a.fit_score, reverse=True)


def recommendation_from_dict(data: dict) -> Optional[CastingRecommendation]:
    """Validate one recommendation; None without a name or any suggestion."""
    if not isinstance(data, dict):
        return None
    name = str(first_present(data, "characterName", "character_name", default="")).strip()
    primary = _ranked(first_present(data, "primarySuggestions", "primary_suggestions", "suggestions"))
    if not name or not primary:
        return None
    return CastingRecommendation(
        character_name=name,
        primary_suggestions=primary,
        alternative_suggestions=_ranked(first_present(data, "alternativeSuggestions", "alternative_suggestions")),
    )


def check_casting_completeness(
    requested: List[str],
    recommendations: List[CastingRecommendation],
) -> List[str]:
    """
    Names from `requested` that have no recommendation.

    Matching ignores case and whitespace; the requested order is kept.
    """
    covered = {normalize_name(r.character_name) for r in recommendations}
    return [name for name in requested if normalize_name(name) not in covered]


def order_by_request(
    requested: List[str],
    recommendations: List[CastingRecommendation],
) -> List[CastingRecommendation]:
    """Map recommendations 1:1 onto requested names, dropping extras."""
    by_name: Dict[str, CastingRecommendation] = {}
    for rec in recommendations:
        by_name.setdefault(normalize_name(rec.character_name), rec)

    ordered = []
    for name in requested:
        rec = by_name.get(normalize_name(name))
        if rec is not None:
            rec.character_name = name
            ordered.append(rec)
    return ordered


def select_significant_characters(characters: List[Character]) -> List[Character]:
    """Leads plus supporting roles with substantial screen time."""
    return [
        c for c in characters
        if c.importance == Importance.LEAD
        or (c.importance == Importance.SUPPORTING and c.screen_time > SIGNIFICANT_SUPPORTING_SCREEN_TIME)
    ]


# =============================================================================
# MODEL CALLS
# =============================================================================

def _budget_value(budget_tier) -> str:
    return budget_tier.value if isinstance(budget_tier, BudgetTier) else str(budget_tier)


async def rank_actors_for_character(
    generator: ContentGenerator,
    character: Character,
    summary: Optional[CharacterSummary],
    budget_tier: BudgetTier,
    config: FilmflowConfig,
) -> CastingRecommendation:
    """
    Ranked actor suggestions for one character.

    Raises:
        AllProvidersFailed: If no provider answered
        ExtractionFailure: If the answer holds no JSON
        StageValidationError: If the answer is for another character or empty
    """
    summary = summary or CharacterSummary(name=character.name)
    primary, options = stage_options(config, StageName.CASTING)
    prompt = RANK_PROMPT.format(
        name=character.name,
        description=character.description,
        age=character.age,
        gender=character.gender,
        personality=", ".join(character.personality),
        importance=character.importance.value,
        physical=character.physical_description,
        arc=character.character_arc,
        motivations=", ".join(character.motivations),
        role_type=summary.role_type,
        significance=summary.significance,
        arc_complexity=summary.arc_complexity,
        casting_notes="; ".join(summary.casting_notes),
        budget_tier=_budget_value(budget_tier),
    )

    text = await generator.generate(primary, prompt, options)
    data = extract_structured(text, Expect.OBJECT, required_field="characterName")
    recommendation = recommendation_from_dict(data)
    if recommendation is None:
        raise StageValidationError(f"No usable casting suggestions for {character.name}")
    if normalize_name(recommendation.character_name) != normalize_name(character.name):
        raise StageValidationError(
            f"Casting response names '{recommendation.character_name}', expected '{character.name}'"
        )
    recommendation.character_name = character.name
    return recommendation


async def suggest_actors_batch(
    generator: ContentGenerator,
    characters: List[Character],
    budget_tier: BudgetTier,
    config: FilmflowConfig,
) -> CastingResult:
    """
    Cast several characters with a single request.

    Characters the response leaves out are reported in missing_characters.
    """
    requested = [c.name for c in characters]
    primary, options = stage_options(config, StageName.CASTING)
    prompt = BATCH_PROMPT.format(
        budget_tier=_budget_value(budget_tier),
        characters=json.dumps([c.to_dict() for c in characters], indent=2),
    )

    try:
        text = await generator.generate(primary, prompt, options)
        items = extract_list(text, "recommendations", required_field="characterName")
    except (AllProvidersFailed, ExtractionFailure) as e:
        logger.error(f"Batch casting failed: {e}")
        return CastingResult(missing_characters=requested, strategy=dict(DEFAULT_CASTING_STRATEGY))

    parsed = [r for r in (recommendation_from_dict(i) for i in items) if r is not None]
    recommendations = order_by_request(requested, parsed)
    missing = check_casting_completeness(requested, recommendations)
    if missing:
        logger.warning(f"Casting response omitted {len(missing)} character(s): {', '.join(missing)}")
    return CastingResult(
        recommendations=recommendations,
        missing_characters=missing,
        strategy=dict(DEFAULT_CASTING_STRATEGY),
    )


async def generate_ensemble_casting(
    generator: ContentGenerator,
    characters: List[Character],
    budget_tier: BudgetTier,
    config: FilmflowConfig,
) -> EnsembleCasting:
    """Ensemble combinations for up to five leads; empty on failure."""
    leads = [c for c in characters if c.importance == Importance.LEAD][:MAX_ENSEMBLE_LEADS]
    if not leads:
        return EnsembleCasting()

    described = "\n".join(
        f"- {c.name}: {c.description} ({c.age}, {c.gender})\n"
        f"  Relationships: {', '.join(f'{r.character} ({r.relationship})' for r in c.relationships)}"
        for c in leads
    )
    primary, options = stage_options(config, StageName.CASTING, max_tokens=3000, temperature=0.7)
    try:
        text = await generator.generate(
            primary,
            ENSEMBLE_PROMPT.format(characters=described, budget_tier=_budget_value(budget_tier)),
            options,
        )
        data = extract_structured(text, Expect.OBJECT, required_field="combination")
    except (AllProvidersFailed, ExtractionFailure) as e:
        logger.warning(f"Ensemble casting unavailable: {e}")
        return EnsembleCasting()

    raw = first_present(data, "castingCombinations", "combinations", default=[])
    if isinstance(raw, dict):
        raw = [raw]
    if not raw and "combination" in data:
        raw = [data]

    combinations = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict) or not isinstance(item.get("combination"), list):
            continue
        combinations.append(EnsembleCombination(
            combination=[
                {"character": str(p.get("character", "")), "actor": str(p.get("actor", ""))}
                for p in item["combination"] if isinstance(p, dict)
            ],
            chemistry_score=clamp_int(first_present(item, "chemistryScore", "chemistry_score"), 0, 100, 0),
            total_budget=str(first_present(item, "totalBudget", "total_budget", default="")),
            market_appeal=clamp_int(first_present(item, "marketAppeal", "market_appeal"), 0, 100, 0),
            reasoning=str(item.get("reasoning") or ""),
        ))
    return EnsembleCasting(
        combinations=combinations,
        director_notes=as_str_list(first_present(data, "castingDirectorNotes", "director_notes")),
    )


async def generate_casting_strategy(
    generator: ContentGenerator,
    significant: List[Character],
    all_characters: List[Character],
    budget_tier: BudgetTier,
    config: FilmflowConfig,
) -> Dict[str, str]:
    """Overall casting strategy; fixed defaults on failure or missing keys."""
    primary, options = stage_options(config, StageName.CASTING, max_tokens=1000)
    prompt = STRATEGY_PROMPT.format(
        significant=len(significant),
        budget_tier=_budget_value(budget_tier),
        leads=sum(1 for c in all_characters if c.importance == Importance.LEAD),
    )
    strategy = dict(DEFAULT_CASTING_STRATEGY)
    try:
        data = extract_structured(await generator.generate(primary, prompt, options), Expect.OBJECT)
    except (AllProvidersFailed, ExtractionFailure) as e:
        logger.warning(f"Casting strategy fell back to defaults: {e}")
        return strategy

    for key, camel in (
        ("budget_allocation", "budgetAllocation"),
        ("marketing_angle", "marketingAngle"),
        ("risk_assessment", "riskAssessment"),
        ("timeline", "timeline"),
    ):
        value = first_present(data, camel, key)
        if isinstance(value, str) and value.strip():
            strategy[key] = value.strip()
    return strategy


async def suggest_casting(
    generator: ContentGenerator,
    characters: List[Character],
    summaries: List[CharacterSummary],
    budget_tier: BudgetTier,
    config: FilmflowConfig,
    sleep=asyncio.sleep,
    include_ensemble: bool = True,
) -> CastingResult:
    """
    Cast every requested character, in order.

    Each character gets its own request wrapped in retry. A character whose
    request still fails is listed in missing_characters.

    Args:
        generator: Content generator
        characters: Characters to cast, in the order results should follow
        summaries: Casting summaries (matched by name)
        budget_tier: Project budget tier
        config: Application configuration
        sleep: Awaitable sleep for inter-item and retry delays
        include_ensemble: Also produce ensemble combinations and strategy

    Returns:
        CastingResult

    Raises:
        PipelineStageError: If characters were requested and none could be cast
    """
    summary_by_name = {normalize_name(s.name): s for s in summaries}
    recommendations: List[CastingRecommendation] = []
    retry_config = casting_retry_config()

    for index, character in enumerate(characters):
        if index > 0:
            await sleep(config.pipeline.casting_inter_item_delay)
        logger.info(f"Generating casting suggestions for: {character.name}")
        try:
            recommendation = await retry_async_call(
                rank_actors_for_character,
                generator,
                character,
                summary_by_name.get(normalize_name(character.name)),
                budget_tier,
                config,
                config=retry_config,
                sleep=sleep,
            )
            recommendations.append(recommendation)
        except _RETRYABLE_CASTING_ERRORS as e:
            logger.error(f"Failed to generate casting for {character.name}: {e}")

    requested = [c.name for c in characters]
    recommendations = order_by_request(requested, recommendations)
    missing = check_casting_completeness(requested, recommendations)
    if requested and not recommendations:
        raise PipelineStageError(
            StageName.CASTING.value,
            f"no recommendation for any of {len(requested)} character(s): {', '.join(requested)}",
        )
    if missing:
        logger.warning(f"Casting incomplete, missing: {', '.join(missing)}")

    result = CastingResult(
        recommendations=recommendations,
        missing_characters=missing,
        strategy=dict(DEFAULT_CASTING_STRATEGY),
    )
    if include_ensemble and characters:
        result.ensemble = await generate_ensemble_casting(generator, characters, budget_tier, config)
        result.strategy = await generate_casting_strategy(
            generator, characters, characters, budget_tier, config
        )
    return result


async def analyze_single_actor_suggestion(
    generator: ContentGenerator,
    character_name: str,
    actor_name: str,
    context: str,
    config: FilmflowConfig,
) -> ActorAnalysis:
    """
    What-if analysis of one actor for one role, outside the pipeline.

    Raises:
        StageValidationError: If names are blank
        AllProvidersFailed: If no provider answered
        ExtractionFailure: If the answer holds no JSON
    """
    if not character_name or not character_name.strip():
        raise StageValidationError("character_name is required")
    if not actor_name or not actor_name.strip():
        raise StageValidationError("actor_name is required")

    primary, options = stage_options(config, StageName.CASTING, max_tokens=1500, temperature=0.5)
    prompt = ACTOR_ANALYSIS_PROMPT.format(
        actor=actor_name.strip(),
        character=character_name.strip(),
        context=context or "No additional context provided.",
    )
    data = extract_structured(
        await generator.generate(primary, prompt, options),
        Expect.OBJECT,
        required_field="fitScore",
    )
    return ActorAnalysis(
        character_name=character_name.strip(),
        actor_name=actor_name.strip(),
        fit_score=clamp_int(first_present(data, "fitScore", "fit_score"), 1, 100, 50),
        strengths=as_str_list(data.get("strengths")),
        concerns=as_str_list(data.get("concerns")),
        recommendation=str(data.get("recommendation") or ""),
    )
