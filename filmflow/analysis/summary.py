"""
Project summary stage: a studio reader's report built from every prior
artifact.
"""

from typing import Any, Mapping, Optional

from filmflow.analysis.helpers import stage_options
from filmflow.analysis.models import Project
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import Importance, ResponseFormat, StageName
from filmflow.core.exceptions import AllProvidersFailed
from filmflow.core.logging_config import get_logger
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.summary")

SUMMARY_PROMPT = """You are a senior development executive at a major film studio with 20+ years of experience in greenlight decisions. Generate a comprehensive, professional reader's report for the following project.

PROJECT DETAILS:
Title: {title}
Logline: {logline}
Synopsis: {synopsis}

ANALYSIS DATA:
- Total Budget: ${budget}
- Scene Count: {scene_count}
- Character Count: {character_count}
- Lead Characters: {leads}
- VFX Requirements: {has_vfx}
- Product Placement Opportunities: {has_placement}
- Location Variations: {location_count}
{financials}
Generate a professional reader's report with the following sections:

1. EXECUTIVE SUMMARY (2-3 paragraphs)
2. STORY ANALYSIS (strengths, weaknesses, genre positioning)
3. CHARACTER EVALUATION (lead characters, supporting cast, casting considerations)
4. PRODUCTION ASSESSMENT (technical requirements, challenges, feasibility)
5. FINANCIAL ANALYSIS (budget appropriateness, revenue potential, risk factors)
6. MARKET ANALYSIS (target audience, comparable films, distribution strategy)
7. RECOMMENDATION (Pass/Consider/Recommend with detailed reasoning)

Write in a professional, industry-standard tone. Be specific about commercial viability,
production challenges and market positioning.
"""


def _financial_block(breakdown) -> str:
    if breakdown is None:
        return ""
    return (
        "\nFINANCIAL BREAKDOWN:\n"
        f"- Above the Line: ${breakdown.summary_total_above_the_line:,}\n"
        f"- Below the Line: ${breakdown.summary_total_below_the_line:,}\n"
        f"- Contingency: ${breakdown.contingency.total:,}\n"
        f"- Grand Total: ${breakdown.summary_grand_total:,}\n"
        f"- Net External Capital Required: ${breakdown.net_external_capital_required:,}\n"
    )


def build_summary_prompt(project: Project, artifacts: Mapping[str, Any]) -> str:
    """Fill the report prompt from the project and whatever artifacts exist."""
    scenes = artifacts.get(StageName.SCENES.value) or []
    analysis = artifacts.get(StageName.CHARACTERS.value)
    characters = analysis.characters if analysis is not None else []
    locations = artifacts.get(StageName.LOCATIONS.value) or []
    leads = [c.name for c in characters if c.importance == Importance.LEAD]

    return SUMMARY_PROMPT.format(
        title=project.title,
        logline=project.logline or "No logline provided",
        synopsis=project.synopsis or "No synopsis provided",
        budget=f"{project.total_budget:,}",
        scene_count=len(scenes),
        character_count=len(characters),
        leads=", ".join(leads) or "None identified",
        has_vfx="Yes" if any(s.vfx_needs for s in scenes) else "No",
        has_placement="Yes" if any(s.product_placement_opportunities for s in scenes) else "No",
        location_count=len(locations),
        financials=_financial_block(artifacts.get(StageName.FINANCIAL_PLAN.value)),
    )


async def generate_summary(
    generator: ContentGenerator,
    project: Project,
    artifacts: Mapping[str, Any],
    config: FilmflowConfig,
) -> Optional[str]:
    """
    Generate the reader's report.

    Args:
        generator: Content generator
        project: Project record
        artifacts: Stage outputs keyed by stage name
        config: Application configuration

    Returns:
        Report text, or None when every provider failed or the text is
        shorter than summary_min_length
    """
    primary, options = stage_options(config, StageName.SUMMARY, response_format=ResponseFormat.TEXT)
    try:
        text = await generator.generate(primary, build_summary_prompt(project, artifacts), options)
    except AllProvidersFailed as e:
        logger.error(f"Summary generation failed: {e}")
        return None

    text = (text or "").strip()
    if len(text) < config.pipeline.summary_min_length:
        logger.error(f"Generated report too short ({len(text)} chars)")
        return None

    logger.info(f"Generated project report ({len(text)} characters)")
    return text
