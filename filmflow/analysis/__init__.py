"""
Filmflow analysis stages.

Each stage is an async function over a ContentGenerator that returns
typed records from filmflow.analysis.models.
"""

from .models import (
    Project,
    Scene,
    ExtractedScript,
    Character,
    CharacterAnalysis,
    CharacterSummary,
    CastingResult,
    ActorAnalysis,
    VfxAnalysisResult,
    BrandableScene,
    SceneLocationSuggestion,
    FinancialBreakdown,
    CharacterProfile,
    StoryboardImage,
    StageRecord,
    ProjectProgress,
)
from .scenes import extract_scenes
from .regex_scenes import extract_scenes_with_regex, clean_screenplay_text
from .characters import analyze_characters
from .casting import (
    suggest_casting,
    suggest_actors_batch,
    rank_actors_for_character,
    check_casting_completeness,
    select_significant_characters,
    generate_ensemble_casting,
    analyze_single_actor_suggestion,
)
from .vfx import analyze_vfx, generate_vfx_tier_details
from .product_placement import analyze_product_placement, generate_creative_placement_prompt
from .locations import suggest_locations
from .financial import generate_financial_plan, build_financial_breakdown, verify_financial_totals
from .summary import generate_summary
from .script_document import extract_script_from_document, guess_script_title

__all__ = [
    'Project',
    'Scene',
    'ExtractedScript',
    'Character',
    'CharacterAnalysis',
    'CharacterSummary',
    'CastingResult',
    'ActorAnalysis',
    'VfxAnalysisResult',
    'BrandableScene',
    'SceneLocationSuggestion',
    'FinancialBreakdown',
    'CharacterProfile',
    'StoryboardImage',
    'StageRecord',
    'ProjectProgress',
    'extract_script_from_document',
    'guess_script_title',
    'extract_scenes',
    'extract_scenes_with_regex',
    'clean_screenplay_text',
    'analyze_characters',
    'suggest_casting',
    'suggest_actors_batch',
    'rank_actors_for_character',
    'check_casting_completeness',
    'select_significant_characters',
    'generate_ensemble_casting',
    'analyze_single_actor_suggestion',
    'analyze_vfx',
    'generate_vfx_tier_details',
    'analyze_product_placement',
    'generate_creative_placement_prompt',
    'suggest_locations',
    'generate_financial_plan',
    'build_financial_breakdown',
    'verify_financial_totals',
    'generate_summary',
]
