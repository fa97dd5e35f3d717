"""
Filmflow Constants

Global constants used throughout the analysis core.
"""

from enum import Enum
from typing import Dict, List

# =============================================================================
# VERSION INFO
# =============================================================================
VERSION = "1.0.0"
PROJECT_NAME = "Filmflow"

# =============================================================================
# PROVIDERS
# =============================================================================

class ProviderId(Enum):
    """Generative backend configurations (model family + variant)."""
    GEMINI_FLASH = "gemini-1.5-flash"
    GEMINI_FLASH_EXP = "gemini-2.0-flash-exp"
    GEMINI_PRO = "gemini-1.5-pro"
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"
    GROK = "grok-beta"
    GROK_VISION = "grok-vision-beta"
    CLAUDE_SONNET = "claude-sonnet"


class ResponseFormat(Enum):
    """Requested shape of a generation result."""
    TEXT = "text"
    JSON = "json"


# =============================================================================
# PIPELINE STAGES
# =============================================================================

class StageName(Enum):
    """Analysis pipeline stages."""
    SCENES = "scenes"
    CHARACTERS = "characters"
    CASTING = "casting"
    VFX = "vfx"
    PRODUCT_PLACEMENT = "product_placement"
    LOCATIONS = "locations"
    FINANCIAL_PLAN = "financial_plan"
    SUMMARY = "summary"


class StageStatus(Enum):
    """Status of one stage record. Only moves forward."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StageStatus.COMPLETED, StageStatus.FAILED)


# Canonical execution order; also the tie-break for independent stages
STAGE_ORDER: List[StageName] = [
    StageName.SCENES,
    StageName.CHARACTERS,
    StageName.CASTING,
    StageName.VFX,
    StageName.PRODUCT_PLACEMENT,
    StageName.LOCATIONS,
    StageName.FINANCIAL_PLAN,
    StageName.SUMMARY,
]

# Hard data dependencies. Soft dependencies (financial plan on the
# per-scene stages) only apply when those stages are requested.
STAGE_DEPENDENCIES: Dict[StageName, List[StageName]] = {
    StageName.SCENES: [],
    StageName.CHARACTERS: [StageName.SCENES],
    StageName.CASTING: [StageName.CHARACTERS],
    StageName.VFX: [StageName.SCENES],
    StageName.PRODUCT_PLACEMENT: [StageName.SCENES],
    StageName.LOCATIONS: [StageName.SCENES],
    StageName.FINANCIAL_PLAN: [],
    StageName.SUMMARY: [],
}

SOFT_STAGE_DEPENDENCIES: Dict[StageName, List[StageName]] = {
    StageName.FINANCIAL_PLAN: [
        StageName.CASTING,
        StageName.VFX,
        StageName.PRODUCT_PLACEMENT,
        StageName.LOCATIONS,
    ],
    StageName.SUMMARY: [StageName.FINANCIAL_PLAN],
}


class RunStatus(Enum):
    """Overall outcome of a pipeline or batch run."""
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


# =============================================================================
# CHARACTERS & CASTING
# =============================================================================

class Importance(Enum):
    """Narrative weight of a character."""
    LEAD = "lead"
    SUPPORTING = "supporting"
    MINOR = "minor"


class BudgetTier(Enum):
    """Project budget tier used to steer casting suggestions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BLOCKBUSTER = "blockbuster"


# Supporting roles with more screen time than this are cast individually
SIGNIFICANT_SUPPORTING_SCREEN_TIME = 15

DEFAULT_CASTING_STRATEGY = {
    "budget_allocation": "Standard industry distribution",
    "marketing_angle": "Ensemble appeal",
    "risk_assessment": "Moderate risk profile",
    "timeline": "12-16 weeks for principal casting",
}

# =============================================================================
# VFX & PRODUCT PLACEMENT
# =============================================================================

class VfxTier(Enum):
    """Production quality tiers for VFX cost estimates."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


VFX_TIER_GUIDELINES = {
    VfxTier.LOW: "Basic VFX, simple compositing ($5,000-$15,000 USD for short sequence)",
    VfxTier.MEDIUM: "Professional VFX, detailed simulations ($20,000-$75,000 USD for short sequence)",
    VfxTier.HIGH: "Photorealistic, complex VFX ($100,000-$500,000 USD for short sequence)",
}


class ProductCategory(Enum):
    """Product categories available for placement."""
    AUTOMOTIVE = "AUTOMOTIVE"
    BEVERAGE = "BEVERAGE"
    CLOTHING = "CLOTHING"
    ELECTRONICS = "ELECTRONICS"
    FOOD = "FOOD"
    LIFESTYLE = "LIFESTYLE"
    LUXURY = "LUXURY"
    SPORTS = "SPORTS"
    TECHNOLOGY = "TECHNOLOGY"
    TRAVEL = "TRAVEL"


VFX_KEYWORDS = [
    'explosion', 'fire', 'crash', 'special effect', 'cgi', 'green screen',
    'composite', 'digital', 'effect', 'supernatural', 'magic', 'flying',
    'transformation', 'monster', 'creature', 'blood', 'gore', 'battle',
]

PRODUCT_KEYWORDS = [
    'car', 'phone', 'computer', 'laptop', 'watch', 'brand', 'logo',
    'restaurant', 'store', 'shop', 'drink', 'food', 'clothing', 'shoes',
]

# =============================================================================
# STORYBOARD
# =============================================================================

class SceneImageStatus(Enum):
    """Per-scene status within a visual batch."""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_SAFETY_LEVEL = "block_medium_and_above"

FALLBACK_COSTUME = "Appropriate costume for the scene"
FALLBACK_VISUAL_STYLE = "Cinematic film style"

# =============================================================================
# SCREENPLAY HEURISTICS
# =============================================================================

LINES_PER_PAGE = 55
MINUTES_PER_PAGE = 1.2
