"""
Filmflow Analysis Models

Typed records produced and consumed by the analysis stages.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from filmflow.core.constants import BudgetTier, Importance, StageStatus


def _plain(value: Any) -> Any:
    """Convert enums, decimals and datetimes for JSON output."""
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value") and hasattr(value, "name"):
        return value.value
    return value


class _Record:
    """Mixin giving dataclasses a JSON-friendly to_dict()."""

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


# =============================================================================
# PROJECT & SCENES
# =============================================================================

@dataclass
class Project(_Record):
    """Input record for a film project."""
    id: str
    title: str
    script_content: str = ""
    total_budget: Decimal = Decimal("0")
    budget_tier: BudgetTier = BudgetTier.MEDIUM
    logline: str = ""
    synopsis: str = ""
    expected_release_date: Optional[str] = None


@dataclass
class ExtractedScript(_Record):
    """Screenplay text read out of an uploaded PDF or image."""
    title: str
    content: str
    mime_type: str


@dataclass
class Scene(_Record):
    """One scene of a screenplay."""
    id: str
    scene_number: int
    location: str
    time_of_day: str = "UNSPECIFIED"
    description: str = ""
    characters: List[str] = field(default_factory=list)
    content: str = ""
    page_start: int = 1
    page_end: int = 1
    duration: int = 1
    vfx_needs: List[str] = field(default_factory=list)
    product_placement_opportunities: List[str] = field(default_factory=list)


# =============================================================================
# CHARACTERS
# =============================================================================

@dataclass
class CharacterRelationship(_Record):
    """A character's relationship to another character."""
    character: str
    relationship: str
    strength: int = 5  # 1-10
    description: str = ""


@dataclass
class Character(_Record):
    """An analyzed character."""
    name: str
    description: str = ""
    age: str = ""
    gender: str = ""
    personality: List[str] = field(default_factory=list)
    importance: Importance = Importance.MINOR
    screen_time: float = 0.0  # estimated minutes
    character_arc: str = ""
    physical_description: str = ""
    motivations: List[str] = field(default_factory=list)
    relationships: List[CharacterRelationship] = field(default_factory=list)


@dataclass
class CharacterSummary(_Record):
    """Casting-oriented summary of a character."""
    name: str
    role_type: str = ""
    significance: int = 50  # 1-100
    arc_complexity: str = "moderate"
    casting_notes: List[str] = field(default_factory=list)


@dataclass
class RelationshipEdge(_Record):
    """Edge of the character relationship graph."""
    source: str
    target: str
    type: str
    strength: int = 5
    explanation: str = ""


@dataclass
class CharacterAnalysis(_Record):
    """Output of the character analysis stage."""
    characters: List[Character] = field(default_factory=list)
    summaries: List[CharacterSummary] = field(default_factory=list)
    relationships: List[RelationshipEdge] = field(default_factory=list)

    def summary_for(self, name: str) -> Optional[CharacterSummary]:
        key = name.strip().lower()
        for summary in self.summaries:
            if summary.name.strip().lower() == key:
                return summary
        return None


# =============================================================================
# CASTING
# =============================================================================

@dataclass
class ActorSuggestion(_Record):
    """One suggested actor for a role."""
    actor_name: str
    reasoning: str = ""
    fit_score: int = 50  # 1-100
    availability: str = ""
    estimated_fee: str = ""
    market_value: str = ""
    working_relationships: List[str] = field(default_factory=list)


@dataclass
class CastingRecommendation(_Record):
    """Ranked suggestions for one character."""
    character_name: str
    primary_suggestions: List[ActorSuggestion] = field(default_factory=list)
    alternative_suggestions: List[ActorSuggestion] = field(default_factory=list)


@dataclass
class EnsembleCombination(_Record):
    """A candidate combination of leads."""
    combination: List[Dict[str, str]] = field(default_factory=list)
    chemistry_score: int = 0
    total_budget: str = ""
    market_appeal: int = 0
    reasoning: str = ""


@dataclass
class EnsembleCasting(_Record):
    """Ensemble suggestions across lead characters."""
    combinations: List[EnsembleCombination] = field(default_factory=list)
    director_notes: List[str] = field(default_factory=list)


@dataclass
class CastingResult(_Record):
    """Output of the casting stage."""
    recommendations: List[CastingRecommendation] = field(default_factory=list)
    missing_characters: List[str] = field(default_factory=list)
    ensemble: EnsembleCasting = field(default_factory=EnsembleCasting)
    strategy: Dict[str, str] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return not self.missing_characters


@dataclass
class ActorAnalysis(_Record):
    """Fit analysis of one actor for one character."""
    character_name: str
    actor_name: str
    fit_score: int = 50
    strengths: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    recommendation: str = ""


# =============================================================================
# VFX & PRODUCT PLACEMENT
# =============================================================================

@dataclass
class VfxSceneAnalysis(_Record):
    """VFX verdict for one scene."""
    scene_number: int
    scene_id: str
    is_vfx_scene: bool
    vfx_description: str = ""
    vfx_keywords: List[str] = field(default_factory=list)


@dataclass
class VfxIssue(_Record):
    """A per-item problem found while analyzing VFX batches."""
    kind: str  # "malformed_line", "missing_scene", "batch_failed"
    detail: str
    scene_number: Optional[int] = None


@dataclass
class VfxAnalysisResult(_Record):
    """Output of the VFX stage."""
    analyses: List[VfxSceneAnalysis] = field(default_factory=list)
    issues: List[VfxIssue] = field(default_factory=list)

    @property
    def vfx_scene_count(self) -> int:
        return sum(1 for a in self.analyses if a.is_vfx_scene)

    @property
    def missing_scene_numbers(self) -> List[int]:
        return [i.scene_number for i in self.issues if i.kind == "missing_scene"]


@dataclass
class VfxTierDetails(_Record):
    """Cost estimate for one VFX quality tier."""
    tier: str
    elements_summary: str
    estimated_cost: int
    cost_notes: str = ""


@dataclass
class BrandableScene(_Record):
    """A scene suited to product placement."""
    scene_id: str
    score: int  # 1-100
    reason: str
    suggested_categories: List[str] = field(default_factory=list)
    placement_context: str = ""


# =============================================================================
# LOCATIONS
# =============================================================================

@dataclass
class LocationCandidate(_Record):
    """A real-world filming location candidate."""
    location: str
    city: str = ""
    state: str = ""
    country: str = ""
    tax_incentive: float = 0.0  # percentage
    estimated_cost: float = 0.0
    logistics: str = ""
    weather_considerations: str = ""


@dataclass
class SceneLocationSuggestion(_Record):
    """Ranked candidates for one location type."""
    location_type: str
    scene_ids: List[str] = field(default_factory=list)
    suggestions: List[LocationCandidate] = field(default_factory=list)


# =============================================================================
# FINANCIALS
# =============================================================================

@dataclass
class FinancialLineItem(_Record):
    """One budget account."""
    account: str
    description: str
    total: Decimal


@dataclass
class FinancialSection(_Record):
    """A group of accounts whose total is the sum of its items."""
    name: str
    items: List[FinancialLineItem] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((item.total for item in self.items), Decimal("0"))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["total"] = str(self.total)
        return data


@dataclass
class FinancialBreakdown(_Record):
    """Deterministic budget breakdown plus model commentary."""
    project_name: str
    total_budget_input: Decimal
    above_the_line: FinancialSection
    below_the_line_production: FinancialSection
    post_production: FinancialSection
    other_below_the_line: FinancialSection
    bond_fee: FinancialLineItem
    contingency: FinancialLineItem
    summary_total_above_the_line: Decimal = Decimal("0")
    summary_total_below_the_line: Decimal = Decimal("0")
    summary_total_above_and_below_the_line: Decimal = Decimal("0")
    summary_grand_total: Decimal = Decimal("0")
    estimated_brand_sponsorship_value: Decimal = Decimal("0")
    estimated_location_incentive_value: Decimal = Decimal("0")
    net_external_capital_required: Decimal = Decimal("0")
    expected_release_date: Optional[str] = None
    location: str = "TBD"
    prep_weeks: int = 12
    shoot_days: str = "30 DAYS"
    unions: str = "DGA, WGA, SAG"
    commentary: str = ""

    @property
    def sections(self) -> List[FinancialSection]:
        return [
            self.above_the_line,
            self.below_the_line_production,
            self.post_production,
            self.other_below_the_line,
        ]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        for key, section in (
            ("above_the_line", self.above_the_line),
            ("below_the_line_production", self.below_the_line_production),
            ("post_production", self.post_production),
            ("other_below_the_line", self.other_below_the_line),
        ):
            data[key] = section.to_dict()
        return data


# =============================================================================
# STORYBOARD
# =============================================================================

@dataclass
class CharacterProfile(_Record):
    """Visual consistency profile shared by every image of a character."""
    project_id: str
    character_name: str
    physical_description: str
    costume_description: str
    visual_style: str
    is_fallback: bool = False


@dataclass
class StoryboardImage(_Record):
    """A generated storyboard frame."""
    scene_id: str
    image_url: str
    prompt: str
    characters_present: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)


# =============================================================================
# PIPELINE BOOKKEEPING
# =============================================================================

@dataclass
class StageRecord(_Record):
    """Status of one stage for one project."""
    project_id: str
    stage_name: str
    status: StageStatus = StageStatus.PENDING
    result_summary: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class ProjectProgress(_Record):
    """Derived completion percentage for the latest run."""
    project_id: str
    percent_complete: float = 0.0
    completed: int = 0
    total: int = 0
