"""
Financial plan stage.

The budget breakdown is a fixed percentage table applied to the project's
total budget, computed in Decimal and rounded to cents per line item.
Section totals are sums of their (already rounded) items, so every total
reconciles exactly. The model only contributes optional commentary.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from filmflow.analysis.helpers import stage_options
from filmflow.analysis.models import FinancialBreakdown, FinancialLineItem, FinancialSection, Project
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import ResponseFormat, StageName
from filmflow.core.exceptions import AllProvidersFailed, StageValidationError
from filmflow.core.logging_config import get_logger
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.financial")

CENTS = Decimal("0.01")

SPONSORSHIP_RATE = Decimal("0.05")
LOCATION_INCENTIVE_RATE = Decimal("0.15")

# (account, description, percent of total budget)
ABOVE_THE_LINE: List[Tuple[str, str, str]] = [
    ("1100", "STORY & RIGHTS", "2"),
    ("1300", "PRODUCER", "5"),
    ("1400", "DIRECTOR", "8"),
    ("1500", "CAST & STUNTS", "15"),
    ("1999", "Total Fringes", "5"),
]

BELOW_THE_LINE_PRODUCTION: List[Tuple[str, str, str]] = [
    ("2000", "PRODUCTION STAFF", "8"),
    ("2100", "EXTRAS & STANDINS", "2"),
    ("2200", "SET DESIGN", "3"),
    ("2300", "SET CONSTRUCTION", "5"),
    ("2500", "SET OPERATIONS", "4"),
    ("2600", "SPECIAL EFFECTS", "3"),
    ("2700", "SET DRESSING", "2"),
    ("2800", "PROPS", "1.5"),
    ("2900", "WARDROBE", "2.5"),
    ("3000", "LED VIRTUAL", "8"),
    ("3100", "MAKEUP & HAIRDRESSING", "2"),
    ("3200", "SET LIGHTING", "4"),
    ("3300", "CAMERA", "6"),
    ("3400", "PRODUCTION SOUND", "2"),
    ("3500", "TRANSPORTATION", "3"),
    ("3600", "LOCATION EXPENSES", "4"),
    ("3700", "PICTURE VEHICLES/ANIMALS", "1"),
    ("3800", "PRODUCTION FILM AND LAB", "1"),
    ("3900", "MISC", "2"),
    ("3950", "HEALTH AND SAFETY PROTOCOLS", "1.5"),
    ("4100", "OVERTIME", "3"),
    ("4200", "STUDIO/EQUIPMENT/FACILITIES", "5"),
    ("4300", "TESTS", "0.5"),
    ("4450", "BTL T&L", "2"),
    ("4455", "SERVICE COMPANY", "3"),
    ("4499", "Total Fringes", "8"),
]

POST_PRODUCTION: List[Tuple[str, str, str]] = [
    ("4500", "FILM EDITING", "3"),
    ("4600", "MUSIC", "2"),
    ("4700", "SOUND", "2.5"),
    ("4800", "FILM&LAB", "1.5"),
    ("5000", "TITLES", "0.5"),
    ("5100", "VFX", "12"),
    ("5999", "Total Fringes", "3"),
]

OTHER_BELOW_THE_LINE: List[Tuple[str, str, str]] = [
    ("6500", "PUBLICITY", "2"),
    ("6700", "INSURANCE", "1.5"),
    ("6800", "MISC EXPENSES", "1"),
    ("7500", "LEGAL & ACCOUNTING", "1.5"),
    ("7699", "Total Fringes", "1"),
]

BOND_FEE = ("9000", "BOND FEE", "1.5")
CONTINGENCY = ("9100", "CONTINGENCY", "10")

COMMENTARY_PROMPT = """You are a film finance analyst. Write a short commentary (3-5 sentences) on this
production budget for "{title}".

Total budget: ${budget}
Above the line: ${atl}
Below the line: ${btl}
Contingency: ${contingency}
Estimated brand sponsorship: ${sponsorship}
Estimated location incentives: ${incentive}
Net external capital required: ${net}

Comment on how the budget is distributed and where the financing risk sits.
Return plain text only.
"""


def to_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def allocate(budget: Decimal, percent: str) -> Decimal:
    """Percentage share of the budget, rounded to cents."""
    return to_cents(Decimal(budget) * Decimal(percent) / Decimal(100))


def _line_item(budget: Decimal, row: Tuple[str, str, str]) -> FinancialLineItem:
    account, description, percent = row
    return FinancialLineItem(account=account, description=description, total=allocate(budget, percent))


def _section(name: str, budget: Decimal, rows: List[Tuple[str, str, str]]) -> FinancialSection:
    return FinancialSection(name=name, items=[_line_item(budget, row) for row in rows])


def build_financial_breakdown(
    project: Project,
    sponsorship_value: Optional[Decimal] = None,
    incentive_value: Optional[Decimal] = None,
) -> FinancialBreakdown:
    """
    Compute the deterministic breakdown for a project.

    Args:
        project: Project whose total_budget drives the table
        sponsorship_value: Estimated brand sponsorship; 5% of budget if None
        incentive_value: Estimated location incentive; 15% of budget if None

    Returns:
        FinancialBreakdown with all totals filled in
    """
    budget = Decimal(project.total_budget or 0)
    if budget < 0:
        raise StageValidationError(f"Total budget must not be negative: {budget}")

    breakdown = FinancialBreakdown(
        project_name=project.title,
        total_budget_input=to_cents(budget),
        above_the_line=_section("Above the Line", budget, ABOVE_THE_LINE),
        below_the_line_production=_section("Below the Line Production", budget, BELOW_THE_LINE_PRODUCTION),
        post_production=_section("Post Production", budget, POST_PRODUCTION),
        other_below_the_line=_section("Other Below the Line", budget, OTHER_BELOW_THE_LINE),
        bond_fee=_line_item(budget, BOND_FEE),
        contingency=_line_item(budget, CONTINGENCY),
        expected_release_date=project.expected_release_date,
    )

    breakdown.summary_total_above_the_line = breakdown.above_the_line.total
    breakdown.summary_total_below_the_line = (
        breakdown.below_the_line_production.total
        + breakdown.post_production.total
        + breakdown.other_below_the_line.total
    )
    breakdown.summary_total_above_and_below_the_line = (
        breakdown.summary_total_above_the_line + breakdown.summary_total_below_the_line
    )
    breakdown.summary_grand_total = (
        breakdown.summary_total_above_and_below_the_line
        + breakdown.contingency.total
        + breakdown.bond_fee.total
    )

    breakdown.estimated_brand_sponsorship_value = to_cents(
        budget * SPONSORSHIP_RATE if sponsorship_value is None else Decimal(sponsorship_value)
    )
    breakdown.estimated_location_incentive_value = to_cents(
        budget * LOCATION_INCENTIVE_RATE if incentive_value is None else Decimal(incentive_value)
    )
    breakdown.net_external_capital_required = (
        breakdown.summary_grand_total
        - breakdown.estimated_brand_sponsorship_value
        - breakdown.estimated_location_incentive_value
    )
    return breakdown


def verify_financial_totals(breakdown: FinancialBreakdown) -> None:
    """
    Check that every total reconciles with its parts.

    Raises:
        StageValidationError: On the first mismatch found
    """
    def check(label: str, actual: Decimal, expected: Decimal) -> None:
        if actual != expected:
            raise StageValidationError(
                f"Financial total mismatch for {label}: {actual} != {expected}"
            )

    for section in breakdown.sections:
        for item in section.items:
            check(f"{item.account} rounding", item.total, to_cents(item.total))

    check("above the line", breakdown.summary_total_above_the_line, breakdown.above_the_line.total)
    check(
        "below the line",
        breakdown.summary_total_below_the_line,
        breakdown.below_the_line_production.total
        + breakdown.post_production.total
        + breakdown.other_below_the_line.total,
    )
    check(
        "above and below the line",
        breakdown.summary_total_above_and_below_the_line,
        breakdown.summary_total_above_the_line + breakdown.summary_total_below_the_line,
    )
    check(
        "grand total",
        breakdown.summary_grand_total,
        breakdown.summary_total_above_and_below_the_line
        + breakdown.contingency.total
        + breakdown.bond_fee.total,
    )
    check(
        "net external capital",
        breakdown.net_external_capital_required,
        breakdown.summary_grand_total
        - breakdown.estimated_brand_sponsorship_value
        - breakdown.estimated_location_incentive_value,
    )


async def generate_financial_plan(
    generator: ContentGenerator,
    project: Project,
    config: FilmflowConfig,
    sponsorship_value: Optional[Decimal] = None,
    incentive_value: Optional[Decimal] = None,
    commentary: bool = True,
) -> FinancialBreakdown:
    """
    Build and verify the breakdown, then add model commentary.

    Commentary is best-effort: when every provider fails it stays empty
    and the numbers are returned unchanged.
    """
    breakdown = build_financial_breakdown(project, sponsorship_value, incentive_value)
    verify_financial_totals(breakdown)
    logger.info(
        f"Financial breakdown for '{project.title}': grand total ${breakdown.summary_grand_total:,}"
    )

    if not commentary:
        return breakdown

    primary, options = stage_options(config, StageName.FINANCIAL_PLAN, response_format=ResponseFormat.TEXT)
    prompt = COMMENTARY_PROMPT.format(
        title=project.title,
        budget=f"{breakdown.total_budget_input:,}",
        atl=f"{breakdown.summary_total_above_the_line:,}",
        btl=f"{breakdown.summary_total_below_the_line:,}",
        contingency=f"{breakdown.contingency.total:,}",
        sponsorship=f"{breakdown.estimated_brand_sponsorship_value:,}",
        incentive=f"{breakdown.estimated_location_incentive_value:,}",
        net=f"{breakdown.net_external_capital_required:,}",
    )
    try:
        breakdown.commentary = (await generator.generate(primary, prompt, options)).strip()
    except AllProvidersFailed as e:
        logger.warning(f"Financial commentary unavailable: {e}")
    return breakdown
