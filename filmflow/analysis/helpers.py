"""
Shared helpers for analysis stages: provider options, truncation and
coercion of loosely-typed model output.
"""

from typing import Any, List, Optional, Tuple

from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import ProviderId, ResponseFormat
from filmflow.llm.providers import GenerationOptions


def stage_options(
    config: FilmflowConfig,
    stage,
    response_format: ResponseFormat = ResponseFormat.JSON,
    max_tokens: int = None,
    temperature: float = None,
) -> Tuple[ProviderId, GenerationOptions]:
    """
    Resolve (primary provider, options) for a stage.

    Args:
        config: Application configuration
        stage: StageName or stage key
        response_format: TEXT or JSON
        max_tokens: Override the configured token limit
        temperature: Override the configured temperature

    Returns:
        Tuple of primary provider and GenerationOptions with fallbacks
    """
    routing = config.providers_for(stage)
    options = GenerationOptions(
        max_tokens=max_tokens or routing.max_tokens,
        temperature=routing.temperature if temperature is None else temperature,
        response_format=response_format,
        fallback_providers=tuple(routing.fallbacks),
    )
    return routing.primary, options


def truncate(text: str, limit: int) -> str:
    """Cut text to a character budget."""
    text = text or ""
    return text if len(text) <= limit else text[:limit]


def clamp_int(value: Any, low: int, high: int, default: int) -> int:
    """Coerce to int and clamp into [low, high]; default when unparseable."""
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


def as_float(value: Any, default: float = 0.0) -> float:
    """Parse numbers that may arrive as '25%', '$5,000' or None."""
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace("$", "").replace(",", "").replace("%", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            return default
    return default


def as_str_list(value: Any) -> List[str]:
    """Normalize a list-ish field to a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [str(value)]


def first_present(data: dict, *keys: str, default: Any = None) -> Any:
    """First non-empty value among snake_case/camelCase spellings."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return default


def normalize_name(name: Optional[str]) -> str:
    return " ".join((name or "").split()).lower()
