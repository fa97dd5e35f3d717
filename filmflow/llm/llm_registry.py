"""
Filmflow LLM Registry

Central registry of the generative backends a stage can route to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from filmflow.core.constants import ProviderId


# ============================================================================
#  CAPABILITIES
# ============================================================================

CAP_TEXT = "text"
CAP_JSON = "json"
CAP_DOCUMENT = "document"


# ============================================================================
#  LLM INFO DATACLASS
# ============================================================================

@dataclass
class LLMInfo:
    """Complete information about one backend configuration."""

    id: ProviderId
    name: str
    family: str  # "google", "openai", "xai", "anthropic"
    model: str  # Actual model identifier for the API
    env_key: str = ""  # Primary environment variable for the API key
    alt_env_keys: List[str] = field(default_factory=list)
    capabilities: List[str] = field(default_factory=lambda: [CAP_TEXT])
    max_output_tokens: int = 8192
    default_temperature: float = 0.7
    base_url: str = ""

    @property
    def env_keys(self) -> List[str]:
        return [self.env_key, *self.alt_env_keys]

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities


# ============================================================================
#  LLM REGISTRY
# ============================================================================

LLM_REGISTRY: Dict[ProviderId, LLMInfo] = {
    # Google Gemini
    ProviderId.GEMINI_FLASH: LLMInfo(
        id=ProviderId.GEMINI_FLASH,
        name="Gemini 1.5 Flash",
        family="google",
        model="gemini-1.5-flash",
        env_key="GOOGLE_API_KEY",
        alt_env_keys=["GEMINI_API_KEY"],
        capabilities=[CAP_TEXT, CAP_JSON, CAP_DOCUMENT],
        max_output_tokens=8192,
    ),
    ProviderId.GEMINI_FLASH_EXP: LLMInfo(
        id=ProviderId.GEMINI_FLASH_EXP,
        name="Gemini 2.0 Flash (experimental)",
        family="google",
        model="gemini-2.0-flash-exp",
        env_key="GOOGLE_API_KEY",
        alt_env_keys=["GEMINI_API_KEY"],
        capabilities=[CAP_TEXT, CAP_JSON],
        max_output_tokens=8192,
    ),
    ProviderId.GEMINI_PRO: LLMInfo(
        id=ProviderId.GEMINI_PRO,
        name="Gemini 1.5 Pro",
        family="google",
        model="gemini-1.5-pro",
        env_key="GOOGLE_API_KEY",
        alt_env_keys=["GEMINI_API_KEY"],
        capabilities=[CAP_TEXT, CAP_JSON, CAP_DOCUMENT],
        max_output_tokens=8192,
    ),

    # OpenAI
    ProviderId.GPT_4O: LLMInfo(
        id=ProviderId.GPT_4O,
        name="GPT-4o",
        family="openai",
        model="gpt-4o",
        env_key="OPENAI_API_KEY",
        capabilities=[CAP_TEXT, CAP_JSON, CAP_DOCUMENT],
        max_output_tokens=16384,
    ),
    ProviderId.GPT_4O_MINI: LLMInfo(
        id=ProviderId.GPT_4O_MINI,
        name="GPT-4o mini",
        family="openai",
        model="gpt-4o-mini",
        env_key="OPENAI_API_KEY",
        capabilities=[CAP_TEXT, CAP_JSON],
        max_output_tokens=16384,
    ),

    # xAI Grok (OpenAI-compatible endpoint)
    ProviderId.GROK: LLMInfo(
        id=ProviderId.GROK,
        name="Grok",
        family="xai",
        model="grok-beta",
        env_key="XAI_API_KEY",
        alt_env_keys=["GROK_API_KEY"],
        capabilities=[CAP_TEXT, CAP_JSON],
        max_output_tokens=8192,
        base_url="https://api.x.ai/v1",
    ),
    ProviderId.GROK_VISION: LLMInfo(
        id=ProviderId.GROK_VISION,
        name="Grok Vision",
        family="xai",
        model="grok-vision-beta",
        env_key="XAI_API_KEY",
        alt_env_keys=["GROK_API_KEY"],
        capabilities=[CAP_TEXT, CAP_DOCUMENT],
        max_output_tokens=8192,
        base_url="https://api.x.ai/v1",
    ),

    # Anthropic
    ProviderId.CLAUDE_SONNET: LLMInfo(
        id=ProviderId.CLAUDE_SONNET,
        name="Claude Sonnet 4.5",
        family="anthropic",
        model="claude-sonnet-4-5-20250929",
        env_key="ANTHROPIC_API_KEY",
        alt_env_keys=["CLAUDE_API_KEY"],
        capabilities=[CAP_TEXT, CAP_JSON, CAP_DOCUMENT],
        max_output_tokens=16000,
    ),
}


def get_llm_info(provider_id: ProviderId) -> LLMInfo:
    """Look up a registry entry; KeyError if unknown."""
    return LLM_REGISTRY[provider_id]
