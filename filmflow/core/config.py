"""
Filmflow Configuration Management

Centralized configuration system with JSON loading and validation.
"""

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError, InvalidConfigError
from .constants import (
    ProviderId,
    StageName,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_SAFETY_LEVEL,
)


def _provider(value) -> ProviderId:
    try:
        return value if isinstance(value, ProviderId) else ProviderId(value)
    except ValueError:
        raise InvalidConfigError(f"Unknown provider in config: {value}")


@dataclass
class StageProviderConfig:
    """Provider routing and sampling settings for one stage."""
    primary: ProviderId
    fallbacks: List[ProviderId] = field(default_factory=list)
    max_tokens: int = 4096
    temperature: float = 0.7

    @classmethod
    def from_dict(cls, data: dict) -> 'StageProviderConfig':
        """Create StageProviderConfig from dictionary."""
        return cls(
            primary=_provider(data['primary']),
            fallbacks=[_provider(p) for p in data.get('fallbacks', [])],
            max_tokens=data.get('max_tokens', 4096),
            temperature=data.get('temperature', 0.7),
        )


def _default_stage_providers() -> Dict[str, StageProviderConfig]:
    return {
        StageName.SCENES.value: StageProviderConfig(
            ProviderId.GEMINI_FLASH, [ProviderId.GPT_4O_MINI, ProviderId.GROK], 8000, 0.3),
        StageName.CHARACTERS.value: StageProviderConfig(
            ProviderId.GEMINI_PRO, [ProviderId.GPT_4O], 6000, 0.4),
        StageName.CASTING.value: StageProviderConfig(
            ProviderId.GROK, [ProviderId.GPT_4O], 4000, 0.6),
        StageName.VFX.value: StageProviderConfig(
            ProviderId.GEMINI_FLASH, [ProviderId.GPT_4O_MINI], 3000, 0.3),
        StageName.PRODUCT_PLACEMENT.value: StageProviderConfig(
            ProviderId.GEMINI_FLASH, [ProviderId.GPT_4O_MINI], 2000, 0.5),
        StageName.LOCATIONS.value: StageProviderConfig(
            ProviderId.GEMINI_PRO, [ProviderId.GPT_4O], 4000, 0.5),
        StageName.FINANCIAL_PLAN.value: StageProviderConfig(
            ProviderId.GPT_4O, [ProviderId.GEMINI_PRO], 1500, 0.5),
        StageName.SUMMARY.value: StageProviderConfig(
            ProviderId.GEMINI_PRO, [ProviderId.GPT_4O], 3000, 0.7),
        "storyboard": StageProviderConfig(
            ProviderId.GPT_4O, [ProviderId.GEMINI_FLASH], 1000, 0.3),
        "script_extraction": StageProviderConfig(
            ProviderId.GEMINI_FLASH, [ProviderId.CLAUDE_SONNET, ProviderId.GPT_4O], 8192, 0.2),
    }


@dataclass
class PipelineConfig:
    """Analysis pipeline settings."""
    script_char_budget: int = 25000
    character_script_budget: int = 30000
    location_script_budget: int = 10000
    summary_min_length: int = 200
    placement_top_n: int = 5
    location_suggestions_per_type: int = 5
    casting_inter_item_delay: float = 1.0
    character_inter_item_delay: float = 0.5
    vfx_batch_size: int = 40
    max_characters: int = 50


@dataclass
class VisualBatchConfig:
    """Storyboard batch generation settings."""
    max_attempts: int = 3
    base_delay: float = 2.0
    inter_item_delay: float = 2.0
    failure_threshold: int = 3
    cooldown_seconds: float = 60.0
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    safety_level: str = DEFAULT_SAFETY_LEVEL
    profile_context_scenes: int = 3
    profile_context_chars: int = 2000
    scene_content_chars: int = 1000


@dataclass
class CRMConfig:
    """CRM collaborator settings."""
    enabled: bool = True
    base_url: str = "https://api.hubapi.com"
    timeout: float = 15.0
    deal_close_days: int = 30


@dataclass
class FilmflowConfig:
    """Main configuration class for Filmflow."""

    project_name: str = "Filmflow"
    version: str = "1.0.0"

    logs_dir: Path = field(default_factory=lambda: Path("logs"))

    stage_providers: Dict[str, StageProviderConfig] = field(
        default_factory=_default_stage_providers
    )

    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    visual: VisualBatchConfig = field(default_factory=VisualBatchConfig)
    crm: CRMConfig = field(default_factory=CRMConfig)

    image_backend: str = "replicate"
    verbose_logging: bool = False

    def providers_for(self, stage: str) -> StageProviderConfig:
        """Get the provider routing for a stage (accepts StageName or str)."""
        key = stage.value if isinstance(stage, StageName) else stage
        config = self.stage_providers.get(key)
        if config is None:
            raise ConfigurationError(f"No provider configuration for stage: {key}")
        return config

    @classmethod
    def from_dict(cls, data: dict) -> 'FilmflowConfig':
        """Create FilmflowConfig from dictionary."""
        config = cls()

        config.project_name = data.get('project_name', config.project_name)
        config.version = data.get('version', config.version)
        config.image_backend = data.get('image_backend', config.image_backend)
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)

        if 'logs_dir' in data:
            config.logs_dir = Path(data['logs_dir'])

        for stage, stage_data in data.get('stage_providers', {}).items():
            config.stage_providers[stage] = StageProviderConfig.from_dict(stage_data)

        config.pipeline = _merge(PipelineConfig, data.get('pipeline'))
        config.visual = _merge(VisualBatchConfig, data.get('visual'))
        config.crm = _merge(CRMConfig, data.get('crm'))

        if config.visual.max_attempts < 1:
            raise InvalidConfigError("visual.max_attempts must be >= 1")
        if config.visual.failure_threshold < 1:
            raise InvalidConfigError("visual.failure_threshold must be >= 1")

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON-serializable dictionary."""
        return {
            'project_name': self.project_name,
            'version': self.version,
            'logs_dir': str(self.logs_dir),
            'image_backend': self.image_backend,
            'verbose_logging': self.verbose_logging,
            'stage_providers': {
                stage: {
                    'primary': spc.primary.value,
                    'fallbacks': [p.value for p in spc.fallbacks],
                    'max_tokens': spc.max_tokens,
                    'temperature': spc.temperature,
                }
                for stage, spc in self.stage_providers.items()
            },
            'pipeline': asdict(self.pipeline),
            'visual': asdict(self.visual),
            'crm': asdict(self.crm),
        }


def _merge(section_cls, data: Optional[dict]):
    """Build a config section from defaults overridden by known keys."""
    section = section_cls()
    if not data:
        return section
    for key, value in data.items():
        if not hasattr(section, key):
            raise InvalidConfigError(f"Unknown {section_cls.__name__} option: {key}")
        setattr(section, key, value)
    return section


DEFAULT_CONFIG_PATH = Path("config/filmflow_config.json")


def load_config(config_path: Path = None) -> FilmflowConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded FilmflowConfig instance
    """
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return FilmflowConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")

    return FilmflowConfig.from_dict(data)


def save_config(config: FilmflowConfig, config_path: Path) -> None:
    """Write configuration to a JSON file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)


_config: Optional[FilmflowConfig] = None


def get_config() -> FilmflowConfig:
    """Get the process default configuration (entry points only)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: FilmflowConfig) -> None:
    """Set the process default configuration."""
    global _config
    _config = config
