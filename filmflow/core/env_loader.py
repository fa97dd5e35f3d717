"""
Centralized environment variable loading for Filmflow.

The .env file is loaded once per process. FILMFLOW_ENV_FILE points at an
explicit file; otherwise the working directory and then the repository root
are searched. Provider credentials are always resolved through get_api_key.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_FILE_VARIABLE = "FILMFLOW_ENV_FILE"

_env_loaded = False


def candidate_env_files() -> List[Path]:
    explicit = os.getenv(ENV_FILE_VARIABLE)
    if explicit:
        return [Path(explicit)]
    # filmflow/core/env_loader.py -> repository root
    repo_root = Path(__file__).resolve().parents[2]
    return [Path.cwd() / ".env", repo_root / ".env"]


def ensure_env_loaded(override: bool = True) -> bool:
    """
    Load the first .env file found.

    Args:
        override: .env values replace variables already set (possibly empty)

    Returns:
        True if a file was loaded by this call
    """
    global _env_loaded

    if _env_loaded:
        return False

    for env_path in candidate_env_files():
        if env_path.is_file():
            load_dotenv(env_path, override=override)
            _env_loaded = True
            return True
    return False


def get_api_key(key_name: str, fallback_keys: Optional[List[str]] = None) -> Optional[str]:
    """
    First non-empty value among key_name and its fallback names.

    Returns:
        The credential, or None when every name is unset or empty
    """
    ensure_env_loaded()

    for name in [key_name, *(fallback_keys or [])]:
        value = os.getenv(name)
        if value:
            return value
    return None


def get_google_api_key() -> Optional[str]:
    return get_api_key("GOOGLE_API_KEY", ["GEMINI_API_KEY"])


def get_openai_api_key() -> Optional[str]:
    return get_api_key("OPENAI_API_KEY")


def get_replicate_api_key() -> Optional[str]:
    """Replicate token used by the storyboard image backend."""
    return get_api_key("REPLICATE_API_TOKEN", ["REPLICATE_API_KEY"])


def get_hubspot_api_key() -> Optional[str]:
    """HubSpot private app token for lead capture."""
    return get_api_key("HUBSPOT_API_KEY", ["HUBSPOT_ACCESS_TOKEN"])
