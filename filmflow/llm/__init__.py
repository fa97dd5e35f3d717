"""
Filmflow LLM Module

Provider registry, backends, fallback generator and image backends.
"""

from .llm_registry import LLMInfo, LLM_REGISTRY, get_llm_info
from .providers import GenerationOptions, BaseGenerativeBackend
from .provider_registry import ProviderRegistry
from .generator import ContentGenerator
from .sanitizer import sanitize_prompt
from .image_backend import ImageBackend, create_image_backend

__all__ = [
    'LLMInfo',
    'LLM_REGISTRY',
    'get_llm_info',
    'GenerationOptions',
    'BaseGenerativeBackend',
    'ProviderRegistry',
    'ContentGenerator',
    'sanitize_prompt',
    'ImageBackend',
    'create_image_backend',
]
