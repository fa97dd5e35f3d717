"""
Filmflow storyboard generation.
"""

from .visual_batch import (
    VisualBatchGenerator,
    VisualBatchResult,
    build_scene_prompt,
    characters_in_order,
    fallback_profile,
)

__all__ = [
    'VisualBatchGenerator',
    'VisualBatchResult',
    'build_scene_prompt',
    'characters_in_order',
    'fallback_profile',
]
