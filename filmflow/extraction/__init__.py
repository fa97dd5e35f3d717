"""
Filmflow Extraction Module

Recovery of structured values from raw model text.
"""

from .json_extractor import Expect, extract_structured, extract_list, repair_json
from .vfx_lines import VfxLine, MalformedLine, VfxParseResult, parse_vfx_lines

__all__ = [
    'Expect',
    'extract_structured',
    'extract_list',
    'repair_json',
    'VfxLine',
    'MalformedLine',
    'VfxParseResult',
    'parse_vfx_lines',
]
