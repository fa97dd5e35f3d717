"""
Deterministic screenplay scene extraction.

Used when no provider can produce a scene list. Works line by line over
standard INT./EXT. sluglines, picking up ALL-CAPS character cues and
keyword-level VFX and product placement hints along the way.
"""

import re
from typing import List, Optional

from filmflow.analysis.models import Scene
from filmflow.core.constants import (
    LINES_PER_PAGE,
    MINUTES_PER_PAGE,
    PRODUCT_KEYWORDS,
    VFX_KEYWORDS,
)
from filmflow.core.logging_config import get_logger

logger = get_logger("analysis.regex_scenes")

_TIME_WORDS = r"DAY|NIGHT|MORNING|AFTERNOON|EVENING|DAWN|DUSK|CONTINUOUS|LATER|MOMENTS LATER"

HEADING_PATTERNS = [
    # INT. LOCATION - TIME
    re.compile(r"^(INT\.|EXT\.|INTERIOR|EXTERIOR)\s+(.+?)\s*[-–—]\s*(.+?)$", re.IGNORECASE),
    # INT. LOCATION TIME
    re.compile(rf"^(INT\.|EXT\.|INTERIOR|EXTERIOR)\s+(.+?)\s+({_TIME_WORDS})$", re.IGNORECASE),
    # INT. LOCATION
    re.compile(r"^(INT\.|EXT\.|INTERIOR|EXTERIOR)\s+(.+?)$", re.IGNORECASE),
]

CHARACTER_CUE = re.compile(r"^([A-Z][A-Z\s]{2,}[A-Z])$")
MAX_CUE_LENGTH = 30


def clean_screenplay_text(text: str) -> str:
    """
    Normalize line endings and drop pagination noise.

    Removes bare page numbers and CONTINUED / CONT'D / MORE lines, collapses
    runs of blank lines and wide horizontal whitespace.
    """
    text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"^\s*\d+\s*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*(CONTINUED|CONT'D|MORE)\s*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"\n{4,}", "\n\n\n", text)
    text = re.sub(r"[ \t]{3,}", "  ", text)
    return text.strip()


def parse_heading(line: str) -> Optional[tuple]:
    """Return (location, time_of_day) if the line is a slugline."""
    for pattern in HEADING_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        if match.lastindex and match.lastindex >= 3:
            return match.group(2).strip(), match.group(3).strip().upper()
        return match.group(2).strip(), "UNSPECIFIED"
    return None


def _add_keywords(line: str, keywords: List[str], found: List[str]) -> None:
    lowered = line.lower()
    for keyword in keywords:
        if keyword in lowered and keyword not in found:
            found.append(keyword)


def _finalize(scene: Scene) -> Scene:
    page_count = max(1, scene.page_end - scene.page_start + 1)
    scene.duration = max(1, round(page_count * MINUTES_PER_PAGE))
    scene.location = scene.location or "UNKNOWN LOCATION"
    return scene


def extract_scenes_with_regex(script: str) -> List[Scene]:
    """
    Split a screenplay into scenes using sluglines.

    Args:
        script: Raw screenplay text

    Returns:
        Scenes in script order with ids scene_1, scene_2, ...
    """
    scenes: List[Scene] = []
    current: Optional[Scene] = None
    page = 1

    for line_number, raw in enumerate((script or "").split("\n"), start=1):
        line = raw.strip()
        page = -(-line_number // LINES_PER_PAGE)  # ceil
        if not line:
            continue

        heading = parse_heading(line)
        if heading:
            if current is not None:
                scenes.append(_finalize(current))
            number = len(scenes) + 1
            location, time_of_day = heading
            current = Scene(
                id=f"scene_{number}",
                scene_number=number,
                location=location,
                time_of_day=time_of_day,
                description=line,
                content=line + "\n",
                page_start=page,
                page_end=page,
            )
            continue

        if current is None:
            continue

        current.content += line + "\n"
        current.page_end = page

        cue = CHARACTER_CUE.match(line)
        if cue and len(cue.group(1)) < MAX_CUE_LENGTH:
            name = cue.group(1).strip()
            if name not in current.characters:
                current.characters.append(name)

        _add_keywords(line, VFX_KEYWORDS, current.vfx_needs)
        _add_keywords(line, PRODUCT_KEYWORDS, current.product_placement_opportunities)

    if current is not None:
        scenes.append(_finalize(current))

    logger.info(f"Regex extraction found {len(scenes)} scenes across ~{page} pages")
    return scenes
