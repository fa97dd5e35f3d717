"""
Parser for the pipe-delimited VFX batch response format.

Each line reads `sceneNumber|isVfxScene|description|keywords`, e.g.

    1|true|Explosion destroys building|explosion,destruction,debris
    2|false||

The line format survives truncated and partially garbled responses better
than one large JSON document, so every line is validated on its own and a
bad line only costs that one scene.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from filmflow.core.logging_config import get_logger

logger = get_logger("extraction.vfx_lines")

VFX_LINE_COLUMNS = 4


@dataclass
class VfxLine:
    """One validated line of a VFX batch response."""
    scene_number: int
    is_vfx_scene: bool
    description: str
    keywords: List[str] = field(default_factory=list)


@dataclass
class MalformedLine:
    """A pipe-delimited line that failed validation."""
    line_number: int
    text: str
    reason: str


@dataclass
class VfxParseResult:
    """Outcome of parsing a whole VFX response."""
    analyses: List[VfxLine] = field(default_factory=list)
    malformed: List[MalformedLine] = field(default_factory=list)

    @property
    def scene_numbers(self) -> Set[int]:
        return {a.scene_number for a in self.analyses}


class _LineError(ValueError):
    pass


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise _LineError(f"invalid boolean '{value.strip()}'")


def _parse_scene_number(value: str) -> int:
    stripped = value.strip()
    if not stripped.isdigit():
        raise _LineError(f"scene number '{stripped}' is not a positive integer")
    number = int(stripped)
    if number < 1:
        raise _LineError(f"scene number {number} is below 1")
    return number


def parse_vfx_line(line: str, known_scene_numbers: Optional[Set[int]] = None) -> VfxLine:
    """
    Validate a single response line.

    Raises:
        ValueError: With a human-readable reason if the line is malformed
    """
    columns = line.split("|")
    if len(columns) != VFX_LINE_COLUMNS:
        raise _LineError(f"expected {VFX_LINE_COLUMNS} columns, got {len(columns)}")

    scene_number = _parse_scene_number(columns[0])
    if known_scene_numbers is not None and scene_number not in known_scene_numbers:
        raise _LineError(f"unknown scene number {scene_number}")

    is_vfx = _parse_bool(columns[1])
    description = columns[2].strip()
    if is_vfx and not description:
        raise _LineError("VFX scene without a description")

    keywords = [k.strip() for k in columns[3].split(",") if k.strip()]
    return VfxLine(
        scene_number=scene_number,
        is_vfx_scene=is_vfx,
        description=description if is_vfx else "",
        keywords=keywords if is_vfx else [],
    )


def parse_vfx_lines(
    text: str,
    known_scene_numbers: Iterable[int] = None,
) -> VfxParseResult:
    """
    Parse a VFX batch response line by line.

    Blank lines and prose lines (no '|') are ignored. A malformed
    pipe-delimited line is recorded and parsing continues. When a scene
    number appears twice, the first valid line wins.

    Args:
        text: Raw model output
        known_scene_numbers: If given, lines for other scene numbers are malformed

    Returns:
        VfxParseResult with valid analyses and malformed lines
    """
    known = set(known_scene_numbers) if known_scene_numbers is not None else None
    result = VfxParseResult()
    seen: Set[int] = set()

    for line_number, raw in enumerate((text or "").splitlines(), start=1):
        line = raw.strip().strip("`")
        if not line or "|" not in line:
            continue

        try:
            parsed = parse_vfx_line(line, known)
        except _LineError as e:
            logger.debug(f"Malformed VFX line {line_number}: {e}")
            result.malformed.append(MalformedLine(line_number, line, str(e)))
            continue

        if parsed.scene_number in seen:
            result.malformed.append(
                MalformedLine(line_number, line, f"duplicate scene number {parsed.scene_number}")
            )
            continue

        seen.add(parsed.scene_number)
        result.analyses.append(parsed)

    if result.malformed:
        logger.warning(f"Ignored {len(result.malformed)} malformed VFX line(s)")
    return result
