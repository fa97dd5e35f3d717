"""
Character analysis stage.

One call produces the character list and the relationship graph; a
follow-up call per principal character produces the casting summary.
Summaries are best-effort and fall back to values derived from the
character itself.
"""

import asyncio
import json
from typing import Any, List, Optional

from filmflow.analysis.helpers import (
    as_float,
    as_str_list,
    clamp_int,
    first_present,
    normalize_name,
    stage_options,
    truncate,
)
from filmflow.analysis.models import (
    Character,
    CharacterAnalysis,
    CharacterRelationship,
    CharacterSummary,
    RelationshipEdge,
    Scene,
)
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import Importance, StageName
from filmflow.core.exceptions import (
    AllProvidersFailed,
    ExtractionFailure,
    PipelineStageError,
    StageValidationError,
)
from filmflow.core.logging_config import get_logger
from filmflow.extraction.json_extractor import Expect, extract_structured
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.characters")

CHARACTER_PROMPT = """Analyze the characters in this script and their relationships. Provide:

1. Character analysis with personality, importance, screen time estimates
2. Relationship mapping between characters with strength ratings
3. Character development arcs
4. A one-sentence explanation for every relationship in the graph

Return as JSON with this structure:
{{
  "characters": [
    {{
      "name": "CHARACTER_NAME",
      "description": "Physical and personality description",
      "age": "Age range",
      "gender": "Gender",
      "personality": ["trait1", "trait2", "trait3"],
      "importance": "lead|supporting|minor",
      "screenTime": 45,
      "physicalDescription": "Physical appearance and mannerisms",
      "motivations": ["primary motivation"],
      "relationships": [
        {{"character": "OTHER_CHARACTER", "relationship": "relationship type", "strength": 8, "description": "How they relate"}}
      ],
      "characterArc": "Character development description"
    }}
  ],
  "relationshipGraph": [
    {{"from": "CHARACTER1", "to": "CHARACTER2", "type": "relationship_type", "strength": 7, "explanation": "Why this relationship matters"}}
  ]
}}

Only include meaningful relationships (strength >= 3) and avoid listing both A->B and B->A.

Script content:
{script}
"""

SUMMARY_PROMPT = """Create a concise character summary for "{name}" for casting and production purposes.

Character Details:
{details}

Return as JSON:
{{
  "name": "{name}",
  "roleType": "protagonist|antagonist|love_interest|mentor|comic_relief|etc",
  "significance": 75,
  "arcComplexity": "simple|moderate|complex",
  "castingNotes": ["specific casting requirement 1", "specific casting requirement 2"]
}}

Casting notes should cover age range, physical requirements, acting skills
and any special talents the role needs.
"""

_IMPORTANCE_ALIASES = {
    "lead": Importance.LEAD,
    "main": Importance.LEAD,
    "protagonist": Importance.LEAD,
    "supporting": Importance.SUPPORTING,
    "minor": Importance.MINOR,
    "background": Importance.MINOR,
}


def parse_importance(value: Any) -> Optional[Importance]:
    return _IMPORTANCE_ALIASES.get(str(value or "").strip().lower())


def character_from_dict(data: dict) -> Optional[Character]:
    """Validate one character; None when name or importance is unusable."""
    if not isinstance(data, dict):
        return None
    name = str(data.get("name") or "").strip()
    importance = parse_importance(data.get("importance"))
    if not name or importance is None:
        return None

    relationships = []
    for rel in data.get("relationships") or []:
        if not isinstance(rel, dict) or not rel.get("character"):
            continue
        relationships.append(CharacterRelationship(
            character=str(rel["character"]).strip(),
            relationship=str(rel.get("relationship") or "").strip(),
            strength=clamp_int(rel.get("strength"), 1, 10, 5),
            description=str(first_present(rel, "description", "explanation", default="")),
        ))

    return Character(
        name=name,
        description=str(data.get("description") or ""),
        age=str(data.get("age") or ""),
        gender=str(data.get("gender") or ""),
        personality=as_str_list(data.get("personality")),
        importance=importance,
        screen_time=max(0.0, as_float(first_present(data, "screenTime", "screen_time"), 0.0)),
        character_arc=str(first_present(data, "characterArc", "character_arc", default="")),
        physical_description=str(first_present(data, "physicalDescription", "physical_description", default="")),
        motivations=as_str_list(data.get("motivations")),
        relationships=relationships,
    )


def relationship_edges(raw_graph: Any, characters: List[Character]) -> List[RelationshipEdge]:
    """
    Build the relationship graph.

    Uses the model's graph when present, else derives edges from each
    character's own relationship list. Reverse duplicates are dropped.
    """
    edges: List[RelationshipEdge] = []
    seen = set()

    def add(source: str, target: str, rel_type: str, strength: Any, explanation: str) -> None:
        if not source or not target:
            return
        key = frozenset((normalize_name(source), normalize_name(target)))
        if key in seen or len(key) < 2:
            return
        seen.add(key)
        strength = clamp_int(strength, 1, 10, 5)
        explanation = explanation or f"{source} and {target}: {rel_type or 'connected'} (strength {strength}/10)"
        edges.append(RelationshipEdge(source, target, rel_type or "connected", strength, explanation))

    for item in raw_graph if isinstance(raw_graph, list) else []:
        if isinstance(item, dict):
            add(
                str(first_present(item, "from", "source", default="")).strip(),
                str(first_present(item, "to", "target", default="")).strip(),
                str(item.get("type") or ""),
                item.get("strength"),
                str(first_present(item, "explanation", "evolution", "description", default="")),
            )

    if not edges:
        for character in characters:
            for rel in character.relationships:
                add(character.name, rel.character, rel.relationship, rel.strength, rel.description)
    return edges


def default_summary(character: Character) -> CharacterSummary:
    """Summary derived from the character record alone."""
    significance = {Importance.LEAD: 85, Importance.SUPPORTING: 55, Importance.MINOR: 20}[character.importance]
    notes = [n for n in (
        f"Age: {character.age}" if character.age else "",
        f"Gender: {character.gender}" if character.gender else "",
        character.physical_description,
    ) if n]
    return CharacterSummary(
        name=character.name,
        role_type=character.importance.value,
        significance=significance,
        arc_complexity="complex" if len(character.character_arc) > 200 else "moderate",
        casting_notes=notes,
    )


def summary_from_dict(data: dict, character: Character) -> CharacterSummary:
    fallback = default_summary(character)
    return CharacterSummary(
        name=character.name,
        role_type=str(first_present(data, "roleType", "role_type", default=fallback.role_type)),
        significance=clamp_int(data.get("significance"), 1, 100, fallback.significance),
        arc_complexity=str(first_present(data, "arcComplexity", "arc_complexity", default=fallback.arc_complexity)),
        casting_notes=as_str_list(first_present(data, "castingNotes", "casting_notes")) or fallback.casting_notes,
    )


async def summarize_character(
    generator: ContentGenerator,
    character: Character,
    config: FilmflowConfig,
) -> CharacterSummary:
    """Casting summary for one character; derived locally on any failure."""
    primary, options = stage_options(config, StageName.CHARACTERS, max_tokens=1000, temperature=0.5)
    prompt = SUMMARY_PROMPT.format(
        name=character.name,
        details=json.dumps(character.to_dict(), indent=2),
    )
    try:
        text = await generator.generate(primary, prompt, options)
        data = extract_structured(text, Expect.OBJECT, required_field="roleType")
        return summary_from_dict(data, character)
    except (AllProvidersFailed, ExtractionFailure) as e:
        logger.warning(f"Summary for {character.name} fell back to derived values: {e}")
        return default_summary(character)


async def analyze_characters(
    generator: ContentGenerator,
    scenes: List[Scene],
    config: FilmflowConfig,
    sleep=asyncio.sleep,
) -> CharacterAnalysis:
    """
    Analyze characters across all scenes.

    Args:
        generator: Content generator
        scenes: Extracted scenes (content is the analysis input)
        config: Application configuration
        sleep: Awaitable sleep used between per-character calls

    Returns:
        CharacterAnalysis with characters, summaries and relationships

    Raises:
        StageValidationError: If there are no scenes
        PipelineStageError: If no valid character could be produced
    """
    if not scenes:
        raise StageValidationError("Character analysis needs at least one scene")

    script = "\n\n".join(s.content for s in scenes)
    primary, options = stage_options(config, StageName.CHARACTERS)
    prompt = CHARACTER_PROMPT.format(script=truncate(script, config.pipeline.character_script_budget))

    try:
        text = await generator.generate(primary, prompt, options)
        payload = extract_structured(text, Expect.ANY, required_field="importance")
    except (AllProvidersFailed, ExtractionFailure) as e:
        raise PipelineStageError(StageName.CHARACTERS.value, str(e))

    if isinstance(payload, dict):
        raw_characters = payload.get("characters")
        if raw_characters is None and "name" in payload:
            raw_characters = [payload]
        raw_graph = first_present(payload, "relationshipGraph", "relationships", default=[])
    else:
        raw_characters, raw_graph = payload, []
    if isinstance(raw_characters, dict):
        raw_characters = [raw_characters]

    characters: List[Character] = []
    seen = set()
    for item in raw_characters or []:
        character = character_from_dict(item)
        if character is None:
            logger.warning(f"Rejected character item: {str(item)[:120]}")
            continue
        key = normalize_name(character.name)
        if key in seen:
            continue
        seen.add(key)
        characters.append(character)
        if len(characters) >= config.pipeline.max_characters:
            break

    if not characters:
        raise PipelineStageError(StageName.CHARACTERS.value, "no valid characters in response")

    summaries: List[CharacterSummary] = []
    for index, character in enumerate(characters):
        if character.importance == Importance.MINOR:
            summaries.append(default_summary(character))
            continue
        if index > 0:
            await sleep(config.pipeline.character_inter_item_delay)
        summaries.append(await summarize_character(generator, character, config))

    relationships = relationship_edges(raw_graph, characters)
    logger.info(
        f"Character analysis complete: {len(characters)} characters, "
        f"{len(relationships)} relationships"
    )
    return CharacterAnalysis(characters=characters, summaries=summaries, relationships=relationships)
