"""
Best-effort recovery of JSON values from free-form model output.

Models wrap JSON in markdown fences, prepend chatter, leave trailing commas
and forget to quote keys. extract_structured() peels those layers off in a
fixed order. A response cut off inside an array keeps its complete elements.
The last resort is scanning for flat objects that carry a known field.
"""

import json
import re
from enum import Enum
from typing import Any, List, Optional, Union

from filmflow.core.exceptions import ExtractionFailure
from filmflow.core.logging_config import get_logger

logger = get_logger("extraction.json")

JsonValue = Union[dict, list]


class Expect(Enum):
    """Expected top-level shape of an extracted value."""
    ANY = "any"
    OBJECT = "object"
    ARRAY = "array"


_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n?")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_OPENERS = {"{": "}", "[": "]"}


# =============================================================================
# CLEANUP HELPERS
# =============================================================================

def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers, keeping their contents."""
    return _FENCE_PATTERN.sub("", text)


def trim_to_json_span(text: str) -> str:
    """
    Cut text before the first opening bracket and after its matching
    closing bracket.

    When brackets never balance, the span runs to the last closing bracket
    of the same kind.
    """
    start = -1
    for i, ch in enumerate(text):
        if ch in _OPENERS:
            start = i
            break
    if start < 0:
        return text.strip()

    end = _matching_close(text, start)
    if end < 0:
        end = text.rfind(_OPENERS[text[start]])
        if end < start:
            return text[start:].strip()
    return text[start:end + 1]


def _matching_close(text: str, start: int) -> int:
    """Index of the bracket closing text[start], honoring string literals."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _outside_strings(text: str, transform) -> str:
    """Apply transform to the segments of text that lie outside string literals."""
    pieces = []
    segment_start = 0
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
                pieces.append(text[segment_start:i + 1])
                segment_start = i + 1
        elif ch == '"':
            pieces.append(transform(text[segment_start:i]))
            segment_start = i
            in_string = True
    tail = text[segment_start:]
    pieces.append(tail if in_string else transform(tail))
    return "".join(pieces)


def repair_json(text: str) -> str:
    """Remove trailing commas and quote bare object keys."""
    def fix(segment: str) -> str:
        segment = _TRAILING_COMMA.sub(r"\1", segment)
        return _UNQUOTED_KEY.sub(r'\1"\2"\3', segment)

    return _outside_strings(text, fix)


def close_truncated_array(text: str) -> Optional[str]:
    """
    Cut an array that stops mid-element back to its last complete element
    and close it.

    Returns None when text does not open with an array, when the array is
    balanced, or when no element was completed.
    """
    start = -1
    for i, ch in enumerate(text):
        if ch in _OPENERS:
            start = i
            break
    if start < 0 or text[start] != "[":
        return None

    depth = 0
    last_end = -1
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return None
            if depth == 1:
                last_end = i
    if last_end < 0:
        return None
    return text[start:last_end + 1] + "]"


def _try_parse(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _conform(value: Any, expect: Expect) -> Optional[JsonValue]:
    """Apply the single-object normalization and reject wrong shapes."""
    if expect == Expect.ARRAY:
        if isinstance(value, dict):
            logger.debug("Wrapped single object in a one-element array")
            return [value]
        return value if isinstance(value, list) else None
    if expect == Expect.OBJECT:
        return value if isinstance(value, dict) else None
    return value if isinstance(value, (dict, list)) else None


def _scan_flat_objects(text: str, required_field: str) -> List[dict]:
    pattern = re.compile(r'\{[^{}]*"' + re.escape(required_field) + r'"[^{}]*\}')
    found = []
    for match in pattern.finditer(text):
        candidate = _try_parse(match.group(0))
        if candidate is None:
            candidate = _try_parse(repair_json(match.group(0)))
        if isinstance(candidate, dict):
            found.append(candidate)
    return found


# =============================================================================
# PUBLIC API
# =============================================================================

def extract_structured(
    text: str,
    expect: Expect = Expect.ANY,
    required_field: str = None,
) -> JsonValue:
    """
    Recover a JSON object or array from raw model text.

    Args:
        text: Raw model output
        expect: Expected top-level shape. With Expect.ARRAY a single object
                is wrapped in a one-element list.
        required_field: Field name used by the last-resort scan for flat objects

    Returns:
        The recovered dict or list

    Raises:
        ExtractionFailure: If no value of the expected shape can be recovered
    """
    if not text or not text.strip():
        raise ExtractionFailure("empty response", text or "")

    candidate = trim_to_json_span(strip_code_fences(text))

    value = _try_parse(candidate)
    if value is None:
        repaired = repair_json(candidate)
        value = _try_parse(repaired)
        if value is not None:
            logger.debug("Parsed model output after JSON repair")

    if value is None:
        closed = close_truncated_array(strip_code_fences(text))
        if closed is not None:
            value = _try_parse(closed)
            if value is None:
                value = _try_parse(repair_json(closed))
            if value is not None:
                logger.warning(f"Recovered {len(value)} element(s) from a truncated array")

    if value is not None:
        conformed = _conform(value, expect)
        if conformed is not None:
            return conformed

    if required_field:
        objects = _scan_flat_objects(text, required_field)
        if objects:
            logger.debug(
                f"Recovered {len(objects)} object(s) by scanning for '{required_field}'"
            )
            if expect == Expect.OBJECT:
                return objects[0]
            return objects

    reason = "no parseable JSON" if value is None else f"expected {expect.value}"
    raise ExtractionFailure(reason, text)


def extract_list(text: str, key: str = None, required_field: str = None) -> list:
    """
    Recover an array that may arrive bare or wrapped in an object.

    Accepts `[...]`, `{"<key>": [...]}` or a single item object, which is
    normalized to a one-element list.

    Args:
        text: Raw model output
        key: Wrapper key to unwrap, e.g. "scenes"
        required_field: Field every item is expected to carry

    Returns:
        List of items

    Raises:
        ExtractionFailure: If nothing usable can be recovered
    """
    value = extract_structured(text, Expect.ANY, required_field)

    if isinstance(value, list):
        return value

    if key and key in value:
        inner = value[key]
        if isinstance(inner, list):
            return inner
        if isinstance(inner, dict):
            return [inner]
        raise ExtractionFailure(f"'{key}' is not an array", text)

    # A lone item object stands in for a one-element array
    logger.debug("Wrapped single object in a one-element array")
    return [value]
