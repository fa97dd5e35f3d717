"""
Prompt sanitization applied before every provider submission.

Screenplays routinely contain profanity that trips provider safety filters
on otherwise harmless requests. Flagged words are swapped for neutral
equivalents and control characters are removed.
"""

import re

# Longer forms first so "fucking" is not consumed by a shorter pattern
FLAGGED_WORDS = [
    ("fuckin'", "really"),
    ("fucking", "really"),
    ("shit", "stuff"),
    ("damn", "darn"),
    ("hell", "heck"),
]

_WORD_PATTERNS = [
    # \b cannot follow an apostrophe, so the right edge is a lookahead
    (re.compile(r"\b" + re.escape(word) + r"(?!\w)", re.IGNORECASE), replacement)
    for word, replacement in FLAGGED_WORDS
]

# Everything below 0x20 except \t \n \r, plus DEL
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_prompt(text: str) -> str:
    """
    Replace flagged words and strip control characters.

    Args:
        text: Prompt text

    Returns:
        Sanitized text (line breaks and tabs preserved)
    """
    if not text:
        return text or ""

    result = _CONTROL_CHARS.sub("", text)
    for pattern, replacement in _WORD_PATTERNS:
        result = pattern.sub(replacement, result)
    return result
