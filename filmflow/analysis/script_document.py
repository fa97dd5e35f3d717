"""
Script import from uploaded documents.

A PDF or a photographed page is sent inline to a document-capable
provider, which transcribes it back to screenplay text. Providers are tried
in the configured fallback order.
"""

import base64
from typing import Optional

from filmflow.analysis.models import ExtractedScript
from filmflow.core.config import FilmflowConfig
from filmflow.core.exceptions import ExtractionFailure, StageValidationError
from filmflow.core.logging_config import get_logger
from filmflow.llm.generator import ContentGenerator

logger = get_logger("analysis.script_document")

SCRIPT_EXTRACTION_STAGE = "script_extraction"
PDF_MIME_TYPE = "application/pdf"
UNTITLED_SCRIPT = "Untitled Script"

PDF_PROMPT = (
    "Extract all text content from this PDF document. Preserve the original "
    "formatting, scene headings, character names, and dialogue structure. "
    "Return only the extracted text without any additional commentary."
)

IMAGE_PROMPT = (
    "Extract all text content from this image. If this is a script or "
    "screenplay, preserve the formatting, scene headings, character names, and "
    "dialogue structure. Return only the extracted text without any additional "
    "commentary."
)


def is_supported_document(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and (mime_type == PDF_MIME_TYPE or mime_type.startswith("image/"))


def guess_script_title(text: str, scan_lines: int = 10) -> str:
    """
    First all-caps line near the top that is neither a slugline nor a
    transition such as "FADE IN:".

    Returns:
        The title, or "" when none of the first scan_lines lines qualifies
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in lines[:scan_lines]:
        if line.upper() != line or len(line) <= 3 or line.endswith(":"):
            continue
        if "INT." not in line and "EXT." not in line:
            return line
    return ""


async def extract_script_from_document(
    generator: ContentGenerator,
    document: bytes,
    mime_type: str,
    config: FilmflowConfig,
) -> ExtractedScript:
    """
    Transcribe an uploaded screenplay.

    Args:
        generator: Content generator used for the document call
        document: Raw PDF or image bytes
        mime_type: "application/pdf" or an image/* type
        config: Supplies the script_extraction provider routing

    Returns:
        ExtractedScript with the transcribed text and a guessed title

    Raises:
        StageValidationError: For empty documents or unsupported types
        UnsupportedCapability: If no configured provider handles documents
        AllProvidersFailed: If every document-capable provider failed
        ExtractionFailure: If the winning provider returned no text
    """
    if not document:
        raise StageValidationError("Uploaded script document is empty")
    if not is_supported_document(mime_type):
        raise StageValidationError(f"Unsupported script document type: {mime_type}")

    routing = config.providers_for(SCRIPT_EXTRACTION_STAGE)
    prompt = PDF_PROMPT if mime_type == PDF_MIME_TYPE else IMAGE_PROMPT
    logger.info(f"Extracting script text from {len(document)} byte {mime_type} upload")

    text = await generator.analyze_document(
        routing.primary,
        base64.b64encode(document).decode("ascii"),
        mime_type,
        prompt,
        fallbacks=routing.fallbacks,
    )
    if not text or not text.strip():
        raise ExtractionFailure("document yielded no text", text or "")

    content = text.strip()
    title = guess_script_title(content)
    logger.info(f"Extracted {len(content)} characters of script text (title: {title or UNTITLED_SCRIPT})")
    return ExtractedScript(title=title, content=content, mime_type=mime_type)
