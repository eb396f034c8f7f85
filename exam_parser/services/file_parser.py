"""
File parsing orchestration.

    acquire_text -> extract_questions_directly
                        segment_text -> needs_ai_categorization -> categorize_questions_with_ai

or, when AI structured extraction is requested, acquire_text ->
extract_questions_with_ai.
"""

import asyncio
import logging
from typing import Optional

from google import genai

from exam_parser.config import Settings, get_settings
from exam_parser.errors import DocumentTooShortError
from exam_parser.models.exam import ExamStructure
from exam_parser.services.ai_categorizer import categorize_questions_with_ai
from exam_parser.services.ai_extractor import extract_questions_with_ai
from exam_parser.services.distribution_auditor import count_questions, needs_ai_categorization
from exam_parser.services.question_segmenter import segment_text
from exam_parser.services.section_classifier import detect_nesa_format
from exam_parser.services.text_acquirer import acquire_text

logger = logging.getLogger(__name__)


async def extract_questions_directly(
    text: str,
    *,
    client: Optional[genai.Client] = None,
    settings: Optional[Settings] = None,
    allow_ai: Optional[bool] = None,
) -> ExamStructure:
    """Extract questions with the heuristic pipeline.

    AI categorization only runs when the heuristic distribution is degenerate
    and it is enabled (``allow_ai`` overrides ``settings.enable_ai_categorization``).
    Without a Gemini key it still runs and degrades to its heuristic fallback.

    Raises:
        DocumentTooShortError: If the text is shorter than ``settings.min_text_length``
    """
    settings = settings or get_settings()
    if len(text) < settings.min_text_length:
        raise DocumentTooShortError(len(text), settings.min_text_length)

    logger.info("Extracting questions directly from text...")

    banners = detect_nesa_format(text)
    if any(banners.values()):
        found = ", ".join(letter for letter, present in banners.items() if present)
        logger.info("Detected NESA section banners: %s", found)

    structure = segment_text(text)
    counts = count_questions(structure)
    logger.info("Question distribution: %s (total %d)", counts, counts.total)

    use_ai = settings.enable_ai_categorization if allow_ai is None else allow_ai
    if use_ai and needs_ai_categorization(structure):
        logger.info("Using AI to categorize questions into sections...")
        structure = await categorize_questions_with_ai(structure, client=client, settings=settings)
        logger.info("Question distribution after AI categorization: %s", count_questions(structure))

    return structure


async def parse_file(
    file_path: str,
    *,
    use_ai_extraction: bool = False,
    client: Optional[genai.Client] = None,
    settings: Optional[Settings] = None,
    allow_ai: Optional[bool] = None,
) -> ExamStructure:
    """Parse an exam document into an ExamStructure.

    Args:
        file_path: Path to a .pdf, .docx, .doc or .txt file
        use_ai_extraction: Use AI structured extraction instead of heuristics
        client: Gemini client shared by the AI steps
        settings: Settings override (default: get_settings())
        allow_ai: Override for AI categorization on the heuristic path

    Raises:
        TextAcquisitionError: If the file cannot be read as text
        DocumentTooShortError: If the heuristic path gets too little text
        AIExtractionError: If AI structured extraction fails
    """
    settings = settings or get_settings()
    text = await asyncio.to_thread(acquire_text, file_path)

    if use_ai_extraction:
        logger.info("Using AI structured extraction for %s", file_path)
        return await extract_questions_with_ai(text, client=client, settings=settings)

    return await extract_questions_directly(text, client=client, settings=settings, allow_ai=allow_ai)
