"""
AI structured extraction.

Alternative to the heuristic pipeline: the whole document text is sent to
Gemini with a NESA exam-structure prompt and the returned JSON is validated
and normalized into an ExamStructure. Unlike categorization, failure here is
reported to the caller.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from google import genai

from exam_parser.config import Settings, get_settings
from exam_parser.errors import AIExtractionError
from exam_parser.models.exam import (
    DEFAULT_POINTS,
    DEFAULT_SECTION_DESCRIPTIONS,
    SECTION_NAMES,
    ExamStructure,
    Option,
    Question,
    SectionName,
)
from exam_parser.services.gemini_client import generate_text, get_gemini_client
from exam_parser.utils.json_text import extract_json_object
from exam_parser.utils.retry import FIXED_BACKOFF, retry_with_backoff

logger = logging.getLogger(__name__)

EXTRACTION_CONFIG = {
    "temperature": 0.2,
    "top_p": 0.8,
    "top_k": 40,
    "max_output_tokens": 4096,
}

EXTRACTION_PROMPT = """You are an AI assistant that helps extract exam questions from text.
The exam follows Rwanda's NESA exam structure with sections A, B, and C.

Section A: Multiple choice questions (1-2 points each)
Section B: Short answer questions (5-10 points each)
Section C: Long answer/essay questions (10-20 points each)

Please analyze the following text and extract all questions, organizing them into the appropriate sections.

IMPORTANT GUIDELINES:
1. Identify ALL questions in the text, even if they're not explicitly labeled by section
2. Look for question marks, numbered items, or text that appears to be asking for information
3. Categorize questions based on their type:
   - Multiple choice questions go in Section A
   - Short answer questions go in Section B
   - Essay/long answer questions go in Section C
4. For multiple-choice questions:
   - Identify all options (usually labeled A, B, C, D)
   - Mark the correct answer (if provided in the text)
   - Assign 1-2 points per question
5. For open-ended questions:
   - Provide a model answer based on the text
   - Assign 5-10 points for short answers (Section B)
   - Assign 10-20 points for essays (Section C)
6. If the text doesn't have enough questions for all sections, create additional questions based on the content to ensure each section has at least 1-2 questions
7. If the text is difficult to parse or appears to be formatted strangely, do your best to extract meaningful content and create appropriate questions

Format your response as a JSON object with the following structure:
{{
  "sections": [
    {{
      "name": "A",
      "description": "Multiple Choice Questions",
      "questions": [
        {{
          "text": "question text",
          "type": "multiple-choice",
          "options": [
            {{"text": "option 1", "isCorrect": false}},
            {{"text": "option 2", "isCorrect": true}}
          ],
          "correctAnswer": "correct answer text",
          "points": 1
        }}
      ]
    }},
    {{
      "name": "B",
      "description": "Short Answer Questions",
      "questions": [
        {{
          "text": "question text",
          "type": "open-ended",
          "options": [],
          "correctAnswer": "model answer text",
          "points": 5
        }}
      ]
    }},
    {{
      "name": "C",
      "description": "Long Answer Questions",
      "questions": [
        {{
          "text": "question text",
          "type": "open-ended",
          "options": [],
          "correctAnswer": "detailed model answer",
          "points": 10
        }}
      ]
    }}
  ]
}}

Here's the text to analyze:

{text}

Only return the JSON object, nothing else. Make sure the JSON is valid and properly formatted.
"""


def build_extraction_prompt(text: str) -> str:
    return EXTRACTION_PROMPT.format(text=text)


def validate_sections(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Check the raw ``sections`` array and fill in missing descriptions.

    Raises:
        ValueError: If ``sections`` is missing or a section lacks a name or
            a ``questions`` array.
    """
    sections = payload.get("sections")
    if not isinstance(sections, list):
        raise ValueError("Invalid JSON structure: missing sections array")

    for section in sections:
        if (
            not isinstance(section, dict)
            or not section.get("name")
            or not isinstance(section.get("questions"), list)
        ):
            name = section.get("name") if isinstance(section, dict) else None
            raise ValueError(f"Invalid section structure in section {name or 'unknown'}")

        if not section.get("description"):
            name = str(section["name"]).upper()
            section["description"] = DEFAULT_SECTION_DESCRIPTIONS.get(name, f"Section {name}")

    return sections


def _parse_option(raw: Any) -> Option:
    if isinstance(raw, dict):
        return Option(text=str(raw.get("text", "")), is_correct=bool(raw.get("isCorrect", False)))
    return Option(text=str(raw))


def _parse_question(raw: Dict[str, Any], section: SectionName, question_id: int) -> Question:
    options = [_parse_option(option) for option in raw.get("options") or []]
    question_type = raw.get("type")
    if question_type not in ("multiple-choice", "open-ended"):
        question_type = "multiple-choice" if options else "open-ended"

    points = raw.get("points")
    if not isinstance(points, int) or isinstance(points, bool):
        points = DEFAULT_POINTS[section]

    return Question(
        id=question_id,
        text=str(raw.get("text", "")).strip(),
        type=question_type,
        options=options,
        correct_answer=str(raw.get("correctAnswer") or ""),
        points=points,
        section=section,
    )


def normalize_sections(sections: List[Dict[str, Any]]) -> ExamStructure:
    """Fold validated raw sections into the fixed A/B/C structure.

    Questions from a section named anything other than A, B or C are placed
    by type (multiple-choice in A, otherwise B). Questions without text are
    dropped. Ids are assigned in order of appearance.
    """
    structure = ExamStructure.empty()
    next_id = 0

    for raw_section in sections:
        name = str(raw_section["name"]).strip().upper()
        known = name in SECTION_NAMES
        if known:
            structure.section(name).description = raw_section["description"]
        else:
            logger.warning("AI returned unknown section %r; placing its questions by type", name)

        for raw_question in raw_section["questions"]:
            if not isinstance(raw_question, dict):
                continue
            target: SectionName = name if known else "B"  # type: ignore[assignment]
            question = _parse_question(raw_question, target, next_id)
            if not question.text:
                continue
            if not known and question.is_multiple_choice:
                question.section = "A"
            structure.section(question.section).questions.append(question)
            next_id += 1

    return structure


async def extract_questions_with_ai(
    text: str,
    *,
    client: Optional[genai.Client] = None,
    settings: Optional[Settings] = None,
) -> ExamStructure:
    """Extract a complete exam structure from text with Gemini.

    Each attempt is bounded by ``settings.ai_extraction_timeout_seconds``;
    failed attempts are retried with a fixed backoff.

    Args:
        text: Full document text
        client: Gemini client (created from settings when omitted)
        settings: Settings override (default: get_settings())

    Returns:
        ExamStructure with sections A, B, C

    Raises:
        AIExtractionError: If every attempt failed, or no client is available
    """
    settings = settings or get_settings()
    if client is None:
        try:
            client = get_gemini_client()
        except ValueError as e:
            raise AIExtractionError(f"Failed to extract questions with AI: {e}", last_exception=e) from e

    policy = replace(
        FIXED_BACKOFF,
        max_attempts=settings.ai_extraction_max_attempts,
        base_delay=settings.ai_extraction_backoff_seconds,
    )
    prompt = build_extraction_prompt(text)
    attempts = 0

    @retry_with_backoff(policy)
    async def attempt_extraction() -> ExamStructure:
        nonlocal attempts
        attempts += 1
        logger.info("AI extraction attempt %d of %d", attempts, policy.max_attempts)
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    generate_text,
                    client,
                    settings.extraction_model,
                    prompt,
                    EXTRACTION_CONFIG,
                    settings.ai_cache_dir,
                ),
                timeout=settings.ai_extraction_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError("Gemini API request timed out") from e

        sections = validate_sections(extract_json_object(response))
        logger.info("Successfully extracted %d sections with questions", len(sections))
        return normalize_sections(sections)

    try:
        return await attempt_extraction()
    except Exception as e:
        logger.error("All AI extraction attempts failed: %s", e)
        raise AIExtractionError(
            "Failed to extract questions with AI after multiple attempts",
            attempts=attempts,
            last_exception=e,
        ) from e
