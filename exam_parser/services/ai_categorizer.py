"""
AI-assisted re-categorization of extracted questions.

Used when the heuristic pass produced a degenerate section distribution.
Questions are sent to Gemini in small batches, strictly one after another,
each batch raced against a timeout. Any batch that times out, fails or
returns unusable JSON is categorized with the same deterministic heuristic
instead, so this step always produces a complete structure and never raises.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from google import genai

from exam_parser.config import Settings, get_settings
from exam_parser.models.categorization import (
    BatchCategorizationResult,
    CategorizationItem,
    flatten_for_categorization,
)
from exam_parser.models.exam import SECTION_NAMES, ExamStructure, Question, Section
from exam_parser.services.gemini_client import generate_text, get_gemini_client
from exam_parser.services.question_segmenter import ESSAY_VOCABULARY, LONG_QUESTION_CHARS
from exam_parser.utils.json_text import extract_json_object

logger = logging.getLogger(__name__)

CATEGORIZATION_CONFIG = {
    "temperature": 0.1,
    "max_output_tokens": 512,
}


def build_categorization_prompt(batch: Sequence[CategorizationItem]) -> str:
    """Build the categorization prompt for one batch of questions."""
    entries = []
    for item in batch:
        entry = [f"ID: {item.id}", f"Question: {item.text}", f"Type: {item.type}"]
        if item.options:
            entry.append(f"Options: {' | '.join(item.options)}")
        entry.append(f"Current Section: {item.current_section}")
        entries.append("\n".join(entry))

    questions = "\n\n".join(entries)
    return f"""Categorize these exam questions into sections A, B, or C:

Section A: Multiple choice questions with options (a, b, c, d)
Section B: Short answer questions (brief explanations)
Section C: Long answer/essay questions (detailed explanations)

Questions:
{questions}

Rules:
- If a question has multiple choice options, it's Section A
- If a question requires a short explanation (1-3 sentences), it's Section B
- If a question requires a detailed essay or analysis, it's Section C
- Questions with "explain briefly", "list", "define" are usually Section B
- Questions with "discuss", "analyze", "evaluate" are usually Section C

Return only a JSON object like: {{"0":"A","1":"B",...}}
"""


def heuristic_section(item: CategorizationItem) -> str:
    """Deterministic fallback used whenever Gemini cannot categorize a batch."""
    if item.options:
        return "A"
    if ESSAY_VOCABULARY.search(item.text) or len(item.text) > LONG_QUESTION_CHARS:
        return "C"
    return "B"


def heuristic_categorization(batch: Sequence[CategorizationItem]) -> BatchCategorizationResult:
    return {item.id: heuristic_section(item) for item in batch}  # type: ignore[misc]


def parse_categorization_response(text: str) -> BatchCategorizationResult:
    """Parse ``{"<id>": "<A|B|C>"}`` out of a model response.

    Entries with non-integer ids or letters outside A/B/C are dropped.

    Raises:
        ValueError: If the response holds no JSON object.
    """
    raw = extract_json_object(text)
    result: BatchCategorizationResult = {}
    for key, value in raw.items():
        letter = str(value).strip().upper()
        if letter not in SECTION_NAMES:
            continue
        try:
            result[int(key)] = letter  # type: ignore[assignment]
        except (TypeError, ValueError):
            continue
    return result


def _split_batches(items: List[CategorizationItem], size: int) -> List[List[CategorizationItem]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


async def _categorize_batch(
    client: Optional[genai.Client],
    batch: List[CategorizationItem],
    batch_number: int,
    settings: Settings,
) -> BatchCategorizationResult:
    if client is None:
        return heuristic_categorization(batch)

    try:
        prompt = build_categorization_prompt(batch)
        text = await asyncio.wait_for(
            asyncio.to_thread(
                generate_text,
                client,
                settings.categorization_model,
                prompt,
                CATEGORIZATION_CONFIG,
                settings.ai_cache_dir,
            ),
            timeout=settings.ai_timeout_seconds,
        )
        result = parse_categorization_response(text)
        logger.info("Successfully categorized batch %d", batch_number)
        return result
    except asyncio.TimeoutError:
        logger.warning(
            "Gemini categorization timed out after %.1fs for batch %d; using heuristics",
            settings.ai_timeout_seconds, batch_number,
        )
    except Exception as e:
        logger.warning("Error processing batch %d: %s; using heuristics", batch_number, e)

    return heuristic_categorization(batch)


def _assign_sections(
    structure: ExamStructure,
    items: List[CategorizationItem],
    categorization: BatchCategorizationResult,
) -> ExamStructure:
    originals: Dict[int, Question] = {q.id: q for q in structure.all_questions()}
    result = ExamStructure(
        sections=[
            Section(name=section.name, description=section.description, questions=[])
            for section in structure.sections
        ]
    )

    for item in items:
        letter = categorization.get(item.id, item.current_section)
        question = originals[item.id].model_copy(deep=True)
        question.section = letter
        result.section(letter).questions.append(question)

    return result


def _move(questions: List[Question], source: Section, target: Section) -> None:
    moving = {id(q) for q in questions}
    for question in questions:
        question.section = target.name
        target.questions.append(question)
    source.questions = [q for q in source.questions if id(q) not in moving]


def rebalance(structure: ExamStructure) -> ExamStructure:
    """Fix the two imbalances the categorizer knows how to repair.

    - Section A empty: pull multiple-choice or option-bearing questions from B and C
    - Section B empty while C is not: pull short open-ended questions from C

    Other imbalances (e.g. both A and B empty with no candidates) are left as is.
    """
    section_a = structure.section("A")
    section_b = structure.section("B")
    section_c = structure.section("C")

    if not section_a.questions:
        for source in (section_b, section_c):
            candidates = [q for q in source.questions if q.is_multiple_choice]
            if candidates:
                logger.info(
                    "Moving %d multiple choice questions from Section %s to Section A",
                    len(candidates), source.name,
                )
                _move(candidates, source, section_a)

    if not section_b.questions and section_c.questions:
        candidates = [
            q for q in section_c.questions
            if q.type == "open-ended" and len(q.text) < LONG_QUESTION_CHARS
        ]
        if candidates:
            logger.info("Moving %d shorter questions from Section C to Section B", len(candidates))
            _move(candidates, section_c, section_b)

    # Multiple choice always belongs to A, whatever the model answered
    for source in (section_b, section_c):
        stray = [q for q in source.questions if q.type == "multiple-choice"]
        if stray:
            _move(stray, source, section_a)

    return structure


async def categorize_questions_with_ai(
    structure: ExamStructure,
    *,
    client: Optional[genai.Client] = None,
    settings: Optional[Settings] = None,
) -> ExamStructure:
    """Re-categorize every question into sections A/B/C with Gemini.

    Never raises. When Gemini is unavailable every batch falls back to the
    heuristic; on an unexpected internal error the input is returned as is.

    Args:
        structure: Structure produced by the heuristic pass
        client: Gemini client (created from settings when omitted)
        settings: Settings override (default: get_settings())

    Returns:
        A new ExamStructure; the input structure is not modified.
    """
    try:
        settings = settings or get_settings()
        items = flatten_for_categorization(structure)
        if not items:
            logger.info("No questions to categorize")
            return structure

        if client is None:
            try:
                client = get_gemini_client()
            except Exception as e:
                logger.warning("Gemini client unavailable (%s); categorizing with heuristics", e)

        batches = _split_batches(items, settings.ai_batch_size)
        logger.info(
            "Split %d questions into %d batches of max %d questions each",
            len(items), len(batches), settings.ai_batch_size,
        )

        categorization: BatchCategorizationResult = {}
        for index, batch in enumerate(batches):
            categorization.update(await _categorize_batch(client, batch, index + 1, settings))
            if client is not None and index < len(batches) - 1:
                await asyncio.sleep(settings.ai_batch_delay_seconds)

        result = rebalance(_assign_sections(structure, items, categorization))
        logger.info(
            "Final question distribution after AI categorization: %s",
            ", ".join(f"Section {name}: {count}" for name, count in result.counts().items()),
        )
        return result
    except Exception:
        logger.exception("Error categorizing questions with AI; keeping original categorization")
        return structure
