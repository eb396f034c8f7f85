"""
Line-by-line question segmentation.

A single pass folds every non-empty line through ``process_line`` with an
explicit ``ScanState``. Each line is tried, in order, as:

0. The next a-d option of the active multiple-choice question
1. A section header (resets the active question)
2. A question start ("1.", "Question 1:", "Q1:", "1)", "(1)")
3. An option of the active multiple-choice question

Questions are appended to their target section the moment they are
recognized, so ids follow their order of appearance in the source text.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from exam_parser.models.exam import DEFAULT_POINTS, ExamStructure, Question, SectionName
from exam_parser.services.option_collector import collect_option, has_option_marker, is_next_option
from exam_parser.services.section_classifier import (
    LOOKAHEAD_LINES,
    classify_section_header,
    is_header_shaped,
)

logger = logging.getLogger(__name__)

TYPE_LOOKAHEAD_LINES = 5
SHORT_QUESTION_CHARS = 100
LONG_QUESTION_CHARS = 200

_QUESTION_PATTERNS: List[re.Pattern] = [
    re.compile(r"^(\d+)\.\s+(.+)"),                                # 1. Question text
    re.compile(r"^Question\s+(\d+)\s*[:.]?\s+(.+)", re.IGNORECASE),  # Question 1: Question text
    re.compile(r"^Q\.?\s*(\d+)\s*[:.]?\s+(.+)", re.IGNORECASE),    # Q1: Question text
    re.compile(r"^(\d+)\s*\)\s+(.+)"),                             # 1) Question text
    re.compile(r"^\((\d+)\)\s+(.+)"),                              # (1) Question text
]

SHORT_ANSWER_VOCABULARY = re.compile(
    r"\b(?:define|list|name|identify|state|what is|explain briefly)\b", re.IGNORECASE
)
ESSAY_VOCABULARY = re.compile(
    r"\b(?:discuss|analy[sz]e|evaluate|explain in detail|compare|contrast|essay|elaborate)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ScanState:
    """State carried from one line to the next during segmentation."""
    current_section: Optional[SectionName] = None
    current_question: Optional[Question] = None
    in_options: bool = False


def match_question_start(line: str) -> Optional[Tuple[int, str]]:
    """Return (question number, question text) if the line starts a question."""
    for pattern in _QUESTION_PATTERNS:
        match = pattern.match(line)
        if match:
            number = int(match.group(1))
            text = match.group(2).strip()
            if number and text:
                return number, text
            return None
    return None


def _type_lookahead(lines: Sequence[str], index: int) -> List[str]:
    """Lines after ``index`` that may hold options for the question at ``index``.

    The window stops early at the next question start or header so options of
    a later question are never attributed to this one. Options in a-d order
    keep the window open even when they look like lettered headers.
    """
    window: List[str] = []
    options_seen = 0
    for line in lines[index + 1:index + 1 + TYPE_LOOKAHEAD_LINES]:
        if is_next_option(line, options_seen):
            options_seen += 1
        elif match_question_start(line) or is_header_shaped(line):
            break
        window.append(line)
    return window


def infer_target_section(text: str, current_section: Optional[SectionName]) -> SectionName:
    """Pick a section for an open-ended question from its length and wording."""
    if len(text) < SHORT_QUESTION_CHARS or SHORT_ANSWER_VOCABULARY.search(text):
        return "B"
    if ESSAY_VOCABULARY.search(text) or len(text) > LONG_QUESTION_CHARS:
        return "C"
    return current_section or "C"


def _start_question(
    state: ScanState,
    structure: ExamStructure,
    lines: Sequence[str],
    index: int,
    number: int,
    text: str,
) -> ScanState:
    if any(has_option_marker(line) for line in _type_lookahead(lines, index)):
        question_type = "multiple-choice"
        target: SectionName = "A"
    else:
        question_type = "open-ended"
        target = infer_target_section(text, state.current_section)

    question = Question(
        id=structure.total_questions(),
        text=text,
        type=question_type,
        options=[],
        correct_answer="",
        points=DEFAULT_POINTS[target],
        section=target,
    )
    structure.section(target).questions.append(question)
    logger.debug("Added question %d to Section %s: %.50s", number, target, text)

    return replace(
        state,
        current_question=question,
        in_options=question_type == "multiple-choice",
    )


def process_line(
    state: ScanState,
    structure: ExamStructure,
    lines: Sequence[str],
    index: int,
) -> ScanState:
    """Apply one line to the scan state, mutating ``structure`` as needed.

    Args:
        state: State after the previous line.
        structure: Exam structure being built.
        lines: All non-empty stripped lines (for lookahead).
        index: Position of the line to process.

    Returns:
        The state after this line.
    """
    line = lines[index]
    question = state.current_question

    if (
        state.in_options
        and question is not None
        and question.type == "multiple-choice"
        and is_next_option(line, len(question.options))
    ):
        collect_option(question, line)
        return state

    decision = classify_section_header(
        line,
        prior_section=state.current_section,
        lookahead_lines=lines[index + 1:index + 1 + LOOKAHEAD_LINES],
    )
    if decision is not None:
        if decision.description:
            structure.section(decision.letter).description = decision.description
        logger.debug("Found Section %s (%s) from line: %r", decision.letter, decision.method, line)
        return ScanState(current_section=decision.letter, current_question=None, in_options=False)

    question_start = match_question_start(line)
    if question_start is not None:
        number, text = question_start
        return _start_question(state, structure, lines, index, number, text)

    if state.in_options and question is not None and question.type == "multiple-choice":
        collect_option(question, line)

    return state


def split_lines(text: str) -> List[str]:
    """Split text into stripped, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def segment_text(text: str) -> ExamStructure:
    """Run the heuristic single-pass segmentation over a whole document.

    Deterministic: the same text always yields the same structure.
    """
    structure = ExamStructure.empty()
    lines = split_lines(text)
    logger.info("Processing %d lines of text", len(lines))

    state = ScanState()
    for index in range(len(lines)):
        state = process_line(state, structure, lines, index)

    return structure
