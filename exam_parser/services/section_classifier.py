"""Four-layer cascade section header classifier.

Decides whether a line opens a new exam section (A/B/C) and which one,
using layers evaluated in strict precedence (first match wins):

1. Structural letter/number in a header-shaped line ("SECTION B", "PART 2")
2. Question-type vocabulary in the line ("MULTIPLE CHOICE" => A)
3. Lookahead at the next few lines (option markers, marks, essay words)
4. Default progression from the previous section (A -> B -> C -> A)

Layers 3 and 4 only apply to lines that say SECTION or PART.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from exam_parser.models.exam import SectionName

logger = logging.getLogger(__name__)

LOOKAHEAD_LINES = 4

_DASHES = "-:–—"
_UNIT = r"(?:MARKS?|POINTS?|PTS?|M|QUESTIONS?|MINUTES?|HOURS?|MINS?|HRS?)"
_ANNOTATION = rf"[\(\[]\s*\d+\s*{_UNIT}(?:\s*,\s*\d+\s*{_UNIT})*\s*[\)\]]"
_TYPE_VOCABULARY = (
    r"(?:MULTIPLE\s+CHOICE|SHORT\s+ANSWER|LONG\s+ANSWER|ESSAY|STRUCTURED|"
    r"OBJECTIVE|THEORY|PRACTICAL)"
)
# Letters and roman numerals are uppercase only; "Part a" and "Part ii" are sub-questions
_LABEL = r"(?:(?-i:[A-C]|III|II|I)|[1-3]|ONE|TWO|THREE)"


@dataclass(frozen=True)
class SectionDecision:
    """Outcome of classifying a section header line."""
    letter: SectionName
    description: Optional[str]
    method: str


@dataclass(frozen=True)
class HeaderContext:
    """Inputs shared by every letter-resolution layer."""
    line: str
    prior_section: Optional[SectionName]
    lookahead: Sequence[str]


# ---------------------------------------------------------------------------
# Header shape detection
# ---------------------------------------------------------------------------

_HEADER_SHAPES: List[re.Pattern] = [
    # ----- SECTION A / ===== PART B / ***** SECTION C
    re.compile(r"^(?:_{3,}|={3,}|\*{3,}|-{3,})\s*(?:SECTION|PART)\b", re.IGNORECASE),
    # SECTION A, PART 2, SECTION ONE, PART II, SECTION: ..., SECTION (10 MARKS)
    re.compile(
        rf"^(?:SECTION|PART)(?:\s*{_LABEL}\b|\s*$|\s*[{_DASHES}]|\s*{_ANNOTATION})",
        re.IGNORECASE,
    ),
    # A on its own line, A (10 MARKS), A [10 MARKS]
    re.compile(r"^[A-C]\s*$"),
    re.compile(rf"^[A-C]\s*(?i:{_ANNOTATION})"),
    # A - MULTIPLE CHOICE, B: SHORT ANSWER, C. ESSAY QUESTIONS (40 MARKS)
    re.compile(
        rf"^[A-C]\s*[{_DASHES}.]\s*(?i:{_TYPE_VOCABULARY}(?:\s+(?:QUESTIONS?|SECTION))?)"
        rf"\s*(?i:{_ANNOTATION})?\s*$"
    ),
    # MULTIPLE CHOICE, SHORT ANSWER QUESTIONS, ESSAY, LONG ANSWER
    re.compile(r"^(?:MULTIPLE\s+CHOICE|SHORT\s+ANSWER|LONG\s+ANSWER|ESSAY)\b", re.IGNORECASE),
    # OBJECTIVE QUESTIONS, THEORY SECTION, PRACTICAL QUESTIONS, STRUCTURED QUESTIONS
    re.compile(r"^(?:OBJECTIVE|THEORY|PRACTICAL|STRUCTURED)\s+(?:QUESTIONS|SECTION)\b", re.IGNORECASE),
]


def is_header_shaped(line: str) -> bool:
    """Return True if the line looks like a section header."""
    return any(pattern.search(line) for pattern in _HEADER_SHAPES)


# ---------------------------------------------------------------------------
# Layer 1 - Structural letter or number
# ---------------------------------------------------------------------------

_LETTER_PATTERNS: List[re.Pattern] = [
    re.compile(r"(?:SECTION|PART)\s*([A-C])\b", re.IGNORECASE),
    re.compile(rf"^([A-C])(?:\s*$|\s*[{_DASHES}.\(\[])"),
]

_NUMBER_PATTERNS: List[Tuple[re.Pattern, Dict[str, SectionName]]] = [
    (re.compile(r"(?:SECTION|PART)\s*([1-3])\b", re.IGNORECASE), {"1": "A", "2": "B", "3": "C"}),
    (re.compile(r"(?:SECTION|PART)\s+(ONE|TWO|THREE)\b", re.IGNORECASE), {"ONE": "A", "TWO": "B", "THREE": "C"}),
    (re.compile(r"(?:SECTION|PART)\s+(III|II|I)\b", re.IGNORECASE), {"I": "A", "II": "B", "III": "C"}),
]


def _letter_from_structure(context: HeaderContext) -> Optional[SectionName]:
    for pattern in _LETTER_PATTERNS:
        match = pattern.search(context.line)
        if match:
            return match.group(1).upper()  # type: ignore[return-value]

    for pattern, mapping in _NUMBER_PATTERNS:
        match = pattern.search(context.line)
        if match:
            return mapping[match.group(1).upper()]

    return None


# ---------------------------------------------------------------------------
# Layer 2 - Question-type vocabulary
# ---------------------------------------------------------------------------

_KEYWORD_LETTERS: List[Tuple[re.Pattern, SectionName]] = [
    (
        re.compile(
            r"MULTIPLE\s+CHOICE|OBJECTIVE|MCQ|CHOOSE\s+(?:THE\s+)?(?:CORRECT|RIGHT|BEST)\s+(?:ANSWER|OPTION)|"
            r"TRUE\s+(?:OR|AND)\s+FALSE",
            re.IGNORECASE,
        ),
        "A",
    ),
    (
        re.compile(
            r"SHORT\s+ANSWER|BRIEF\s+ANSWER|THEORY|ANSWER\s+BRIEFLY|FILL\s+IN|"
            r"COMPLETE\s+THE\s+FOLLOWING|DEFINE|EXPLAIN\s+BRIEFLY|LIST|IDENTIFY",
            re.IGNORECASE,
        ),
        "B",
    ),
    (
        re.compile(
            r"ESSAY|LONG\s+ANSWER|STRUCTURED|PRACTICAL|DETAILED|COMPREHENSIVE|EXPLAIN\s+IN\s+DETAIL|"
            r"DISCUSS|ANALY[SZ]E|EVALUATE|COMPARE\s+AND\s+CONTRAST",
            re.IGNORECASE,
        ),
        "C",
    ),
]


def _letter_from_keywords(context: HeaderContext) -> Optional[SectionName]:
    for pattern, letter in _KEYWORD_LETTERS:
        if pattern.search(context.line):
            return letter
    return None


# ---------------------------------------------------------------------------
# Layer 3 - Lookahead at the following lines
# ---------------------------------------------------------------------------

_SECTION_WORD = re.compile(r"\b(?:SECTION|PART)\b", re.IGNORECASE)
_OPTION_MARKER = re.compile(r"\([a-d]\)|\b[a-d]\)")
_MARKS_ONLY = re.compile(r"\(\d+\s*marks?\)", re.IGNORECASE)


def _letter_from_lookahead(context: HeaderContext) -> Optional[SectionName]:
    if not _SECTION_WORD.search(context.line):
        return None

    following = " ".join(context.lookahead[:LOOKAHEAD_LINES]).lower()

    if "multiple choice" in following or "choose" in following or _OPTION_MARKER.search(following):
        return "A"
    if (
        "short answer" in following
        or "briefly" in following
        or (_MARKS_ONLY.search(following) and "essay" not in following)
    ):
        return "B"
    if any(word in following for word in ("essay", "discuss", "explain in detail", "analyze", "analyse")):
        return "C"
    return None


# ---------------------------------------------------------------------------
# Layer 4 - Default progression
# ---------------------------------------------------------------------------

_NEXT_SECTION: Dict[Optional[str], SectionName] = {None: "A", "A": "B", "B": "C", "C": "A"}


def _letter_from_progression(context: HeaderContext) -> Optional[SectionName]:
    if not _SECTION_WORD.search(context.line):
        return None
    return _NEXT_SECTION[context.prior_section]


LETTER_RULES: List[Tuple[str, Callable[[HeaderContext], Optional[SectionName]]]] = [
    ("structural", _letter_from_structure),
    ("keyword", _letter_from_keywords),
    ("lookahead", _letter_from_lookahead),
    ("progression", _letter_from_progression),
]


# ---------------------------------------------------------------------------
# Description extraction
# ---------------------------------------------------------------------------

_DECORATION = re.compile(r"^[-_=*\s]{3,}|[-_=*\s]{3,}$")
_ANNOTATION_ONLY = re.compile(rf"^{_ANNOTATION}$", re.IGNORECASE)

_DESCRIPTION_PATTERNS: List[re.Pattern] = [
    re.compile(rf"[{_DASHES}]\s*(.+)"),
    re.compile(r"\(\d+\s*(?:MARKS|POINTS)\)\s*(.+)", re.IGNORECASE),
    re.compile(r"^(?:SECTION|PART)\s+[A-C1-3]\s+([^\(\[].*)", re.IGNORECASE),
    re.compile(r"^[A-C]\.\s+(.+)"),
]


def extract_description(line: str) -> Optional[str]:
    """Return the text following the header separator, if any."""
    cleaned = _DECORATION.sub("", line).strip()
    for pattern in _DESCRIPTION_PATTERNS:
        match = pattern.search(cleaned)
        if not match:
            continue
        description = match.group(1).strip()
        if description and not _ANNOTATION_ONLY.match(description):
            return description
    return None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def classify_section_header(
    line: str,
    prior_section: Optional[SectionName] = None,
    lookahead_lines: Sequence[str] = (),
) -> Optional[SectionDecision]:
    """Classify a line as a section header.

    Args:
        line: Stripped line of exam text.
        prior_section: Section in effect before this line (None at start).
        lookahead_lines: Lines following this one, used by layer 3.

    Returns:
        SectionDecision with the letter, optional description and the layer
        that resolved the letter, or None if the line is not a header.
    """
    if not is_header_shaped(line):
        return None

    context = HeaderContext(line=line, prior_section=prior_section, lookahead=lookahead_lines)
    for method, rule in LETTER_RULES:
        letter = rule(context)
        if letter is not None:
            decision = SectionDecision(letter=letter, description=extract_description(line), method=method)
            logger.debug("Section %s from %s rule: %r", letter, method, line)
            return decision

    return None


# ---------------------------------------------------------------------------
# NESA format pre-scan (informational)
# ---------------------------------------------------------------------------

_NESA_BANNERS: Dict[str, List[re.Pattern]] = {
    "A": [
        re.compile(rf"SECTION\s+A\s*[{_DASHES}]?\s*(?:MULTIPLE\s+CHOICE|OBJECTIVE)", re.IGNORECASE),
        re.compile(r"SECTION\s+A\s*\(\s*\d+\s*(?:MARKS|POINTS)\s*\)", re.IGNORECASE),
        re.compile(r"MULTIPLE\s+CHOICE\s+(?:QUESTIONS|SECTION)", re.IGNORECASE),
        re.compile(r"PART\s+A\s*:?\s*MULTIPLE\s+CHOICE", re.IGNORECASE),
    ],
    "B": [
        re.compile(rf"SECTION\s+B\s*[{_DASHES}]?\s*(?:SHORT\s+ANSWER|THEORY)", re.IGNORECASE),
        re.compile(r"SECTION\s+B\s*\(\s*\d+\s*(?:MARKS|POINTS)\s*\)", re.IGNORECASE),
        re.compile(r"SHORT\s+ANSWER\s+(?:QUESTIONS|SECTION)", re.IGNORECASE),
        re.compile(r"PART\s+B\s*:?\s*SHORT\s+ANSWER", re.IGNORECASE),
    ],
    "C": [
        re.compile(rf"SECTION\s+C\s*[{_DASHES}]?\s*(?:STRUCTURED|ESSAY|LONG\s+ANSWER)", re.IGNORECASE),
        re.compile(r"SECTION\s+C\s*\(\s*\d+\s*(?:MARKS|POINTS)\s*\)", re.IGNORECASE),
        re.compile(r"(?:STRUCTURED|ESSAY|LONG\s+ANSWER)\s+(?:QUESTIONS|SECTION)", re.IGNORECASE),
        re.compile(r"PART\s+C\s*:?\s*(?:STRUCTURED|ESSAY)", re.IGNORECASE),
    ],
}


def detect_nesa_format(text: str) -> Dict[str, bool]:
    """Report which standard NESA section banners appear anywhere in the text."""
    return {
        letter: any(pattern.search(text) for pattern in patterns)
        for letter, patterns in _NESA_BANNERS.items()
    }
