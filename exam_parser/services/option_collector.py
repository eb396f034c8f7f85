"""Multiple-choice option line recognition.

Options are only collected while a multiple-choice question is active.
Correctness cannot be read from an option line, so every option collected
here has ``is_correct=False``; only AI structured extraction sets it.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from exam_parser.models.exam import Option, Question

OPTION_LETTERS = "abcd"

_OPTION_PATTERNS: List[re.Pattern] = [
    re.compile(r"^\(([a-d])\)\s*(.+)", re.IGNORECASE),                 # (a) Option text
    re.compile(r"^([a-d])\)\s*(.+)", re.IGNORECASE),                   # a) Option text
    re.compile(r"^([a-d])\.\s+(.+)", re.IGNORECASE),                   # a. Option text
    re.compile(r"^Option\s+([a-d])\s*[:.]?\s+(.+)", re.IGNORECASE),    # Option a: Option text
]

# Used when looking ahead from a question line to decide if it is multiple choice
_OPTION_HINT = re.compile(r"(?:^|\s)\(?[a-d]\)|(?:^|\s)[a-d]\.\s", re.IGNORECASE)


@dataclass(frozen=True)
class OptionLine:
    letter: str
    text: str


def match_option_line(line: str) -> Optional[OptionLine]:
    """Return the option letter and text if the line is an option line."""
    for pattern in _OPTION_PATTERNS:
        match = pattern.match(line)
        if match:
            text = match.group(2).strip()
            if text:
                return OptionLine(letter=match.group(1).lower(), text=text)
    return None


def has_option_marker(line: str) -> bool:
    """Return True if the line contains an a-d option marker anywhere."""
    return _OPTION_HINT.search(line) is not None


def is_next_option(line: str, collected: int) -> bool:
    """Return True if ``line`` is the option that follows ``collected`` earlier ones.

    "A. Structured Query Language" after a question is its first option even
    though it also looks like a lettered section header.
    """
    option_line = match_option_line(line)
    if option_line is None or collected >= len(OPTION_LETTERS):
        return False
    return option_line.letter == OPTION_LETTERS[collected]


def collect_option(question: Question, line: str) -> bool:
    """Append the option on ``line`` to ``question``.

    Returns:
        True if the line was an option line and an option was appended.
    """
    option_line = match_option_line(line)
    if option_line is None:
        return False
    question.options.append(Option(text=option_line.text, is_correct=False))
    return True
