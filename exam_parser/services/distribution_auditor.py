"""Decide whether a heuristic section distribution needs AI re-categorization.

The trigger is deliberately conservative: small or naturally skewed exams
are left alone, only clearly degenerate distributions pay for Gemini calls.
"""

import logging
from dataclasses import dataclass

from exam_parser.models.exam import ExamStructure

logger = logging.getLogger(__name__)

# All questions in section A is plausible for a short quiz, not a long paper
SINGLE_SECTION_A_THRESHOLD = 10
# Two empty sections are only suspicious once there are this many questions
EMPTY_SECTIONS_THRESHOLD = 10


@dataclass(frozen=True)
class DistributionCounts:
    a: int
    b: int
    c: int

    @property
    def total(self) -> int:
        return self.a + self.b + self.c

    @property
    def empty_sections(self) -> int:
        return sum(1 for count in (self.a, self.b, self.c) if count == 0)

    def __str__(self) -> str:
        return f"Section A: {self.a}, Section B: {self.b}, Section C: {self.c}"


def count_questions(structure: ExamStructure) -> DistributionCounts:
    counts = structure.counts()
    return DistributionCounts(a=counts["A"], b=counts["B"], c=counts["C"])


def needs_ai_categorization(structure: ExamStructure) -> bool:
    """Return True when the distribution is degenerate.

    Degenerate means every question collapsed into C or B (any count), into
    A with more than 10 questions, or at least two sections are empty among
    10 or more questions.
    """
    counts = count_questions(structure)
    total = counts.total

    collapsed = total > 0 and (
        counts.c == total
        or counts.b == total
        or (counts.a == total and total > SINGLE_SECTION_A_THRESHOLD)
    )
    lopsided = total >= EMPTY_SECTIONS_THRESHOLD and counts.empty_sections >= 2

    if collapsed or lopsided:
        logger.info("Question distribution is unbalanced (%s)", counts)
        return True
    return False
