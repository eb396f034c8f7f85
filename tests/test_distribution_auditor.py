"""Tests for the section distribution audit."""

import pytest

from exam_parser.models.exam import ExamStructure, Question
from exam_parser.services.distribution_auditor import count_questions, needs_ai_categorization


def structure_with(a: int = 0, b: int = 0, c: int = 0) -> ExamStructure:
    structure = ExamStructure.empty()
    next_id = 0
    for name, count in (("A", a), ("B", b), ("C", c)):
        for _ in range(count):
            structure.section(name).questions.append(
                Question(id=next_id, text=f"Question {next_id}", section=name)
            )
            next_id += 1
    return structure


def test_count_questions():
    counts = count_questions(structure_with(a=2, b=1, c=4))

    assert (counts.a, counts.b, counts.c, counts.total) == (2, 1, 4, 7)
    assert counts.empty_sections == 0
    assert str(counts) == "Section A: 2, Section B: 1, Section C: 4"


@pytest.mark.parametrize("a,b,c", [
    (0, 0, 1),      # everything in C, whatever the count
    (0, 0, 20),
    (0, 2, 0),      # everything in B
    (11, 0, 0),     # everything in A on a long paper
    (10, 0, 0),     # two empty sections among 10 questions
])
def test_degenerate_distributions(a, b, c):
    assert needs_ai_categorization(structure_with(a, b, c)) is True


@pytest.mark.parametrize("a,b,c", [
    (0, 0, 0),      # nothing to categorize
    (5, 0, 0),      # short multiple-choice quiz
    (9, 0, 0),
    (3, 4, 0),
    (1, 1, 1),
    (9, 0, 1),
])
def test_acceptable_distributions(a, b, c):
    assert needs_ai_categorization(structure_with(a, b, c)) is False
