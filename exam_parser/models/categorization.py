"""Models used while re-categorizing questions with Gemini.

The categorizer works on a flattened side table of the exam structure so
that bookkeeping such as the origin section never leaks into ``Question``.
"""

from typing import Dict, List

from pydantic import BaseModel, Field

from exam_parser.models.exam import ExamStructure, Question, QuestionType, SectionName

# questionId -> section letter, produced per batch and merged afterwards
BatchCategorizationResult = Dict[int, SectionName]


class CategorizationItem(BaseModel):
    """A question as sent to the categorization capability."""
    id: int
    text: str
    type: QuestionType
    options: List[str] = Field(default_factory=list)
    current_section: SectionName = Field(
        description="Section the question sat in when categorization started"
    )

    @classmethod
    def from_question(cls, question: Question, current_section: SectionName) -> "CategorizationItem":
        return cls(
            id=question.id,
            text=question.text,
            type=question.type,
            options=[option.text for option in question.options],
            current_section=current_section,
        )


def flatten_for_categorization(structure: ExamStructure) -> List[CategorizationItem]:
    """Flatten every question, tagging it with the section it currently sits in."""
    return [
        CategorizationItem.from_question(question, section.name)
        for section in structure.sections
        for question in section.questions
    ]
