"""Pydantic models for extracted exam structures.

An exam is always represented with exactly three sections, A (multiple
choice), B (short answer) and C (long answer / essay), in that order.
Field aliases keep the camelCase JSON contract (``correctAnswer``,
``isCorrect``) used by the AI structured extraction path and API clients.
"""

from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

SectionName = Literal["A", "B", "C"]
QuestionType = Literal["multiple-choice", "open-ended"]

SECTION_NAMES: tuple[SectionName, ...] = ("A", "B", "C")

DEFAULT_SECTION_DESCRIPTIONS: Dict[str, str] = {
    "A": "Multiple Choice Questions",
    "B": "Short Answer Questions",
    "C": "Long Answer Questions",
}

# Heuristic path only; AI structured extraction keeps the points it is given.
DEFAULT_POINTS: Dict[str, int] = {"A": 1, "B": 5, "C": 10}


class ExamModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)


class Option(ExamModel):
    """A single option of a multiple-choice question."""
    text: str = Field(description="Option text without its letter marker")
    is_correct: bool = Field(
        default=False,
        alias="isCorrect",
        description="Only ever set by the AI structured extraction path"
    )


class Question(ExamModel):
    """A single extracted question."""
    id: int = Field(description="Global insertion-order id, never reused")
    text: str = Field(description="Question text")
    type: QuestionType = Field(default="open-ended")
    options: List[Option] = Field(default_factory=list)
    correct_answer: str = Field(default="", alias="correctAnswer")
    points: int = Field(default=10)
    section: SectionName = Field(description="Section the question currently belongs to")

    @property
    def is_multiple_choice(self) -> bool:
        return self.type == "multiple-choice" or len(self.options) > 0


class Section(ExamModel):
    """One of the three fixed exam sections."""
    name: SectionName
    description: str = ""
    questions: List[Question] = Field(default_factory=list)


class ExamStructure(ExamModel):
    """Root output of every extraction path."""
    sections: List[Section]

    @model_validator(mode="after")
    def check_sections(self) -> "ExamStructure":
        names = tuple(section.name for section in self.sections)
        if names != SECTION_NAMES:
            raise ValueError(
                f"Exam structure must contain sections A, B, C in order (got: {list(names)})"
            )
        return self

    @classmethod
    def empty(cls) -> "ExamStructure":
        """Build the canonical three empty sections with default descriptions."""
        return cls(
            sections=[
                Section(name=name, description=DEFAULT_SECTION_DESCRIPTIONS[name])
                for name in SECTION_NAMES
            ]
        )

    def section(self, name: str) -> Section:
        for section in self.sections:
            if section.name == name:
                return section
        raise KeyError(f"Unknown section: {name}")

    def all_questions(self) -> List[Question]:
        return [q for section in self.sections for q in section.questions]

    def total_questions(self) -> int:
        return sum(len(section.questions) for section in self.sections)

    def counts(self) -> Dict[str, int]:
        return {section.name: len(section.questions) for section in self.sections}

    def to_json_dict(self) -> Dict:
        """Serialize with camelCase aliases, the shape API clients expect."""
        return self.model_dump(by_alias=True)
