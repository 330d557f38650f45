"""
Core data models: questions, quiz configuration and input sources.
"""
from dataclasses import dataclass, field, replace
from enum import Enum


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value) -> "Difficulty":
        """Accepts 'Easy' / 'easy' / Difficulty.EASY. Raises ValueError otherwise."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        for d in cls:
            if d.value.lower() == key:
                return d
        raise ValueError(f"invalid difficulty: {value!r}")


class SourceType(str, Enum):
    FILE = "file"
    URL = "url"
    TEXT = "text"


@dataclass(frozen=True)
class Question:
    """A validated multiple-choice question. Only the generation client builds these."""
    id: str
    question_text: str
    options: tuple[str, ...]
    correct_answer_index: int
    explanation: str

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_answer_index]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "questionText": self.question_text,
            "options": list(self.options),
            "correctAnswerIndex": self.correct_answer_index,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class QuizConfig:
    number_of_questions: int = 5
    difficulty: Difficulty = Difficulty.MEDIUM
    prevent_duplicates: bool = True
    excluded_content: str | None = None
    excluded_file_name: str | None = None

    def __post_init__(self):
        if self.number_of_questions < 1:
            raise ValueError("number_of_questions must be >= 1")

    def with_changes(self, **changes) -> "QuizConfig":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "numberOfQuestions": self.number_of_questions,
            "difficulty": self.difficulty.value,
            "preventDuplicates": self.prevent_duplicates,
            "excludedFileName": self.excluded_file_name,
            "hasExcludedContent": bool(self.excluded_content),
        }


@dataclass(frozen=True)
class Source:
    id: str
    type: SourceType
    name: str
    content: str = field(repr=False)

    def to_dict(self) -> dict:
        # content itself stays server-side; the UI only needs its size
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "chars": len(self.content),
        }
