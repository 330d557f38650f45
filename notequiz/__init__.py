"""NoteQuiz: turn uploaded notes, pasted text and URLs into multiple-choice quizzes."""

__version__ = "0.1.0"
