import io
from typing import Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt

from .models import Question

LETTERS = ("A", "B", "C", "D")

LABELS = {
    "vi": {
        "question": "Câu {n}: ",
        "answer_key": "Đáp án & Giải thích",
        "default_title": "Đề thi trắc nghiệm",
        "title_prefix": "Trắc nghiệm: ",
        "untitled": "Nội dung tạo bởi AI",
        "filename": "de-thi-trac-nghiem.docx",
    },
    "en": {
        "question": "Question {n}: ",
        "answer_key": "Answer key & explanations",
        "default_title": "Multiple-choice quiz",
        "title_prefix": "Quiz: ",
        "untitled": "AI-generated content",
        "filename": "quiz.docx",
    },
}

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _labels(language: str) -> dict:
    return LABELS.get(language, LABELS["vi"])

def default_title(source_name: str | None, language: str = "vi") -> str:
    lb = _labels(language)
    return lb["title_prefix"] + (source_name or lb["untitled"])

def download_name(language: str = "vi") -> str:
    return _labels(language)["filename"]

def export_docx(questions: Sequence[Question], title: str | None = None, *, language: str = "vi") -> bytes:
    """
    Numbered questions with lettered options, then a page-broken answer key
    with explanations. Returns the .docx bytes.
    """
    if not questions:
        raise ValueError("no questions to export")
    lb = _labels(language)

    doc = Document()
    heading = doc.add_heading(title or lb["default_title"], level=0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    heading.paragraph_format.space_after = Pt(20)

    for n, q in enumerate(questions, start=1):
        p = doc.add_paragraph()
        p.paragraph_format.space_before = Pt(10)
        p.paragraph_format.space_after = Pt(5)
        run = p.add_run(lb["question"].format(n=n) + q.question_text)
        run.bold = True
        run.font.size = Pt(12)

        for letter, opt in zip(LETTERS, q.options):
            op = doc.add_paragraph()
            op.paragraph_format.left_indent = Inches(0.5)
            op.paragraph_format.space_after = Pt(2.5)
            op.add_run(f"{letter}. {opt}").font.size = Pt(11)

    doc.add_page_break()
    doc.add_heading(lb["answer_key"], level=1)
    for n, q in enumerate(questions, start=1):
        p = doc.add_paragraph()
        p.paragraph_format.space_after = Pt(5)
        p.add_run(f"{n}. {LETTERS[q.correct_answer_index]}").bold = True
        p.add_run(f" - {q.explanation}").italic = True

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()
