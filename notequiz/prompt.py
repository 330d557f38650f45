from typing import Sequence

from .models import Difficulty, QuizConfig

DEFAULT_SOURCE_CHAR_LIMIT = 30_000

# Per-language wording. Every language must provide every key.
STRINGS = {
    "vi": {
        "role": (
            "Bạn là người soạn đề thi trắc nghiệm nghiêm túc. Hãy tạo đúng {n} câu hỏi "
            "trắc nghiệm dựa trên tài liệu nguồn bên dưới."
        ),
        "difficulty": "Độ khó: {label}. {guidance}",
        "labels": {
            Difficulty.EASY: "Dễ",
            Difficulty.MEDIUM: "Trung bình",
            Difficulty.HARD: "Khó",
        },
        "guidance": {
            Difficulty.EASY: "Ưu tiên các khái niệm cốt lõi; câu hỏi ngắn gọn, rõ ràng, không đánh đố.",
            Difficulty.MEDIUM: "Câu hỏi có độ thử thách vừa phải và bao quát nhiều phần khác nhau của tài liệu.",
            Difficulty.HARD: "Câu hỏi đòi hỏi suy luận nhiều bước; các phương án nhiễu hợp lý và dễ gây nhầm lẫn.",
        },
        "rules": "Quy tắc:",
        "source_only": (
            "KHÔNG sử dụng kiến thức bên ngoài. Đáp án phải tìm thấy trực tiếp trong tài liệu nguồn."
        ),
        "source_web": (
            "Chỉ sử dụng tài liệu nguồn và nội dung của các URL được liệt kê trong đó; được phép "
            "dùng công cụ tìm kiếm web để đọc các URL này. KHÔNG sử dụng kiến thức bên ngoài khác."
        ),
        "count": (
            "Nếu tài liệu quá ngắn để tạo đủ {n} câu hỏi, hãy tạo nhiều nhất có thể "
            "(tối thiểu 1 câu)."
        ),
        "options": "Mỗi câu hỏi phải có chính xác 4 phương án trả lời và chỉ một phương án đúng.",
        "explanation": "Cung cấp lời giải thích ngắn gọn vì sao đáp án đó đúng, dựa trên tài liệu nguồn.",
        "language": "Ngôn ngữ đầu ra: Tiếng Việt.",
        "format": (
            "Trả về một đối tượng JSON có khóa \"questions\" là một mảng; mỗi phần tử gồm "
            "questionText, options (4 chuỗi), correctAnswerIndex (0-3) và explanation."
        ),
        "avoid_header": "KHÔNG LẶP LẠI:",
        "avoid_history": (
            "Các câu hỏi sau đã được tạo trước đó. Không lặp lại chúng và không hỏi lại cùng "
            "một ý theo cách tương tự:"
        ),
        "avoid_excluded": "Nội dung sau đã được sử dụng{file}. Không tạo câu hỏi trùng với nội dung này:",
        "avoid_file": " (tệp: {name})",
        "source": "Tài liệu nguồn:",
    },
    "en": {
        "role": (
            "You are a strict multiple-choice exam writer. Create exactly {n} multiple-choice "
            "questions based on the source material below."
        ),
        "difficulty": "Difficulty: {label}. {guidance}",
        "labels": {
            Difficulty.EASY: "Easy",
            Difficulty.MEDIUM: "Medium",
            Difficulty.HARD: "Hard",
        },
        "guidance": {
            Difficulty.EASY: "Focus on core concepts; keep questions short and clear, with no trick questions.",
            Difficulty.MEDIUM: "Make questions appropriately challenging and spread them across the material.",
            Difficulty.HARD: "Require multi-step reasoning; distractors should be plausible common misconceptions.",
        },
        "rules": "Rules:",
        "source_only": (
            "Do NOT use outside knowledge. Every answer must be found directly in the source material."
        ),
        "source_web": (
            "Use only the source material and the content of the URLs listed in it; you may use "
            "web search to read those URLs. Do NOT use any other outside knowledge."
        ),
        "count": (
            "If the material is too short for {n} questions, write as many as possible "
            "(at least 1)."
        ),
        "options": "Each question must have exactly 4 answer options with exactly one correct option.",
        "explanation": "Give a short explanation of why the correct option is right, based on the source material.",
        "language": "Output language: English.",
        "format": (
            "Return a JSON object whose \"questions\" key holds an array; each element has "
            "questionText, options (4 strings), correctAnswerIndex (0-3) and explanation."
        ),
        "avoid_header": "DO NOT REPEAT:",
        "avoid_history": (
            "The following questions were already generated. Do not repeat them or ask about "
            "the same point in a similar way:"
        ),
        "avoid_excluded": "The following content was already used{file}. Do not create questions that duplicate it:",
        "avoid_file": " (file: {name})",
        "source": "Source material:",
    },
}


def truncate_source(text: str, max_chars: int) -> str:
    # hard cut at the character boundary
    return (text or "")[:max(0, int(max_chars))]

def difficulty_label(difficulty: Difficulty, language: str = "vi") -> str:
    return _strings(language)["labels"][Difficulty.parse(difficulty)]

def _strings(language: str) -> dict:
    try:
        return STRINGS[language]
    except KeyError:
        raise ValueError(f"unsupported output language: {language!r}") from None

def _avoid_section(s: dict, config: QuizConfig, previous_questions: Sequence[str]) -> str:
    """The 'do not repeat' block, or '' when there is nothing to avoid."""
    if not config.prevent_duplicates:
        return ""
    excluded = config.excluded_content or ""
    if not previous_questions and not excluded.strip():
        return ""

    parts = [s["avoid_header"]]
    if previous_questions:
        lines = [f"{i}. {q}" for i, q in enumerate(previous_questions, start=1)]
        parts.append(s["avoid_history"] + "\n" + "\n".join(lines))
    if excluded.strip():
        file_note = s["avoid_file"].format(name=config.excluded_file_name) if config.excluded_file_name else ""
        parts.append(s["avoid_excluded"].format(file=file_note) + f'\n"""\n{excluded}\n"""')
    return "\n\n".join(parts)

def build_prompt(
    text_context: str,
    config: QuizConfig,
    previous_questions: Sequence[str] = (),
    *,
    max_chars: int = DEFAULT_SOURCE_CHAR_LIMIT,
    language: str = "vi",
    web_search: bool = False,
) -> str:
    """
    Render the full instruction for one generation call. Pure: same inputs, same string.
    """
    s = _strings(language)
    n = int(config.number_of_questions)
    d = Difficulty.parse(config.difficulty)

    rules = [
        s["source_web"] if web_search else s["source_only"],
        s["count"].format(n=n),
        s["options"],
        s["explanation"],
        s["language"],
        s["format"],
    ]
    rules_block = s["rules"] + "\n" + "\n".join(f"{i}. {r}" for i, r in enumerate(rules, start=1))

    sections = [
        s["role"].format(n=n),
        s["difficulty"].format(label=s["labels"][d], guidance=s["guidance"][d]),
        rules_block,
    ]
    avoid = _avoid_section(s, config, list(previous_questions))
    if avoid:
        sections.append(avoid)
    sections.append(f'{s["source"]}\n"""\n{truncate_source(text_context, max_chars)}\n"""')
    return "\n\n".join(sections) + "\n"
