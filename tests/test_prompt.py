"""
Unit tests for the prompt builder.
"""

import pytest

from notequiz.generation import RESPONSE_FORMAT
from notequiz.models import Difficulty, QuizConfig
from notequiz.prompt import STRINGS, build_prompt, difficulty_label, truncate_source

SOURCE = "--- TEXT: notes ---\nThe capital of Vietnam is Hanoi."


class TestBuildPrompt:
    """Contract elements every rendered prompt must carry."""

    def test_build_when_same_inputs_then_same_string(self):
        cfg = QuizConfig(number_of_questions=3, difficulty=Difficulty.HARD)
        history = ["Q one?", "Q two?"]

        first = build_prompt(SOURCE, cfg, history, language="en")
        second = build_prompt(SOURCE, cfg, list(history), language="en")

        assert first == second

    def test_build_when_count_given_then_states_exact_count_and_minimum(self):
        prompt = build_prompt(SOURCE, QuizConfig(number_of_questions=7), language="en")

        assert "exactly 7 multiple-choice questions" in prompt
        assert "too short for 7 questions" in prompt
        assert "(at least 1)" in prompt

    def test_build_when_hard_then_difficulty_label_present(self):
        prompt = build_prompt(SOURCE, QuizConfig(difficulty=Difficulty.HARD), language="vi")

        assert "Độ khó: Khó." in prompt

    def test_build_then_requires_four_options_and_explanation(self):
        prompt = build_prompt(SOURCE, QuizConfig(), language="en")

        assert "exactly 4 answer options" in prompt
        assert "explanation of why the correct option is right" in prompt

    def test_build_when_no_urls_then_source_only_rule(self):
        prompt = build_prompt(SOURCE, QuizConfig(), language="en")

        assert STRINGS["en"]["source_only"] in prompt
        assert STRINGS["en"]["source_web"] not in prompt

    def test_build_when_web_search_then_search_rule(self):
        prompt = build_prompt(SOURCE, QuizConfig(), language="en", web_search=True)

        assert STRINGS["en"]["source_web"] in prompt
        assert STRINGS["en"]["source_only"] not in prompt

    def test_build_when_vietnamese_then_output_language_line(self):
        prompt = build_prompt(SOURCE, QuizConfig(), language="vi")

        assert "Ngôn ngữ đầu ra: Tiếng Việt." in prompt

    @pytest.mark.parametrize("language", ["vi", "en"])
    def test_build_then_format_rule_names_questions_envelope(self, language):
        prompt = build_prompt(SOURCE, QuizConfig(), language=language)

        assert set(RESPONSE_FORMAT["json_schema"]["schema"]["required"]) == {"questions"}
        assert '"questions"' in prompt
        assert "JSON array" not in prompt

    def test_build_when_unknown_language_then_raises(self):
        with pytest.raises(ValueError, match="unsupported output language"):
            build_prompt(SOURCE, QuizConfig(), language="fr")


class TestDoNotRepeatSection:
    """The avoid-duplicates block is all-or-nothing."""

    HEADER = STRINGS["en"]["avoid_header"]

    def test_section_when_prevent_duplicates_false_then_absent(self):
        cfg = QuizConfig(prevent_duplicates=False, excluded_content="old quiz material")
        prompt = build_prompt(SOURCE, cfg, ["Earlier question?"], language="en")

        assert self.HEADER not in prompt
        assert "Earlier question?" not in prompt
        assert "old quiz material" not in prompt

    def test_section_when_nothing_to_avoid_then_absent(self):
        prompt = build_prompt(SOURCE, QuizConfig(prevent_duplicates=True), [], language="en")

        assert self.HEADER not in prompt

    def test_section_when_blank_exclusion_only_then_absent(self):
        cfg = QuizConfig(prevent_duplicates=True, excluded_content="   \n")
        prompt = build_prompt(SOURCE, cfg, [], language="en")

        assert self.HEADER not in prompt

    def test_section_when_history_then_every_question_in_order(self):
        history = ["Which river flows through Hanoi?", "When was Hanoi founded?", "Who founded Hanoi?"]
        prompt = build_prompt(SOURCE, QuizConfig(prevent_duplicates=True), history, language="en")

        assert self.HEADER in prompt
        positions = [prompt.index(f"{i}. {q}") for i, q in enumerate(history, start=1)]
        assert positions == sorted(positions)

    def test_section_when_excluded_content_then_verbatim_with_file_name(self):
        excluded = "1. What is 2+2?\nA. 3\nB. 4"
        cfg = QuizConfig(prevent_duplicates=True, excluded_content=excluded, excluded_file_name="old.docx")
        prompt = build_prompt(SOURCE, cfg, [], language="en")

        assert self.HEADER in prompt
        assert excluded in prompt
        assert "(file: old.docx)" in prompt

    def test_section_when_history_and_exclusion_then_history_first(self):
        cfg = QuizConfig(prevent_duplicates=True, excluded_content="EXCLUDED-BLOCK")
        prompt = build_prompt(SOURCE, cfg, ["HISTORY-QUESTION"], language="en")

        assert prompt.index("HISTORY-QUESTION") < prompt.index("EXCLUDED-BLOCK")

    def test_section_comes_before_source_text(self):
        prompt = build_prompt(SOURCE, QuizConfig(), ["Earlier?"], language="en")

        assert prompt.index(self.HEADER) < prompt.index(SOURCE)


class TestTruncation:
    """Source text is cut hard at the configured bound."""

    def test_truncate_when_longer_than_bound_then_exact_prefix(self):
        text = "α" * 100 + "Ω" * 5
        prompt = build_prompt(text, QuizConfig(), max_chars=100, language="en")

        assert '"""\n' + "α" * 100 + '\n"""' in prompt
        assert "Ω" not in prompt

    def test_truncate_when_shorter_than_bound_then_unchanged(self):
        assert truncate_source("short text", 100) == "short text"

    def test_truncate_when_none_then_empty(self):
        assert truncate_source(None, 10) == ""


def test_difficulty_label_maps_each_level():
    assert [difficulty_label(d, "vi") for d in Difficulty] == ["Dễ", "Trung bình", "Khó"]
    assert difficulty_label("hard", "en") == "Hard"
