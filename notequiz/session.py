import logging
from threading import Lock
from typing import Sequence
from urllib.parse import urlparse

from . import export as exporter
from .config import Settings
from .errors import ERR, ConfigError, InvalidInputError, NoSourcesError
from .extract import extract_many, extract_text
from .generation import GenerationClient
from .history import HistoryStore
from .models import Difficulty, Question, QuizConfig, Source, SourceType
from .prompt import build_prompt
from .sources import SourceList, aggregate_sources

logger = logging.getLogger(__name__)


def _parse_bool(name: str, value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on", "0", "false", "no", "off"):
        return value.strip().lower() in ("1", "true", "yes", "on")
    raise InvalidInputError(ERR["invalid_flag"].format(name=name))


class QuizSession:
    """
    The one process-local session: sources, quiz config, question history and
    the current result set. Mutations go through the lock; the model call does not.
    """

    def __init__(self, settings: Settings, client: GenerationClient | None = None):
        self.settings = settings
        self.client = client
        self.sources = SourceList()
        self.config = QuizConfig()
        self.history = HistoryStore()
        self.questions: list[Question] = []
        self._lock = Lock()
        # bumped on every reset; a generation started before a reset must not store its results
        self._epoch = 0

    # --- sources ---

    def add_file_sources(self, files: Sequence[tuple[str, bytes]]) -> tuple[list[Source], list[dict]]:
        """Extract and append files in upload order. Returns (added, [{'name', 'error'}])."""
        added, errors = [], []
        results = extract_many(files, self.settings)
        with self._lock:
            for name, text, err in results:
                if err is not None:
                    errors.append({"name": name, "error": err.user_message})
                    continue
                added.append(self.sources.add(SourceType.FILE, name, text))
        logger.info("Added %d file source(s), %d failed", len(added), len(errors))
        return added, errors

    def add_text(self, text: str, name: str | None = None) -> Source:
        if not text or not text.strip():
            raise InvalidInputError(ERR["empty_text"])
        with self._lock:
            return self.sources.add(SourceType.TEXT, (name or "").strip() or "Pasted text", text)

    def add_url(self, url: str) -> Source:
        url = (url or "").strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidInputError(ERR["invalid_url"])
        with self._lock:
            # the URL itself is the content; the model retrieves it, we never fetch
            return self.sources.add(SourceType.URL, url, url)

    def remove_source(self, source_id: str) -> Source:
        with self._lock:
            removed = self.sources.remove(source_id)
            if not self.sources:
                self._reset_results()
        return removed

    def clear_sources(self) -> None:
        with self._lock:
            self.sources.clear()
            self._reset_results()

    def _reset_results(self) -> None:
        # caller holds the lock
        self._epoch += 1
        self.history.reset()
        self.questions = []

    # --- config ---

    def update_config(
        self,
        *,
        number_of_questions=None,
        difficulty=None,
        prevent_duplicates=None,
    ) -> QuizConfig:
        changes = {}
        if number_of_questions is not None:
            try:
                n = int(number_of_questions)
            except (TypeError, ValueError):
                n = 0
            if isinstance(number_of_questions, float) and not number_of_questions.is_integer():
                n = 0
            if isinstance(number_of_questions, bool) or not 1 <= n <= self.settings.max_questions:
                raise InvalidInputError(ERR["invalid_qcount"].format(max=self.settings.max_questions))
            changes["number_of_questions"] = n
        if difficulty is not None:
            try:
                changes["difficulty"] = Difficulty.parse(difficulty)
            except ValueError:
                raise InvalidInputError(ERR["invalid_difficulty"].format(v=difficulty)) from None
        if prevent_duplicates is not None:
            changes["prevent_duplicates"] = _parse_bool("preventDuplicates", prevent_duplicates)
        with self._lock:
            self.config = self.config.with_changes(**changes)
            return self.config

    def set_exclusion(self, data: bytes, filename: str) -> QuizConfig:
        text = extract_text(data, filename, self.settings)
        with self._lock:
            self.config = self.config.with_changes(excluded_content=text, excluded_file_name=filename)
            return self.config

    def clear_exclusion(self) -> QuizConfig:
        with self._lock:
            self.config = self.config.with_changes(excluded_content=None, excluded_file_name=None)
            return self.config

    def reset_history(self) -> None:
        self.history.reset()

    # --- generation & export ---

    def generate(self) -> list[Question]:
        if self.client is None:
            raise ConfigError(ERR["missing_credential"])
        with self._lock:
            if not self.sources:
                raise NoSourcesError(ERR["no_sources"])
            text_context = aggregate_sources(self.sources)
            config = self.config
            web_search = self.sources.has_urls()
            previous = self.history.snapshot()
            epoch = self._epoch
        prompt = build_prompt(
            text_context,
            config,
            previous,
            max_chars=self.settings.source_char_limit,
            language=self.settings.language,
            web_search=web_search,
        )
        logger.info(
            "Generating %d question(s), difficulty=%s, source_chars=%d, web_search=%s",
            config.number_of_questions, config.difficulty.value, len(text_context), web_search,
        )
        questions = self.client.generate(
            prompt, max_questions=config.number_of_questions, web_search=web_search
        )
        with self._lock:
            if self._epoch != epoch:
                logger.info("Sources were cleared during generation; not storing %d question(s)", len(questions))
                return questions
            self.history.append(q.question_text for q in questions)
            self.questions = questions
        return questions

    def default_title(self) -> str:
        with self._lock:
            name = self.sources.first_file_name()
        return exporter.default_title(name, self.settings.language)

    def export(self, title: str | None = None) -> bytes:
        with self._lock:
            questions = list(self.questions)
        if not questions:
            raise InvalidInputError(ERR["no_questions"])
        return exporter.export_docx(questions, title or self.default_title(), language=self.settings.language)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "sources": [s.to_dict() for s in self.sources],
                "config": self.config.to_dict(),
                "historySize": len(self.history),
                "questions": [q.to_dict() for q in self.questions],
            }
