"""
Generation client: calls the chat completions API across an ordered ladder of
model identifiers and turns the JSON reply into validated Question records.

Only availability failures (model not found, 503) move the ladder to the next
model. Credential, quota, protocol and validation failures stop immediately.
"""
import json
import logging
import re
from enum import Enum
from typing import Any, Callable, Sequence, TypeVar
from uuid import uuid4

import openai
from openai import OpenAI

from .config import DEFAULT_MODELS, DEFAULT_SEARCH_MODELS, Settings
from .errors import (
    ERR,
    AvailabilityError,
    ConfigError,
    GenerationError,
    ProtocolError,
    QuestionValidationError,
    QuizGenError,
    RateLimitError,
)
from .models import Question

logger = logging.getLogger(__name__)

T = TypeVar("T")

OPTION_COUNT = 4

SYSTEM_PROMPT = (
    "You only generate what the instructions say. Use the exact format requested. "
    "Do not skip anything. Do not explain yourself. Do not add titles, headings or "
    "comments other than the ones requested."
)

QUESTION_SCHEMA = {
    "type": "object",
    "properties": {
        "questionText": {"type": "string", "description": "The question stem"},
        "options": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Exactly 4 answer options",
        },
        "correctAnswerIndex": {"type": "integer", "description": "Index of the correct option (0-3)"},
        "explanation": {"type": "string", "description": "Why the correct option is right, from the source"},
    },
    "required": ["questionText", "options", "correctAnswerIndex", "explanation"],
    "additionalProperties": False,
}

# Structured outputs need an object at the root, so the array travels in a
# {"questions": [...]} envelope.
RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "quiz_questions",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {"questions": {"type": "array", "items": QUESTION_SCHEMA}},
            "required": ["questions"],
            "additionalProperties": False,
        },
    },
}


# --- failure classification ---

_UNAVAILABLE_STATUS = {404, 503}
_CREDENTIAL_STATUS = {401, 403}

def classify_error(exc: BaseException, model: str | None = None) -> QuizGenError:
    """Map an SDK / transport exception onto the error taxonomy."""
    if isinstance(exc, QuizGenError):
        return exc
    detail = str(exc) or exc.__class__.__name__
    status = getattr(exc, "status_code", None)

    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)) or status in _CREDENTIAL_STATUS:
        return ConfigError(ERR["invalid_credential"], detail=detail)
    if isinstance(exc, openai.RateLimitError) or status == 429:
        return RateLimitError(ERR["rate_limited"], detail=detail)
    if isinstance(exc, openai.NotFoundError) or status in _UNAVAILABLE_STATUS:
        return AvailabilityError(ERR["model_unavailable"], model=model, detail=detail)

    low = detail.lower()
    if "not found" in low:
        return AvailabilityError(ERR["model_unavailable"], model=model, detail=detail)
    if "quota" in low or "rate limit" in low:
        return RateLimitError(ERR["rate_limited"], detail=detail)
    return GenerationError(ERR["generation_failed"].format(detail=detail), detail=detail)


# --- fallback ladder ---

class LadderState(Enum):
    TRYING = "trying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class FallbackLadder:
    """
    Ordered candidates, first success wins.

    TRYING(i) --success--> SUCCEEDED
    TRYING(i) --availability failure--> TRYING(i+1), or EXHAUSTED after the last model
    TRYING(i) --any other failure--> raised to the caller, ladder stops
    """

    def __init__(self, models: Sequence[str]):
        self.models = tuple(m for m in models if m)
        if not self.models:
            raise ConfigError(ERR["no_models"])
        self.index = 0
        self.state = LadderState.TRYING
        self.last_error: QuizGenError | None = None

    @property
    def current(self) -> str:
        if self.state is not LadderState.TRYING:
            raise RuntimeError(f"ladder is {self.state.value}, no current model")
        return self.models[self.index]

    def succeed(self) -> None:
        self.state = LadderState.SUCCEEDED

    def fail(self, error: QuizGenError) -> None:
        """Record a failed attempt. Non-availability errors are re-raised as final."""
        self.last_error = error
        if not isinstance(error, AvailabilityError):
            raise error
        self.index += 1
        if self.index >= len(self.models):
            self.state = LadderState.EXHAUSTED

    def run(self, attempt: Callable[[str], T]) -> T:
        while self.state is LadderState.TRYING:
            model = self.current
            logger.info("Generation attempt %d/%d model=%s", self.index + 1, len(self.models), model)
            try:
                result = attempt(model)
            except QuizGenError as e:
                logger.warning("Model %s failed: %s: %s", model, e.__class__.__name__, e)
                self.fail(e)
                continue
            self.succeed()
            return result
        logger.error("All %d model(s) unavailable; giving up", len(self.models))
        raise self.last_error


# --- response parsing & validation ---

CODE_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*([\s\S]*?)```\s*$", re.IGNORECASE)

def _strip_code_fence(s: str) -> str:
    m = CODE_FENCE_RE.match(s)
    return m.group(1) if m else s

def _response_text(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        content = None
    if not content or not str(content).strip():
        raise ProtocolError(ERR["empty_response"])
    return str(content)

def parse_response(raw: str) -> list:
    """
    Parse the model reply into a list of raw records.
    Accepts a bare JSON array or the {"questions": [...]} envelope; anything else is a protocol error.
    """
    if not raw or not raw.strip():
        raise ProtocolError(ERR["empty_response"])
    try:
        parsed = json.loads(_strip_code_fence(raw.strip()))
    except json.JSONDecodeError as e:
        raise ProtocolError(ERR["malformed_response"], detail=f"invalid JSON: {e}") from e

    if isinstance(parsed, dict) and set(parsed) == {"questions"} and isinstance(parsed["questions"], list):
        parsed = parsed["questions"]
    if not isinstance(parsed, list):
        raise ProtocolError(ERR["malformed_response"], detail=f"expected a JSON array, got {type(parsed).__name__}")
    return parsed

def _record_problem(rec: Any) -> str | None:
    if not isinstance(rec, dict):
        return "not an object"
    text = rec.get("questionText")
    if not isinstance(text, str) or not text.strip():
        return "questionText must be a non-empty string"
    opts = rec.get("options")
    if not isinstance(opts, list) or len(opts) != OPTION_COUNT:
        return f"options must be a list of exactly {OPTION_COUNT} entries"
    if not all(isinstance(o, str) for o in opts):
        return "options must all be strings"
    idx = rec.get("correctAnswerIndex")
    # bool is an int subclass; reject it explicitly
    if isinstance(idx, bool) or not isinstance(idx, int) or not 0 <= idx < OPTION_COUNT:
        return f"correctAnswerIndex must be an integer between 0 and {OPTION_COUNT - 1}"
    if not isinstance(rec.get("explanation"), str):
        return "explanation must be a string"
    return None

def validate_questions(records: list, max_questions: int | None = None) -> list[Question]:
    """All-or-nothing: one bad record rejects the batch."""
    if not records:
        raise QuestionValidationError(
            ERR["invalid_questions"].format(detail="no questions returned"),
            detail="empty question array",
        )
    for i, rec in enumerate(records, start=1):
        problem = _record_problem(rec)
        if problem:
            detail = f"question {i}: {problem}"
            raise QuestionValidationError(ERR["invalid_questions"].format(detail=detail), detail=detail)

    if max_questions is not None and len(records) > max_questions:
        logger.warning("Model returned %d questions, keeping the first %d", len(records), max_questions)
        records = records[:max_questions]

    return [
        Question(
            id=uuid4().hex,
            question_text=rec["questionText"],
            options=tuple(rec["options"]),
            correct_answer_index=rec["correctAnswerIndex"],
            explanation=rec["explanation"],
        )
        for rec in records
    ]


# --- client ---

class GenerationClient:
    def __init__(
        self,
        api_key: str,
        models: Sequence[str] = DEFAULT_MODELS,
        *,
        search_models: Sequence[str] = DEFAULT_SEARCH_MODELS,
        base_url: str | None = None,
        timeout: float = 120.0,
        temperature: float = 0.4,
        client: Any = None,
    ):
        api_key = (api_key or "").strip()
        if not api_key:
            raise ConfigError(ERR["missing_credential"])
        self.models = tuple(m for m in models if m)
        if not self.models:
            raise ConfigError(ERR["no_models"])
        self.search_models = tuple(m for m in search_models if m) or self.models
        self.temperature = temperature
        if client is None:
            client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout) if base_url \
                     else OpenAI(api_key=api_key, timeout=timeout)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, client: Any = None) -> "GenerationClient":
        return cls(
            settings.api_key,
            settings.models,
            search_models=settings.search_models,
            base_url=settings.base_url,
            timeout=settings.timeout,
            temperature=settings.temperature,
            client=client,
        )

    def _request_kwargs(self, model: str, prompt: str, web_search: bool) -> dict:
        kwargs = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "response_format": RESPONSE_FORMAT,
        }
        if web_search:
            # search models take no sampling params
            kwargs["web_search_options"] = {}
        else:
            kwargs["temperature"] = self.temperature
        return kwargs

    def _attempt(self, model: str, prompt: str, max_questions: int | None, web_search: bool) -> list[Question]:
        try:
            response = self._client.chat.completions.create(**self._request_kwargs(model, prompt, web_search))
        except Exception as e:
            raise classify_error(e, model) from e
        records = parse_response(_response_text(response))
        questions = validate_questions(records, max_questions=max_questions)
        logger.info("Model %s returned %d valid question(s)", model, len(questions))
        return questions

    def generate(self, prompt: str, *, max_questions: int | None = None, web_search: bool = False) -> list[Question]:
        """Run the prompt down the model ladder. Returns validated questions or raises a QuizGenError."""
        ladder = FallbackLadder(self.search_models if web_search else self.models)
        return ladder.run(lambda model: self._attempt(model, prompt, max_questions, web_search))
