import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from notequiz.config import Settings
from notequiz.generation import GenerationClient

API_URL = "https://api.openai.com/v1/chat/completions"


def make_completion(content):
    """Shape of a chat.completions.create() result, as far as the client reads it."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

def make_status_error(cls, status: int, message: str = "boom"):
    """Build a real openai APIStatusError subclass with an httpx response attached."""
    response = httpx.Response(status, request=httpx.Request("POST", API_URL))
    return cls(message, response=response, body=None)

def question_record(text="What is the capital of Vietnam?", correct=1, **overrides) -> dict:
    rec = {
        "questionText": text,
        "options": ["Ho Chi Minh City", "Hanoi", "Da Nang", "Hue"],
        "correctAnswerIndex": correct,
        "explanation": "The text states that the capital of Vietnam is Hanoi.",
    }
    rec.update(overrides)
    return rec

def envelope(*records) -> str:
    return json.dumps({"questions": list(records)})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_key="test-key",
        models=("model-a", "model-b"),
        search_models=("search-a",),
        language="en",
        source_char_limit=1_000,
        max_questions=10,
    )

@pytest.fixture
def openai_client():
    """MagicMock standing in for openai.OpenAI; set .chat.completions.create.side_effect per test."""
    client = MagicMock(spec_set=["chat"])
    client.chat.completions.create.return_value = make_completion(envelope(question_record()))
    return client

@pytest.fixture
def gen_client(settings, openai_client) -> GenerationClient:
    return GenerationClient.from_settings(settings, client=openai_client)

@pytest.fixture
def not_found_error():
    return make_status_error(openai.NotFoundError, 404, "The model `model-a` does not exist")

@pytest.fixture
def rate_limit_error():
    return make_status_error(openai.RateLimitError, 429, "You exceeded your current quota")
