from dotenv import load_dotenv
load_dotenv(override=False)     # read .env if present, but don't clobber real env

import os
from dataclasses import dataclass


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default

def env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default

def env_str(name: str, default: str) -> str:
    return os.getenv(name, default)

def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")

def env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """Comma-separated env value -> tuple of non-empty stripped items."""
    raw = os.getenv(name, "")
    items = tuple(t.strip() for t in raw.split(",") if t.strip())
    return items or tuple(default)


DEFAULT_MODELS = ("gpt-4o-mini", "gpt-4.1-mini", "gpt-4o")
DEFAULT_SEARCH_MODELS = ("gpt-4o-mini-search-preview", "gpt-4o-search-preview")
SUPPORTED_LANGUAGES = ("vi", "en")


@dataclass(frozen=True)
class Settings:
    """Effective configuration. Built once from the environment, then injected."""
    api_key: str = ""
    base_url: str | None = None
    models: tuple[str, ...] = DEFAULT_MODELS
    search_models: tuple[str, ...] = DEFAULT_SEARCH_MODELS
    timeout: float = 120.0
    temperature: float = 0.4
    language: str = "vi"

    # prompt
    source_char_limit: int = 30_000
    max_questions: int = 30

    # uploads / extraction
    max_files: int = 20
    max_file_mb: int = 25
    total_upload_mb: int = 100
    extract_workers: int = 2
    txt_char_limit: int = 1_000_000
    pdf_page_limit: int = 2_000
    docx_para_limit: int = 50_000
    pptx_slide_limit: int = 2_000
    sheet_limit: int = 50
    zip_uncompressed_limit_mb: int = 300
    zip_ratio_max: float = 200.0

    @property
    def max_content_length(self) -> int:
        return self.total_upload_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        language = env_str("APP_OUTPUT_LANGUAGE", "vi").strip().lower()
        if language not in SUPPORTED_LANGUAGES:
            language = "vi"
        return cls(
            api_key=env_str("OPENAI_API_KEY", "").strip(),
            base_url=env_str("OPENAI_BASE_URL", "").strip() or None,
            models=env_list("OPENAI_MODELS", DEFAULT_MODELS),
            search_models=env_list("OPENAI_SEARCH_MODELS", DEFAULT_SEARCH_MODELS),
            timeout=env_float("OPENAI_TIMEOUT", 120.0),
            temperature=env_float("OPENAI_TEMPERATURE", 0.4),
            language=language,
            source_char_limit=max(1, env_int("APP_SOURCE_CHAR_LIMIT", 30_000)),
            max_questions=max(1, env_int("APP_MAX_QUESTIONS", 30)),
            max_files=env_int("APP_MAX_FILES", 20),
            max_file_mb=env_int("APP_MAX_FILE_MB", 25),
            total_upload_mb=env_int("APP_TOTAL_UPLOAD_MB", 100),
            extract_workers=max(1, env_int("APP_EXTRACT_WORKERS", 2)),
            txt_char_limit=env_int("APP_TXT_CHAR_LIMIT", 1_000_000),
            pdf_page_limit=env_int("APP_PDF_PAGE_LIMIT", 2_000),
            docx_para_limit=env_int("APP_DOCX_PARA_LIMIT", 50_000),
            pptx_slide_limit=env_int("APP_PPTX_SLIDE_LIMIT", 2_000),
            sheet_limit=env_int("APP_SHEET_LIMIT", 50),
            zip_uncompressed_limit_mb=env_int("APP_ZIP_UNCOMP_MB", 300),
            zip_ratio_max=env_float("APP_ZIP_RATIO_MAX", 200.0),
        )
