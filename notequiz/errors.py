# --- error messages & codes ---
ERR = {
    "missing_credential": "The model API key is not configured. Set OPENAI_API_KEY and restart the server.",
    "invalid_credential": "The model API rejected the configured credential. Check OPENAI_API_KEY.",
    "model_unavailable": "No configured model is currently available. Please try again later.",
    "no_models": "No model identifiers are configured. Set OPENAI_MODELS to a comma-separated list.",
    "rate_limited": "The model API quota or rate limit was exceeded. Please wait a moment and try again.",
    "empty_response": "The model returned an empty response.",
    "malformed_response": "The model response was not a JSON array of questions.",
    "invalid_questions": "The model returned questions in an unexpected shape: {detail}",
    "generation_failed": "Could not generate questions: {detail}",
    "no_sources": "Add at least one file, text or URL before generating questions.",
    "no_questions": "Generate questions before exporting.",
    "unsupported_format": "Unsupported file format: {name}. Please upload .txt, .md, .pdf, .docx, .xlsx, .xls, .pptx or .rtf",
    "mime_mismatch": "File content does not match its extension: {name}.",
    "zip_bomb": "Office file appears malformed or overly compressed (possible zip bomb): {name}.",
    "pdf_encrypted": "This PDF is password-protected and cannot be processed: {name}.",
    "unreadable": "Could not read file {name}: {detail}",
    "no_text": "No text found in {name} (it may be a scanned image).",
    "source_not_found": "Source not found.",
    "no_file_part": "No file part",
    "too_many_files": "Too many files uploaded (max is {max}).",
    "file_too_big": "A file exceeds the per-file size limit ({max} MB).",
    "total_upload_too_big": "Total upload exceeds {max} MB.",
    "empty_text": "Please paste some text.",
    "invalid_url": "Please enter a valid http(s) URL.",
    "invalid_qcount": "Number of questions must be between 1 and {max}.",
    "invalid_difficulty": "Invalid difficulty: '{v}'. Valid options are Easy, Medium, Hard.",
    "invalid_flag": "{name} must be true or false.",
    "internal": "Internal server error. Please try again.",
}


class QuizGenError(Exception):
    """Base class. `user_message` is what the UI shows; `http_status` is what the API returns."""
    http_status = 500

    def __init__(self, user_message: str, *, detail: str | None = None):
        super().__init__(detail or user_message)
        self.user_message = user_message
        self.detail = detail


class ConfigError(QuizGenError):
    http_status = 500


class AvailabilityError(QuizGenError):
    """Model not found or transiently unavailable. Recovered by the fallback ladder."""
    http_status = 503

    def __init__(self, user_message: str, *, model: str | None = None, detail: str | None = None):
        super().__init__(user_message, detail=detail)
        self.model = model


class RateLimitError(QuizGenError):
    http_status = 429


class ProtocolError(QuizGenError):
    http_status = 502


class QuestionValidationError(QuizGenError):
    http_status = 502


class GenerationError(QuizGenError):
    http_status = 502


class NoSourcesError(QuizGenError):
    http_status = 400


class InvalidInputError(QuizGenError):
    http_status = 400


class FileTooLargeError(QuizGenError):
    http_status = 413


class SourceNotFoundError(QuizGenError):
    http_status = 404


class UnsupportedFormatError(QuizGenError):
    http_status = 415


class ExtractionError(QuizGenError):
    http_status = 422
