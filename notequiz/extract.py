import io
import logging
import os
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Sequence

import docx
import fitz  # PyMuPDF
import pandas as pd
import pdfplumber
from pptx import Presentation
from striprtf.striprtf import rtf_to_text

from .config import Settings
from .errors import ERR, ExtractionError, QuizGenError, UnsupportedFormatError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".txt", ".md", ".pdf", ".docx", ".xlsx", ".xls", ".pptx", ".rtf"}

_DEFAULTS = Settings()


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()

def allowed_file(filename: str) -> bool:
    return file_extension(filename) in ALLOWED_EXTENSIONS


# --- content sniffing & zip safety ---

def _looks_pdf(head: bytes) -> bool:
    return head.startswith(b"%PDF-")

def _looks_rtf(head: bytes) -> bool:
    return head.startswith(b"{\\rtf")

def _looks_zip(head: bytes) -> bool:
    return head.startswith(b"PK\x03\x04") or head.startswith(b"PK\x05\x06") or head.startswith(b"PK\x07\x08")

def _looks_ole2(head: bytes) -> bool:
    # legacy .xls container
    return head.startswith(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1")

def _office_zip_kind(data: bytes) -> str | None:
    """Return 'docx', 'pptx' or 'xlsx' if the zip looks like that Office format; else None."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as z:
            names = set(z.namelist())
            if "[Content_Types].xml" not in names:
                return None
            if any(n.startswith("word/") for n in names):
                return "docx"
            if any(n.startswith("ppt/") for n in names):
                return "pptx"
            if any(n.startswith("xl/") for n in names):
                return "xlsx"
    except zipfile.BadZipFile:
        return None
    return None

def _zip_safety_ok(data: bytes, settings: Settings) -> bool:
    """Basic zip bomb guard: total uncompressed size and ratio check."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as z:
            total_comp = 0
            total_uncomp = 0
            for i in z.infolist():
                total_comp += max(1, i.compress_size)
                total_uncomp += i.file_size
    except zipfile.BadZipFile:
        return False
    if total_uncomp > settings.zip_uncompressed_limit_mb * 1024 * 1024:
        return False
    ratio = float(total_uncomp) / float(total_comp or 1)
    return ratio <= settings.zip_ratio_max

def check_content(data: bytes, filename: str, settings: Settings = _DEFAULTS) -> None:
    """Raise if the bytes don't match the declared extension."""
    ext = file_extension(filename)
    head = data[:8]
    if ext == ".pdf" and not _looks_pdf(head):
        raise ExtractionError(ERR["mime_mismatch"].format(name=filename))
    if ext == ".rtf" and not _looks_rtf(head):
        raise ExtractionError(ERR["mime_mismatch"].format(name=filename))
    if ext == ".xls" and not _looks_ole2(head):
        raise ExtractionError(ERR["mime_mismatch"].format(name=filename))
    if ext in (".docx", ".pptx", ".xlsx"):
        if not _looks_zip(head) or _office_zip_kind(data) != ext[1:]:
            raise ExtractionError(ERR["mime_mismatch"].format(name=filename))
        if not _zip_safety_ok(data, settings):
            raise ExtractionError(ERR["zip_bomb"].format(name=filename))


# --- per-format readers ---

def _cap(s: str, limit: int) -> str:
    if not s:
        return ""
    return s[:limit]

def _read_text(data: bytes, settings: Settings) -> str:
    # try utf-8, fallback utf-16
    try:
        return _cap(data.decode("utf-8-sig"), settings.txt_char_limit)
    except UnicodeDecodeError:
        return _cap(data.decode("utf-16"), settings.txt_char_limit)

def _read_pdf(data: bytes, settings: Settings, filename: str) -> str:
    # prefer PyMuPDF; cap pages
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            if doc.needs_pass:
                raise ExtractionError(ERR["pdf_encrypted"].format(name=filename))
            n = min(len(doc), settings.pdf_page_limit)
            parts = [doc.load_page(i).get_text("text") or "" for i in range(n)]
        return _cap("\n\n".join(parts), settings.txt_char_limit)
    except ExtractionError:
        raise
    except Exception as e:
        logger.warning("PyMuPDF failed on %s (%s); trying pdfplumber", filename, e)

    with pdfplumber.open(io.BytesIO(data)) as pdf:
        n = min(len(pdf.pages), settings.pdf_page_limit)
        out = [pdf.pages[i].extract_text() or "" for i in range(n)]
    return _cap("\n\n".join(out), settings.txt_char_limit)

def _read_docx(data: bytes, settings: Settings) -> str:
    doc = docx.Document(io.BytesIO(data))
    paras = []
    for i, p in enumerate(doc.paragraphs):
        if i >= settings.docx_para_limit:
            break
        paras.append(p.text)
    for table in doc.tables:
        for row in table.rows:
            paras.append("\t".join(cell.text for cell in row.cells))
    return _cap("\n".join(paras), settings.txt_char_limit)

def _read_pptx(data: bytes, settings: Settings) -> str:
    prs = Presentation(io.BytesIO(data))
    out = []
    for i, slide in enumerate(prs.slides):
        if i >= settings.pptx_slide_limit:
            break
        for shape in slide.shapes:
            if hasattr(shape, "text"):
                out.append(shape.text)
    return _cap("\n".join(out), settings.txt_char_limit)

def _read_excel(data: bytes, settings: Settings, ext: str) -> str:
    engine = "xlrd" if ext == ".xls" else "openpyxl"
    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, dtype=str, engine=engine)
    out = []
    for i, (name, frame) in enumerate(sheets.items()):
        if i >= settings.sheet_limit:
            break
        rows = frame.fillna("").astype(str).values.tolist()
        text = "\n".join("\t".join(r).rstrip("\t") for r in rows if any(c.strip() for c in r))
        out.append(f"--- Sheet: {name} ---\n{text}")
    return _cap("\n\n".join(out), settings.txt_char_limit)

def _read_rtf(data: bytes, settings: Settings) -> str:
    try:
        raw = data.decode("utf-8")
    except UnicodeDecodeError:
        raw = data.decode("latin-1", errors="ignore")
    return _cap(rtf_to_text(raw), settings.txt_char_limit)


def extract_text(data: bytes, filename: str, settings: Settings = _DEFAULTS) -> str:
    """
    Route a file to the right parser by extension and return its plain text.
    Raises UnsupportedFormatError for unknown extensions and ExtractionError when
    the content is unreadable or holds no text.
    """
    ext = file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise UnsupportedFormatError(ERR["unsupported_format"].format(name=filename))
    check_content(data, filename, settings)

    try:
        if ext in (".txt", ".md"):
            text = _read_text(data, settings)
        elif ext == ".pdf":
            text = _read_pdf(data, settings, filename)
        elif ext == ".docx":
            text = _read_docx(data, settings)
        elif ext == ".pptx":
            text = _read_pptx(data, settings)
        elif ext in (".xlsx", ".xls"):
            text = _read_excel(data, settings, ext)
        else:
            text = _read_rtf(data, settings)
    except QuizGenError:
        raise
    except Exception as e:
        logger.warning("Extraction failed for %s: %s", filename, e)
        raise ExtractionError(ERR["unreadable"].format(name=filename, detail=e), detail=str(e)) from e

    if not text.strip():
        raise ExtractionError(ERR["no_text"].format(name=filename))
    return text


def parallel_map(func, iterable, max_workers=8):
    results = [None] * len(iterable)
    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        futs = {ex.submit(func, i, x): i for i, x in enumerate(iterable)}
        for fut in as_completed(futs):
            idx = futs[fut]
            results[idx] = fut.result()
    return results

def extract_many(files: Sequence[tuple[str, bytes]], settings: Settings = _DEFAULTS) -> list[tuple[str, str | None, QuizGenError | None]]:
    """
    Extract several (filename, bytes) pairs concurrently.
    Returns (filename, text, error) per file in submission order; exactly one of text/error is set.
    """
    def _proc(i, item):
        name, data = item
        try:
            return name, extract_text(data, name, settings), None
        except QuizGenError as e:
            return name, None, e

    return parallel_map(_proc, list(files), max_workers=max(1, settings.extract_workers))
