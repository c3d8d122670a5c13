"""Turn an uploaded resume into plain text.

Plain text is decoded as-is, Word documents are converted from their OOXML
body (stdlib zipfile + xml), PDFs go through pypdf. Anything else is read as
raw bytes, which may be garbled but is accepted as long as some text survives.
"""
from __future__ import annotations

import io
import mimetypes
import zipfile
from pathlib import Path
from xml.etree import ElementTree

from talentdesk.errors import ExtractionFailed
from talentdesk.log import get_logger

log = get_logger(__name__)

TEXT_PLAIN = "text/plain"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MSWORD = "application/msword"
PDF = "application/pdf"

WORD_TYPES: frozenset[str] = frozenset({DOCX, MSWORD})

_W_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"

mimetypes.add_type(DOCX, ".docx")
mimetypes.add_type(MSWORD, ".doc")


def extract_text(data: bytes, media_type: str, filename: str = "") -> str:
    """Return best-effort plain text for an upload of the declared *media_type*.

    Raises ExtractionFailed when nothing but whitespace could be recovered.
    """
    kind = (media_type or "").split(";")[0].strip().lower()
    label = filename or kind or "upload"

    if kind == TEXT_PLAIN:
        text = data.decode("utf-8", errors="replace")
    elif kind in WORD_TYPES:
        text = _extract_word(data, label)
    elif kind == PDF:
        text = _extract_pdf(data, label)
    else:
        log.debug("No converter for %r, reading %s as raw text", kind, label)
        text = _raw_text(data)

    if not text.strip():
        raise ExtractionFailed(f"Could not extract text from {label}")
    log.info("Extracted %d chars from %s (%s)", len(text), label, kind or "unknown type")
    return text


def extract_file(path: Path, media_type: str | None = None) -> str:
    """Read *path* and extract its text, guessing the media type from the suffix."""
    media_type = media_type or mimetypes.guess_type(path.name)[0] or ""
    return extract_text(path.read_bytes(), media_type, filename=path.name)


def _raw_text(data: bytes) -> str:
    return data.decode("utf-8", errors="ignore")


def _extract_word(data: bytes, label: str) -> str:
    """Paragraph text from word/document.xml, one paragraph per line."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            with zf.open("word/document.xml") as f:
                tree = ElementTree.parse(f)
    except (zipfile.BadZipFile, KeyError, ElementTree.ParseError) as exc:
        raise ExtractionFailed(f"Could not read Word document {label}: {exc}") from exc

    paragraphs: list[str] = []
    for para in tree.iter(f"{_W_NS}p"):
        parts: list[str] = []
        for node in para.iter():
            if node.tag == f"{_W_NS}t" and node.text:
                parts.append(node.text)
            elif node.tag == f"{_W_NS}tab":
                parts.append("\t")
            elif node.tag in (f"{_W_NS}br", f"{_W_NS}cr"):
                parts.append("\n")
        paragraphs.append("".join(parts))
    return "\n".join(paragraphs).strip("\n")


def _extract_pdf(data: bytes, label: str) -> str:
    from pypdf import PdfReader

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as exc:
        log.warning("pypdf could not read %s (%s), falling back to raw text", label, exc)
        return _raw_text(data)
    text = "\n".join(pages)
    if not text.strip():
        log.warning("No text layer in %s, falling back to raw text", label)
        return _raw_text(data)
    return text
