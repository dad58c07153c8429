"""Text extraction: thin wrappers around LangChain document loaders.

Uploads arrive as raw bytes.  PDF and DOCX loaders only read from disk,
so those are spooled to a temporary file first.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader

from librarian.errors import ValidationError

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PLAIN_TEXT = "text/plain"
MARKDOWN = "text/markdown"
OCTET_STREAM = "application/octet-stream"

_EXTENSION_TYPES = {
    ".txt": PLAIN_TEXT,
    ".md": MARKDOWN,
    ".markdown": MARKDOWN,
    ".pdf": PDF,
    ".docx": DOCX,
    ".doc": DOCX,
}


@dataclass
class ExtractedText:
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


def detect_mime_type(filename: str, mime_type: str | None = None) -> str:
    """Resolve the MIME type of an upload.

    An explicit type wins unless it is missing or ``application/octet-stream``,
    in which case the file extension decides.  Parameters such as
    ``; charset=utf-8`` are stripped.
    """
    resolved = (mime_type or "").split(";")[0].strip().lower()
    if not resolved or resolved == OCTET_STREAM:
        suffix = Path(filename).suffix.lower()
        resolved = _EXTENSION_TYPES.get(suffix, OCTET_STREAM)
    return resolved


def extract_text(data: bytes, filename: str, mime_type: str | None = None) -> ExtractedText:
    """Extract plain text from an uploaded file.

    Parameters
    ----------
    data:
        Raw file contents.
    filename:
        Original filename; used for type detection and log messages.
    mime_type:
        Declared content type, if any.

    Returns
    -------
    ExtractedText
        The text plus extraction metadata (page count, line count, …).

    Raises
    ------
    ValidationError
        If the file type is not supported or the file cannot be parsed.
    """
    resolved = detect_mime_type(filename, mime_type)

    if resolved in (PLAIN_TEXT, MARKDOWN):
        text = data.decode("utf-8", errors="replace")
        metadata: dict[str, Any] = {"encoding": "utf-8", "lineCount": len(text.split("\n"))}
        if resolved == MARKDOWN:
            metadata["format"] = "markdown"
        return ExtractedText(text=text, metadata=metadata)

    if resolved == PDF:
        docs = _load_from_bytes(data, ".pdf", PyPDFLoader, filename)
        return ExtractedText(
            text="\n\n".join(d.page_content for d in docs),
            metadata={"pages": len(docs)},
        )

    if resolved == DOCX:
        docs = _load_from_bytes(data, ".docx", Docx2txtLoader, filename)
        return ExtractedText(text="\n\n".join(d.page_content for d in docs), metadata={"format": "docx"})

    raise ValidationError(f"Unsupported file type: {resolved} (filename: {filename})")


def load_file(path: str | Path, mime_type: str | None = None) -> ExtractedText:
    """Extract text from a file on disk."""
    path = Path(path)
    return extract_text(path.read_bytes(), path.name, mime_type)


def _load_from_bytes(data: bytes, suffix: str, loader_cls: type, filename: str) -> list[Document]:
    fd, tmp_path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        return loader_cls(tmp_path).load()
    except Exception as exc:
        logger.error("Failed to extract text from %s: %s", filename, exc)
        raise ValidationError(f"Failed to extract text from {filename}: {exc}") from exc
    finally:
        os.unlink(tmp_path)
