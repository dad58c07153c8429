"""Typed errors raised by the ingestion and retrieval core.

Every error carries a machine-readable ``kind`` so that outer layers
(HTTP handlers, agent tools) can report *what* failed without parsing
messages.
"""

from __future__ import annotations


class LibrarianError(Exception):
    """Base class for all errors raised by this package."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "detail": self.message}


class ValidationError(LibrarianError):
    """Bad input: empty text, wrong vector dimension, unsupported file type.

    Never retried automatically.
    """

    kind = "validation"


class ExternalServiceError(LibrarianError):
    """An external dependency (embedding API, vector store, database) failed."""

    kind = "external_service"

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class NotFoundError(LibrarianError):
    """A document or collection does not exist."""

    kind = "not_found"
