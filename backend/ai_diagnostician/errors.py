from __future__ import annotations

from typing import Optional


class DiagnosticianError(Exception):
    """Base class for failures the HTTP layer turns into client-facing errors."""

    status_code = 500

    def __init__(self, message: str, *, session_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.session_id = session_id


class GenerationError(DiagnosticianError):
    """The LLM could not produce usable content and no fallback applied."""

    status_code = 502


class MalformedGeneration(GenerationError):
    """The LLM answered, but the content failed parsing or structural validation."""


class SessionNotFound(DiagnosticianError):
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Session not found or expired", session_id=session_id)


class OutOfSequence(DiagnosticianError):
    """Client and server disagree about where the session is."""

    status_code = 400


class InvalidAnswer(DiagnosticianError):
    """The submitted payload does not fit the current question's shape."""

    status_code = 400


class SummaryIncomplete(DiagnosticianError):
    """The narrative came back but is missing required content."""

    status_code = 502
