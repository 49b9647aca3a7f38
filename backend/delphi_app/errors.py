"""Error types raised by the analysis engine and mapped to JSON errors in ``main``."""

from __future__ import annotations

from typing import Optional


class AnalysisError(RuntimeError):
    """Base class; ``status_code`` is the HTTP status used by the API layer."""

    status_code: int = 500

    def __init__(self, message: str, *, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step


class InvalidAnalysisRequest(AnalysisError):
    """Rejected input (no round ids, unusable body); nothing was computed."""

    status_code = 400


class StoreQueryError(AnalysisError):
    """A read against the survey store failed; the whole request is aborted."""

    status_code = 500

    def __init__(self, step: str, cause: object) -> None:
        super().__init__(f"failed to query {step}: {cause}", step=step)
