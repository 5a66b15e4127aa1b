"""
Exceptions raised by the reelpipe media pipeline.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer maps it to. Credential failures are not exceptions: they are outcome
values consumed by the orchestrator and never surface on their own.
"""

from typing import Any, Optional


class ReelpipeError(Exception):
    """Base exception for all reelpipe errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Structured error body returned to API callers."""
        return {"code": self.code, "message": self.message}


class ValidationError(ReelpipeError):
    """Missing or malformed request fields."""

    code = "validation_error"
    status_code = 400


class CredentialsExhausted(ReelpipeError):
    """Every credential in the pool failed authorization."""

    code = "credentials_exhausted"

    def __init__(self, source_url: str, attempted: int) -> None:
        super().__init__(
            "No valid credentials remain for extraction",
            {"source_url": source_url, "attempted": attempted},
        )


class ExtractionFatalFailure(ReelpipeError):
    """Extraction engine failure not attributable to a credential."""

    code = "extraction_failed"


class CompositionFailure(ReelpipeError):
    """Compositing engine failed to produce the stacked output."""

    code = "composition_failed"


class ArtifactMissing(ReelpipeError):
    """Expected artifact is absent at delivery time."""

    code = "artifact_not_ready"
