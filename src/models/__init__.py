# Data models for reelpipe
from .media import (
    Artifact,
    CompositionJob,
    Credential,
    CredentialFailure,
    EngineResult,
    ExtractionOutcome,
    ExtractionRequest,
    ExtractionSuccess,
    FatalFailure,
    FormatProfile,
    MediaKind,
    TimeRange,
)

__all__ = [
    "Artifact",
    "CompositionJob",
    "Credential",
    "CredentialFailure",
    "EngineResult",
    "ExtractionOutcome",
    "ExtractionRequest",
    "ExtractionSuccess",
    "FatalFailure",
    "FormatProfile",
    "MediaKind",
    "TimeRange",
]
