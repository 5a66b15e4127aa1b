"""Media pipeline data models: credentials, profiles, requests, outcomes, artifacts."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union


class MediaKind(str, Enum):
    """Kind of media an artifact holds."""

    VIDEO = "video"
    AUDIO = "audio"
    VIDEO_ONLY = "video_only"


@dataclass(frozen=True)
class TimeRange:
    """Half-open time range [start, end) in seconds."""

    start_seconds: float
    end_seconds: float

    def __post_init__(self):
        if self.start_seconds < 0:
            raise ValueError(f"Start time cannot be negative: {self.start_seconds}")
        if self.end_seconds <= self.start_seconds:
            raise ValueError(
                f"End time ({self.end_seconds}) must be greater than start time ({self.start_seconds})"
            )

    @property
    def duration(self) -> float:
        return self.end_seconds - self.start_seconds


@dataclass
class Credential:
    """Cookie file presented to the extraction engine.

    The id is the file name inside the pool directory. Once ``valid`` flips to
    False the credential is never offered again in this process.
    """

    id: str
    path: Path
    valid: bool = True


@dataclass(frozen=True)
class FormatProfile:
    """Named, fixed extraction configuration."""

    name: str
    media_kind: MediaKind
    ydl_options: Mapping[str, Any]
    output_extension: str
    requires_merge: bool
    content_type: str
    description: str = ""

    def to_dict(self) -> dict:
        """Public view of the profile for the API."""
        return {
            "name": self.name,
            "media_kind": self.media_kind.value,
            "output_extension": self.output_extension,
            "requires_merge": self.requires_merge,
            "content_type": self.content_type,
            "description": self.description,
        }


@dataclass(frozen=True)
class ExtractionRequest:
    """One extraction attempt against one source with one credential."""

    source_url: str
    profile: FormatProfile
    credential: Optional[Credential]
    destination: Path
    time_range: Optional[TimeRange] = None


@dataclass(frozen=True)
class ExtractionSuccess:
    path: Path


@dataclass(frozen=True)
class CredentialFailure:
    reason: str


@dataclass(frozen=True)
class FatalFailure:
    reason: str


ExtractionOutcome = Union[ExtractionSuccess, CredentialFailure, FatalFailure]


@dataclass(frozen=True)
class EngineResult:
    """Exit status and captured output of an external engine run.

    ``stderr`` holds error text only; non-fatal engine warnings go to
    ``warnings`` so they never drive failure classification.
    """

    exit_status: int
    stdout: str = ""
    stderr: str = ""
    warnings: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


@dataclass(frozen=True)
class Artifact:
    """A produced file held in the transient artifact store."""

    path: Path
    media_kind: MediaKind
    content_type: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    def exists(self) -> bool:
        return self.path.is_file()


@dataclass(frozen=True)
class CompositionJob:
    """Two time-bounded segments stacked into one output file."""

    primary_segment: Artifact
    secondary_segment: Artifact
    time_range: TimeRange
    output_path: Path
