"""Pydantic request/response models for the reelpipe API."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from models.media import TimeRange

# =============================================================================
# Request Models
# =============================================================================

FormatSelector = Literal["merged", "audio-only", "video-only", "paired"]


class DownloadRequest(BaseModel):
    """Media download request.

    ``background_url`` selects the dual-source path: the same time range of
    both sources is stacked, ``url`` on top with its audio. That path needs
    ``start`` and ``end``.
    """

    url: str = Field(min_length=1, description="Source media URL")
    format: FormatSelector = Field(default="merged", description="Format profile or 'paired'")
    start: float | None = Field(default=None, ge=0, description="Range start in seconds")
    end: float | None = Field(default=None, gt=0, description="Range end in seconds (exclusive)")
    background_url: str | None = Field(default=None, description="Second source stacked below the first")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"url": "https://www.youtube.com/watch?v=VIDEO_ID"},
                {"url": "https://www.youtube.com/watch?v=VIDEO_ID", "format": "audio-only"},
                {
                    "url": "https://www.youtube.com/watch?v=VIDEO_ID",
                    "background_url": "https://www.youtube.com/watch?v=OTHER_ID",
                    "start": 30,
                    "end": 90,
                },
            ]
        }
    }

    @field_validator("url", "background_url")
    @classmethod
    def _require_http_url(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value

    @model_validator(mode="after")
    def _check_time_range(self) -> "DownloadRequest":
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be given together")
        if self.start is not None and self.end <= self.start:
            raise ValueError("end must be greater than start")
        if self.background_url and self.start is None:
            raise ValueError("background_url requires start and end")
        if self.background_url and self.format != "merged":
            raise ValueError("background_url only supports the merged format")
        return self

    def time_range(self) -> TimeRange | None:
        if self.start is None:
            return None
        return TimeRange(start_seconds=self.start, end_seconds=self.end)


# =============================================================================
# Response Models
# =============================================================================


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Reelpipe API", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str

    model_config = {"json_schema_extra": {"examples": [{"status": "healthy"}]}}


class ErrorResponse(BaseModel):
    """Structured error body."""

    code: str
    message: str

    model_config = {
        "json_schema_extra": {
            "examples": [{"code": "credentials_exhausted", "message": "No valid credentials remain for extraction"}]
        }
    }


class ProfileResponse(BaseModel):
    """One format profile."""

    name: str
    media_kind: str
    output_extension: str
    requires_merge: bool
    content_type: str
    description: str = ""


class ProfileListResponse(BaseModel):
    profiles: list[ProfileResponse]
    paired_delivery: str


class StoredFileResponse(BaseModel):
    name: str
    size: int
    modified_at: float


class ArtifactListResponse(BaseModel):
    """Diagnostic listing of the transient store."""

    storage_dir: str
    artifacts: list[StoredFileResponse]
