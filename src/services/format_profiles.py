"""Fixed catalogue of extraction profiles (merged, audio-only, video-only)."""

from types import MappingProxyType
from typing import Dict

from models.media import FormatProfile, MediaKind
from utils.errors import ValidationError

MERGED = "merged"
AUDIO_ONLY = "audio-only"
VIDEO_ONLY = "video-only"

PROFILE_NAMES = (MERGED, AUDIO_ONLY, VIDEO_ONLY)

DEFAULT_MAX_HEIGHT = 1080
DEFAULT_MAX_FPS = 30


def _merged_profile(max_height: int, max_fps: int) -> FormatProfile:
    video = f"bestvideo[height<={max_height}][fps<={max_fps}]"
    return FormatProfile(
        name=MERGED,
        media_kind=MediaKind.VIDEO,
        ydl_options=MappingProxyType({
            # Prefer mp4/m4a pairs so the merge is a remux, fall back to any pair
            "format": (
                f"{video}[ext=mp4]+bestaudio[ext=m4a]/"
                f"{video}+bestaudio/"
                f"best[height<={max_height}]"
            ),
            "merge_output_format": "mp4",
            # The single-file fallback skips the merger, so remux it to mp4 too
            "postprocessors": [
                {
                    "key": "FFmpegVideoRemuxer",
                    "preferedformat": "mp4",
                }
            ],
        }),
        output_extension="mp4",
        requires_merge=True,
        content_type="video/mp4",
        description=f"Best video up to {max_height}p/{max_fps}fps merged with best audio",
    )


def _audio_only_profile() -> FormatProfile:
    return FormatProfile(
        name=AUDIO_ONLY,
        media_kind=MediaKind.AUDIO,
        ydl_options=MappingProxyType({
            "format": "bestaudio/best",
            "postprocessors": [
                {
                    "key": "FFmpegExtractAudio",
                    "preferredcodec": "mp3",
                    "preferredquality": "192",
                }
            ],
        }),
        output_extension="mp3",
        requires_merge=False,
        content_type="audio/mpeg",
        description="Best audio stream transcoded to MP3",
    )


def _video_only_profile(max_height: int) -> FormatProfile:
    return FormatProfile(
        name=VIDEO_ONLY,
        media_kind=MediaKind.VIDEO_ONLY,
        ydl_options=MappingProxyType({
            "format": f"bestvideo[height<={max_height}][ext=mp4]/bestvideo[height<={max_height}]/bestvideo",
            "postprocessors": [
                {
                    "key": "FFmpegVideoConvertor",
                    "preferedformat": "mp4",
                }
            ],
        }),
        output_extension="mp4",
        requires_merge=False,
        content_type="video/mp4",
        description="Best video stream alone, no audio",
    )


class FormatProfileRegistry:
    """Immutable name -> FormatProfile lookup built once at startup."""

    def __init__(self, max_height: int = DEFAULT_MAX_HEIGHT, max_fps: int = DEFAULT_MAX_FPS):
        self._profiles: Dict[str, FormatProfile] = {
            MERGED: _merged_profile(max_height, max_fps),
            AUDIO_ONLY: _audio_only_profile(),
            VIDEO_ONLY: _video_only_profile(max_height),
        }

    def get(self, name: str) -> FormatProfile:
        """Look up a profile by name.

        Raises:
            ValidationError: If no profile has that name
        """
        try:
            return self._profiles[name]
        except KeyError:
            raise ValidationError(
                f"Unknown format profile '{name}'",
                {"allowed": list(PROFILE_NAMES)},
            ) from None

    def __contains__(self, name: str) -> bool:
        return name in self._profiles

    def __iter__(self):
        return iter(self._profiles.values())

    def names(self) -> list[str]:
        return list(self._profiles)
