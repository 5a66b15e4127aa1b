"""Request-level media pipeline.

One generic handler parameterized by format profile replaces a separate code
path per output flavour. Three request shapes are supported:

- single: one source, one profile, one artifact
- paired: one source, video-only and audio-only artifacts
- composed: two sources stacked over a shared time range
"""

import logging
from typing import List, Optional

from models.media import Artifact, TimeRange
from services.artifact_store import ArtifactStore
from services.composition import CompositionPipeline
from services.format_profiles import AUDIO_ONLY, VIDEO_ONLY, FormatProfileRegistry
from services.orchestrator import ResilientExtractor

logger = logging.getLogger(__name__)


class MediaPipeline:
    """Turns validated requests into artifacts in the transient store."""

    def __init__(
        self,
        extractor: ResilientExtractor,
        composition: CompositionPipeline,
        store: ArtifactStore,
        profiles: FormatProfileRegistry,
    ):
        self.extractor = extractor
        self.composition = composition
        self.store = store
        self.profiles = profiles

    async def produce(
        self,
        source_url: str,
        profile_name: str,
        time_range: Optional[TimeRange] = None,
    ) -> Artifact:
        """Extract one artifact with the named profile."""
        profile = self.profiles.get(profile_name)
        destination = self.store.allocate(profile.media_kind.value, profile.output_extension)

        try:
            path = await self.extractor.extract(source_url, profile, destination, time_range)
            return self.store.register(path, profile.media_kind, profile.content_type)
        except BaseException:
            self.store.discard(destination)
            raise

    async def produce_pair(
        self,
        source_url: str,
        time_range: Optional[TimeRange] = None,
    ) -> List[Artifact]:
        """Extract separate video-only and audio-only artifacts of one source."""
        video = await self.produce(source_url, VIDEO_ONLY, time_range)
        try:
            audio = await self.produce(source_url, AUDIO_ONLY, time_range)
        except BaseException:
            self.store.discard(video.path)
            raise
        return [video, audio]

    async def compose(
        self,
        primary_url: str,
        secondary_url: str,
        time_range: TimeRange,
    ) -> Artifact:
        """Stack a segment of ``secondary_url`` under the same range of ``primary_url``."""
        logger.info(
            f"Composing {primary_url} over {secondary_url} "
            f"[{time_range.start_seconds}s, {time_range.end_seconds}s)"
        )
        return await self.composition.run(primary_url, secondary_url, time_range)
