"""Dual-source composition: two time-bounded segments stacked with FFmpeg.

The primary source provides the top half and the only audio track; the
secondary ("background") source provides the bottom half. Segments are cut
at extraction time so intermediates never exceed the requested range.

Segment files are always discarded before ``run`` returns, whether
extraction, compositing, or nothing failed.
"""

import asyncio
import functools
import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from models.media import Artifact, CompositionJob, EngineResult, MediaKind, TimeRange
from services.artifact_store import ArtifactStore
from services.format_profiles import MERGED, VIDEO_ONLY, FormatProfileRegistry
from services.orchestrator import ResilientExtractor
from utils.errors import CompositionFailure, ReelpipeError

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
COMPOSED_CONTENT_TYPE = "video/mp4"

# H.264 + AAC, primary audio only, stop at the shorter segment
STACK_OUTPUT_ARGS = (
    "-map", "[stacked]",
    "-map", "0:a?",
    "-c:v", "libx264",
    "-preset", "veryfast",
    "-crf", "23",
    "-pix_fmt", "yuv420p",
    "-c:a", "aac",
    "-b:a", "192k",
    "-shortest",
    "-movflags", "+faststart",
)


class CompositingEngine(ABC):
    """Contract for the external compositing engine."""

    @abstractmethod
    def composite(
        self,
        inputs: Sequence[Path],
        filter_spec: str,
        output_path: Path,
        output_args: Sequence[str] = (),
    ) -> EngineResult:
        """Apply ``filter_spec`` to ``inputs`` and write ``output_path``.

        Blocks until done. Must not raise: failures are reported through a
        non-zero exit status.
        """


class FFmpegEngine(CompositingEngine):
    """Compositing engine that shells out to the ffmpeg binary."""

    def __init__(self, binary: str = "ffmpeg", timeout: Optional[float] = 900):
        self.binary = binary
        self.timeout = timeout

    def build_command(
        self,
        inputs: Sequence[Path],
        filter_spec: str,
        output_path: Path,
        output_args: Sequence[str] = (),
    ) -> list[str]:
        cmd = [self.binary, "-y", "-hide_banner", "-loglevel", "error"]
        for path in inputs:
            cmd.extend(["-i", str(path)])
        cmd.extend(["-filter_complex", filter_spec])
        cmd.extend(output_args)
        cmd.append(str(output_path))
        return cmd

    def composite(
        self,
        inputs: Sequence[Path],
        filter_spec: str,
        output_path: Path,
        output_args: Sequence[str] = (),
    ) -> EngineResult:
        cmd = self.build_command(inputs, filter_spec, output_path, output_args)
        logger.info(f"FFmpeg: composite {len(inputs)} inputs -> {output_path.name}")
        logger.debug(f"Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            return EngineResult(exit_status=127, stderr=f"{self.binary} not found")
        except subprocess.TimeoutExpired:
            return EngineResult(exit_status=124, stderr=f"{self.binary} timed out after {self.timeout}s")

        if result.returncode != 0:
            logger.error(f"FFmpeg stderr: {result.stderr[-1000:]}")

        return EngineResult(
            exit_status=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )


def stacked_dimensions(width: int, height: int) -> tuple[int, int, int]:
    """Return (width, segment_height, output_height) for a vertical stack.

    Each segment gets half the target height, rounded down to an even number
    so the stacked frame stays encodable as yuv420p.
    """
    segment_height = (height // 4) * 2
    return width, segment_height, segment_height * 2


def build_stack_filter(width: int, height: int) -> str:
    """Filter graph that fills both inputs to width x height/2 and stacks them."""
    w, h, _ = stacked_dimensions(width, height)
    fit = f"scale={w}:{h}:force_original_aspect_ratio=increase,crop={w}:{h},setsar=1"
    return (
        f"[0:v]{fit}[top];"
        f"[1:v]{fit}[bottom];"
        f"[top][bottom]vstack=inputs=2[stacked]"
    )


class CompositionPipeline:
    """Extract two segments, stack them, discard the segments."""

    def __init__(
        self,
        extractor: ResilientExtractor,
        engine: CompositingEngine,
        store: ArtifactStore,
        profiles: FormatProfileRegistry,
        target_width: int = DEFAULT_WIDTH,
        target_height: int = DEFAULT_HEIGHT,
        parallel_segments: bool = False,
    ):
        self.extractor = extractor
        self.engine = engine
        self.store = store
        self.profiles = profiles
        self.target_width = target_width
        self.target_height = target_height
        self.parallel_segments = parallel_segments

    async def run(self, primary_url: str, secondary_url: str, time_range: TimeRange) -> Artifact:
        """Produce one composed artifact from two sources.

        Raises:
            CredentialsExhausted, ExtractionFatalFailure: If either segment
                fails; ``details["segment"]`` names which one
            CompositionFailure: If FFmpeg fails
        """
        primary_profile = self.profiles.get(MERGED)
        secondary_profile = self.profiles.get(VIDEO_ONLY)

        primary_path = self.store.allocate("segment", primary_profile.output_extension)
        secondary_path = self.store.allocate("segment", secondary_profile.output_extension)

        try:
            segments = (
                ("primary", primary_url, primary_profile, primary_path),
                ("secondary", secondary_url, secondary_profile, secondary_path),
            )
            if self.parallel_segments:
                await self._extract_concurrently(segments, time_range)
            else:
                for role, url, profile, path in segments:
                    await self._extract_segment(role, url, profile, path, time_range)

            job = CompositionJob(
                primary_segment=self.store.register(
                    primary_path, primary_profile.media_kind, primary_profile.content_type
                ),
                secondary_segment=self.store.register(
                    secondary_path, secondary_profile.media_kind, secondary_profile.content_type
                ),
                time_range=time_range,
                output_path=self.store.allocate("composed", "mp4"),
            )
            return await self._composite(job)
        finally:
            self.store.discard(primary_path)
            self.store.discard(secondary_path)

    async def _extract_segment(self, role, url, profile, path, time_range) -> Path:
        try:
            return await self.extractor.extract(url, profile, path, time_range)
        except ReelpipeError as e:
            e.details["segment"] = role
            logger.error(f"{role.capitalize()} segment extraction failed for {url}: {e.message[:300]}")
            raise

    async def _extract_concurrently(self, segments, time_range) -> None:
        results = await asyncio.gather(
            *(self._extract_segment(role, url, profile, path, time_range)
              for role, url, profile, path in segments),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]

    async def _composite(self, job: CompositionJob) -> Artifact:
        inputs = [job.primary_segment.path, job.secondary_segment.path]
        filter_spec = build_stack_filter(self.target_width, self.target_height)

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            None,
            functools.partial(
                self.engine.composite, inputs, filter_spec, job.output_path, STACK_OUTPUT_ARGS
            ),
        )

        try:
            result = await asyncio.shield(future)
        except asyncio.CancelledError:
            future.add_done_callback(lambda _f: self.store.discard(job.output_path))
            raise

        if not result.ok or not job.output_path.is_file():
            self.store.discard(job.output_path)
            reason = result.stderr.strip()[-500:] or f"exit status {result.exit_status}"
            raise CompositionFailure(
                f"Composition failed: {reason}",
                {"exit_status": result.exit_status},
            )

        _, _, output_height = stacked_dimensions(self.target_width, self.target_height)
        logger.info(
            f"Composed {job.output_path.name} ({self.target_width}x{output_height}, "
            f"{job.time_range.duration:.1f}s)"
        )
        return self.store.register(job.output_path, MediaKind.VIDEO, COMPOSED_CONTENT_TYPE)
