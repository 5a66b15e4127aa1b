"""Shared pytest fixtures for reelpipe tests."""

import sys
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Generator, Optional, Union

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.media import EngineResult  # noqa: E402
from services.artifact_store import ArtifactStore  # noqa: E402
from services.composition import CompositingEngine, CompositionPipeline  # noqa: E402
from services.credential_pool import CredentialPool  # noqa: E402
from services.extraction import ExtractionEngine, ExtractionInvoker  # noqa: E402
from services.format_profiles import FormatProfileRegistry  # noqa: E402
from services.media_pipeline import MediaPipeline  # noqa: E402
from services.orchestrator import ResilientExtractor  # noqa: E402

SIGN_IN_ERROR = "ERROR: [youtube] abc123: Sign in to confirm you're not a bot. Use --cookies for the authentication."
UNAVAILABLE_ERROR = "ERROR: [youtube] abc123: Video unavailable. This video has been removed by the uploader"

Behavior = Union[str, Callable[..., EngineResult]]


class FakeExtractionEngine(ExtractionEngine):
    """Scripted extraction engine that writes files instead of downloading.

    ``script`` maps a key to a behavior. Keys are looked up in order:
    (source_url, credential_id), credential_id, source_url. A behavior is
    "ok" (write the file, exit 0) or error text (exit 1), or a callable
    returning an EngineResult.
    """

    def __init__(self, script: Optional[Dict] = None):
        self.script = script or {}
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def _behavior(self, source_url: str, credential_id: Optional[str]) -> Behavior:
        for key in ((source_url, credential_id), credential_id, source_url):
            if key in self.script:
                return self.script[key]
        return "ok"

    def extract(self, source_url, options, credential_path, time_range, output_path) -> EngineResult:
        credential_id = credential_path.name if credential_path else None
        with self._lock:
            self.calls.append({
                "source_url": source_url,
                "credential": credential_id,
                "format": options.get("format"),
                "time_range": time_range,
                "output_path": output_path,
            })

        behavior = self._behavior(source_url, credential_id)
        if callable(behavior):
            return behavior(source_url, options, credential_path, time_range, output_path)
        if behavior == "ok":
            output_path.write_bytes(f"media:{source_url}:{options.get('format')}".encode())
            return EngineResult(exit_status=0, stdout="[download] 100%")

        # Simulate yt-dlp leaving a partial download behind
        output_path.with_suffix(output_path.suffix + ".part").write_bytes(b"partial")
        return EngineResult(exit_status=1, stderr=behavior)

    @property
    def credentials_tried(self) -> list:
        return [call["credential"] for call in self.calls]


class FakeCompositingEngine(CompositingEngine):
    """Compositing engine that concatenates its inputs into the output."""

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.calls: list[dict] = []

    def composite(self, inputs, filter_spec, output_path, output_args=()) -> EngineResult:
        self.calls.append({
            "inputs": list(inputs),
            "inputs_existed": [Path(p).is_file() for p in inputs],
            "filter_spec": filter_spec,
            "output_path": output_path,
            "output_args": list(output_args),
        })
        if self.fail_with:
            output_path.write_bytes(b"truncated")
            return EngineResult(exit_status=1, stderr=self.fail_with)
        output_path.write_bytes(b"".join(Path(p).read_bytes() for p in inputs))
        return EngineResult(exit_status=0)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir) -> ArtifactStore:
    return ArtifactStore(temp_dir / "downloads")


@pytest.fixture
def cookies_dir(temp_dir) -> Path:
    """Cookie directory with three credentials: a.txt, b.txt, c.txt."""
    path = temp_dir / "cookies"
    path.mkdir()
    for name in ("c.txt", "a.txt", "b.txt"):
        (path / name).write_text("# Netscape HTTP Cookie File\n")
    return path


@pytest.fixture
def pool(cookies_dir) -> CredentialPool:
    return CredentialPool(cookies_dir)


@pytest.fixture
def profiles() -> FormatProfileRegistry:
    return FormatProfileRegistry(max_height=1080, max_fps=30)


@pytest.fixture
def make_engine():
    """Factory for scripted extraction engines."""
    return FakeExtractionEngine


@pytest.fixture
def make_compositor():
    """Factory for fake compositing engines."""
    return FakeCompositingEngine


@pytest.fixture
def build_pipeline(pool, store, profiles):
    """Wire a MediaPipeline around fake engines."""

    def _build(engine=None, compositor=None, parallel_segments=False, classifier=None):
        engine = engine or FakeExtractionEngine()
        compositor = compositor or FakeCompositingEngine()
        invoker_kwargs = {"cleanup": store.discard}
        if classifier is not None:
            invoker_kwargs["classifier"] = classifier
        extractor = ResilientExtractor(pool, ExtractionInvoker(engine, **invoker_kwargs))
        composition = CompositionPipeline(
            extractor,
            compositor,
            store,
            profiles,
            target_width=1920,
            target_height=1080,
            parallel_segments=parallel_segments,
        )
        return MediaPipeline(extractor, composition, store, profiles)

    return _build


@pytest.fixture
def sample_config(temp_dir) -> Dict:
    """Sample configuration for testing."""
    return {
        "storage_dir": str(temp_dir / "downloads"),
        "cookies_dir": str(temp_dir / "cookies"),
        "max_height": 1080,
        "max_fps": 30,
        "target_width": 1920,
        "target_height": 1080,
        "ffmpeg_binary": "ffmpeg",
        "extraction_timeout_seconds": 900.0,
        "composition_timeout_seconds": 900.0,
        "ytdlp_retries": 3,
        "parallel_segments": False,
        "paired_delivery": "zip",
        "public_base_url": "http://testserver",
        "artifact_retention_minutes": 60.0,
        "sweep_interval_seconds": 300.0,
        "log_level": "INFO",
        "log_json": False,
        "port": 3000,
    }
