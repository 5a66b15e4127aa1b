"""Service singletons and dependency injection for the reelpipe API."""

from services.artifact_store import ArtifactStore
from services.composition import CompositionPipeline, FFmpegEngine
from services.credential_pool import CredentialPool
from services.delivery import DeliverySelector, PairedPolicy
from services.extraction import ExtractionInvoker, YtDlpEngine
from services.format_profiles import FormatProfileRegistry
from services.media_pipeline import MediaPipeline
from services.orchestrator import ResilientExtractor
from utils.config import load_config

# Service singletons
_config: dict | None = None
_store: ArtifactStore | None = None
_pool: CredentialPool | None = None
_profiles: FormatProfileRegistry | None = None
_pipeline: MediaPipeline | None = None
_delivery: DeliverySelector | None = None


def get_config() -> dict:
    """Get the process configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_store() -> ArtifactStore:
    """Get or create the transient artifact store."""
    global _store
    if _store is None:
        _store = ArtifactStore(get_config()["storage_dir"])
    return _store


def get_credential_pool() -> CredentialPool:
    """Get or create the shared credential pool."""
    global _pool
    if _pool is None:
        _pool = CredentialPool(get_config()["cookies_dir"])
    return _pool


def get_profiles() -> FormatProfileRegistry:
    """Get or create the format profile registry."""
    global _profiles
    if _profiles is None:
        config = get_config()
        _profiles = FormatProfileRegistry(
            max_height=config["max_height"],
            max_fps=config["max_fps"],
        )
    return _profiles


def get_pipeline() -> MediaPipeline:
    """Get or create the media pipeline with its engines."""
    global _pipeline
    if _pipeline is None:
        config = get_config()
        store = get_store()
        profiles = get_profiles()

        invoker = ExtractionInvoker(
            YtDlpEngine(retries=config["ytdlp_retries"]),
            timeout=config["extraction_timeout_seconds"],
            cleanup=store.discard,
        )
        extractor = ResilientExtractor(get_credential_pool(), invoker)
        composition = CompositionPipeline(
            extractor,
            FFmpegEngine(
                binary=config["ffmpeg_binary"],
                timeout=config["composition_timeout_seconds"],
            ),
            store,
            profiles,
            target_width=config["target_width"],
            target_height=config["target_height"],
            parallel_segments=config["parallel_segments"],
        )
        _pipeline = MediaPipeline(extractor, composition, store, profiles)
    return _pipeline


def get_delivery() -> DeliverySelector:
    """Get or create the delivery strategy selector."""
    global _delivery
    if _delivery is None:
        config = get_config()
        _delivery = DeliverySelector(
            get_store(),
            paired_policy=PairedPolicy(config["paired_delivery"]),
            public_base_url=config["public_base_url"],
        )
    return _delivery
