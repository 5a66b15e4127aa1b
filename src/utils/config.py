"""Configuration loading and validation for reelpipe."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

PAIRED_DELIVERY_POLICIES = ("zip", "multipart", "reference")


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Transient artifact store and credential pool
        "storage_dir": resolve_path(os.getenv("STORAGE_DIR"), "downloads"),
        "cookies_dir": resolve_path(os.getenv("COOKIES_DIR"), "cookies"),
        # Format profile limits
        "max_height": int(os.getenv("MAX_HEIGHT", "1080")),
        "max_fps": int(os.getenv("MAX_FPS", "30")),
        # Composition output size (each source gets half the height)
        "target_width": int(os.getenv("TARGET_WIDTH", "1920")),
        "target_height": int(os.getenv("TARGET_HEIGHT", "1080")),
        "ffmpeg_binary": os.getenv("FFMPEG_BINARY", "ffmpeg"),
        # Engine timeouts
        "extraction_timeout_seconds": float(os.getenv("EXTRACTION_TIMEOUT_SECONDS", "900")),
        "composition_timeout_seconds": float(os.getenv("COMPOSITION_TIMEOUT_SECONDS", "900")),
        "ytdlp_retries": int(os.getenv("YTDLP_RETRIES", "3")),
        # Extract both composition segments at once instead of one after the other
        "parallel_segments": os.getenv("PARALLEL_SEGMENTS", "false").lower() == "true",
        # Delivery
        "paired_delivery": os.getenv("PAIRED_DELIVERY", "zip").lower(),
        "public_base_url": os.getenv("PUBLIC_BASE_URL", "http://localhost:3000"),
        # Retention sweep for reference-delivered and abandoned artifacts
        "artifact_retention_minutes": float(os.getenv("ARTIFACT_RETENTION_MINUTES", "60")),
        "sweep_interval_seconds": float(os.getenv("SWEEP_INTERVAL_SECONDS", "300")),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
        # Server
        "port": int(os.getenv("PORT", "3000")),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if config.get("paired_delivery") not in PAIRED_DELIVERY_POLICIES:
        errors.append(
            f"PAIRED_DELIVERY must be one of {', '.join(PAIRED_DELIVERY_POLICIES)}"
        )

    if config.get("target_width", 0) <= 0 or config.get("target_height", 0) < 4:
        errors.append("TARGET_WIDTH and TARGET_HEIGHT must be positive")

    if config.get("max_height", 0) <= 0 or config.get("max_fps", 0) <= 0:
        errors.append("MAX_HEIGHT and MAX_FPS must be positive")

    # Validate local paths exist
    storage_path = Path(config["storage_dir"])
    try:
        storage_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        errors.append(f"Cannot create storage directory: {e}")

    cookies_path = Path(config["cookies_dir"])
    if not cookies_path.is_dir():
        errors.append(f"Cookies directory does not exist: {cookies_path}")
    elif not any(cookies_path.glob("*.txt")):
        errors.append(f"Cookies directory has no credential files: {cookies_path}")

    return errors
