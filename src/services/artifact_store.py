"""Transient filesystem store for in-flight and completed artifacts.

All files live flat in one directory and are named ``{kind}-{token}.{ext}``
with a uuid4 token, so concurrent requests never share a path and no locking
is needed. Cleanup is best-effort: discarding a path also removes siblings
that share its stem (yt-dlp ``.part``/``.ytdl`` files and per-format
intermediates such as ``video-<token>.f137.mp4``).
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from models.media import Artifact, MediaKind
from utils.errors import ArtifactMissing

logger = logging.getLogger(__name__)

# {kind}-{32 hex token} followed by one or more dotted suffixes
ARTIFACT_NAME_RE = re.compile(r"^[a-z][a-z_]*-[0-9a-f]{32}(\.[A-Za-z0-9_-]+)+$")


@dataclass
class StoredFile:
    """Diagnostic view of one file in the store."""

    name: str
    size: int
    modified_at: float

    def to_dict(self) -> dict:
        return {"name": self.name, "size": self.size, "modified_at": self.modified_at}


class ArtifactStore:
    """Flat directory of uniquely-named artifacts."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def ensure(self) -> Path:
        """Create the store directory if absent."""
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def allocate(self, kind: str, extension: str) -> Path:
        """Reserve a collision-free path for a new artifact."""
        self.ensure()
        token = uuid.uuid4().hex
        return self.root / f"{kind}-{token}.{extension.lstrip('.')}"

    def register(self, path: Path, media_kind: MediaKind, content_type: str) -> Artifact:
        """Wrap an existing file as an Artifact."""
        if not path.is_file():
            raise ArtifactMissing(f"Artifact not found in store: {path.name}")
        return Artifact(path=path, media_kind=media_kind, content_type=content_type)

    def discard(self, path: Optional[Path]) -> None:
        """Remove a file and its partial siblings. Idempotent."""
        if path is None:
            return
        path = Path(path)
        candidates = {path}
        if path.parent.is_dir():
            candidates.update(path.parent.glob(f"{path.stem}.*"))

        for candidate in candidates:
            try:
                candidate.unlink()
                logger.debug(f"Discarded {candidate.name}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to discard {candidate}: {e}")

    def discard_all(self, paths) -> None:
        for path in paths:
            self.discard(path)

    def resolve(self, name: str) -> Path:
        """Map a public file name back to a stored path.

        Raises:
            ArtifactMissing: If the name is not a store file name or is gone
        """
        if not ARTIFACT_NAME_RE.match(name) or Path(name).name != name:
            raise ArtifactMissing(f"Unknown artifact: {name}")
        path = self.root / name
        if not path.is_file():
            raise ArtifactMissing(f"Artifact not ready: {name}")
        return path

    def list_artifacts(self) -> List[StoredFile]:
        """List store contents; files removed mid-listing are skipped."""
        if not self.root.is_dir():
            return []

        files = []
        for path in sorted(self.root.iterdir()):
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue
            if not path.is_file():
                continue
            files.append(StoredFile(name=path.name, size=stat.st_size, modified_at=stat.st_mtime))
        return files

    def sweep(self, max_age_seconds: float, dry_run: bool = False) -> List[Path]:
        """Delete store files older than ``max_age_seconds``.

        Only names the store itself allocates are touched; anything else an
        operator put in the directory is left alone.

        Reclaims artifacts left behind for reference delivery and anything an
        abandoned request failed to clean up.

        Returns:
            Paths that were (or, with dry_run, would be) removed
        """
        cutoff = time.time() - max_age_seconds
        expired = [
            self.root / f.name
            for f in self.list_artifacts()
            if f.modified_at < cutoff and ARTIFACT_NAME_RE.match(f.name)
        ]

        if dry_run:
            return expired

        removed = []
        for path in expired:
            try:
                path.unlink()
                removed.append(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Sweep could not remove {path.name}: {e}")

        if removed:
            logger.info(f"Swept {len(removed)} expired artifacts from {self.root}")
        return removed
