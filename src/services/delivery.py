"""Delivery strategies for produced artifacts.

A single artifact is streamed as a file. Two artifacts (a paired video+audio
download) go out under one of three deployment-wide policies:

- zip: one stored archive with deterministic member names
- multipart: one multipart/mixed body, one part per artifact
- reference: JSON locators; files stay in the store until the retention sweep

Streamed artifacts are discarded by a background task once the body is sent.
"""

import asyncio
import logging
import uuid
import zipfile
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Sequence

from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.responses import Response

from models.media import Artifact, MediaKind
from services.artifact_store import ArtifactStore
from utils.errors import ArtifactMissing

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".webm": "video/webm",
    ".zip": "application/zip",
}


class PairedPolicy(str, Enum):
    """How two artifacts are handed to the caller."""

    ZIP = "zip"
    MULTIPART = "multipart"
    REFERENCE = "reference"


def content_type_for(artifact: Artifact) -> str:
    """Content type from the artifact, then its extension, then its media kind."""
    if artifact.content_type:
        return artifact.content_type
    suffix_type = CONTENT_TYPES.get(artifact.path.suffix.lower())
    if suffix_type:
        return suffix_type
    return "audio/mpeg" if artifact.media_kind == MediaKind.AUDIO else "video/mp4"


def member_names(artifacts: Sequence[Artifact]) -> List[str]:
    """Deterministic names for bundle members: video.mp4, audio.mp3, ..."""
    names = []
    for artifact in artifacts:
        role = "audio" if artifact.media_kind == MediaKind.AUDIO else "video"
        name = f"{role}{artifact.path.suffix}"
        if name in names:
            name = f"{role}-{len(names) + 1}{artifact.path.suffix}"
        names.append(name)
    return names


class DeliverySelector:
    """Picks and builds the HTTP response for produced artifacts."""

    def __init__(
        self,
        store: ArtifactStore,
        paired_policy: PairedPolicy = PairedPolicy.ZIP,
        public_base_url: str = "http://localhost:3000",
    ):
        self.store = store
        self.paired_policy = PairedPolicy(paired_policy)
        self.public_base_url = public_base_url.rstrip("/")

    async def deliver(self, artifacts: Sequence[Artifact]) -> Response:
        """Deliver one artifact as a file, or two under the paired policy."""
        if len(artifacts) == 1:
            return self.deliver_file(artifacts[0])
        if len(artifacts) != 2:
            raise ValueError(f"Expected 1 or 2 artifacts, got {len(artifacts)}")

        if self.paired_policy == PairedPolicy.ZIP:
            return await self.deliver_zip(artifacts)
        if self.paired_policy == PairedPolicy.MULTIPART:
            return self.deliver_multipart(artifacts)
        return self.deliver_references(artifacts)

    def _require_ready(self, artifacts: Sequence[Artifact]) -> None:
        for artifact in artifacts:
            if not artifact.exists():
                raise ArtifactMissing(
                    f"Artifact not ready: {artifact.name}",
                    {"path": str(artifact.path)},
                )

    def deliver_file(self, artifact: Artifact, cleanup: bool = True) -> FileResponse:
        """Stream one artifact; discard it afterwards unless ``cleanup`` is False."""
        self._require_ready([artifact])
        logger.info(f"Delivering {artifact.name} ({artifact.size} bytes)")

        return FileResponse(
            artifact.path,
            media_type=content_type_for(artifact),
            filename=artifact.name,
            background=BackgroundTask(self.store.discard, artifact.path) if cleanup else None,
        )

    async def deliver_zip(self, artifacts: Sequence[Artifact]) -> FileResponse:
        self._require_ready(artifacts)
        bundle_path = self.store.allocate("bundle", "zip")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_zip, bundle_path, list(artifacts))
        except BaseException:
            self.store.discard(bundle_path)
            raise

        paths = [bundle_path, *(a.path for a in artifacts)]
        return FileResponse(
            bundle_path,
            media_type="application/zip",
            filename=bundle_path.name,
            background=BackgroundTask(self.store.discard_all, paths),
        )

    @staticmethod
    def _write_zip(bundle_path: Path, artifacts: List[Artifact]) -> None:
        # Media is already compressed; store members as-is
        with zipfile.ZipFile(bundle_path, "w", zipfile.ZIP_STORED) as zf:
            for artifact, name in zip(artifacts, member_names(artifacts)):
                zf.write(artifact.path, arcname=name)

    def deliver_multipart(self, artifacts: Sequence[Artifact]) -> StreamingResponse:
        self._require_ready(artifacts)
        boundary = uuid.uuid4().hex

        return StreamingResponse(
            self._iter_multipart(list(artifacts), boundary),
            media_type=f"multipart/mixed; boundary={boundary}",
            background=BackgroundTask(self.store.discard_all, [a.path for a in artifacts]),
        )

    @staticmethod
    def _iter_multipart(artifacts: List[Artifact], boundary: str) -> Iterator[bytes]:
        for artifact, name in zip(artifacts, member_names(artifacts)):
            headers = (
                f"--{boundary}\r\n"
                f"Content-Type: {content_type_for(artifact)}\r\n"
                f'Content-Disposition: attachment; filename="{name}"\r\n'
                f"Content-Length: {artifact.size}\r\n"
                "\r\n"
            )
            yield headers.encode("ascii")
            with open(artifact.path, "rb") as f:
                while True:
                    data = f.read(CHUNK_SIZE)
                    if not data:
                        break
                    yield data
            yield b"\r\n"
        yield f"--{boundary}--\r\n".encode("ascii")

    def deliver_references(self, artifacts: Sequence[Artifact]) -> JSONResponse:
        """Return locators; the files are left for the retention sweep."""
        self._require_ready(artifacts)
        body = {}
        for artifact, name in zip(artifacts, member_names(artifacts)):
            key = f"{Path(name).stem.replace('-', '_')}_url"
            body[key] = self.locator(artifact)
        return JSONResponse(body)

    def locator(self, artifact: Artifact) -> str:
        return f"{self.public_base_url}/files/{artifact.name}"
