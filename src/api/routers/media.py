"""Media download routes for the reelpipe API."""

import logging

from api.dependencies import get_delivery, get_pipeline, get_store
from api.schemas import DownloadRequest, ErrorResponse
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from services.artifact_store import ArtifactStore
from services.delivery import CONTENT_TYPES, DeliverySelector
from services.media_pipeline import MediaPipeline
from starlette.responses import Response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Media"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or invalid request fields"},
    500: {"model": ErrorResponse, "description": "Extraction, composition, or delivery failed"},
}


@router.post(
    "/download",
    summary="Download media",
    description=(
        "Extracts media from a URL and returns it. 'format' picks merged video+audio, "
        "audio-only, video-only, or a paired video+audio download. 'background_url' "
        "stacks a second source below the first over [start, end)."
    ),
    responses={
        200: {"description": "Media file, zip bundle, multipart body, or reference locators"},
        **ERROR_RESPONSES,
    },
)
async def download(
    request: DownloadRequest,
    pipeline: MediaPipeline = Depends(get_pipeline),
    delivery: DeliverySelector = Depends(get_delivery),
) -> Response:
    """Run the pipeline for one request and deliver the result."""
    time_range = request.time_range()

    if request.background_url:
        artifacts = [await pipeline.compose(request.url, request.background_url, time_range)]
    elif request.format == "paired":
        artifacts = await pipeline.produce_pair(request.url, time_range)
    else:
        artifacts = [await pipeline.produce(request.url, request.format, time_range)]

    try:
        return await delivery.deliver(artifacts)
    except BaseException:
        delivery.store.discard_all(a.path for a in artifacts)
        raise


@router.get(
    "/files/{name}",
    summary="Fetch stored artifact",
    description="Retrieves an artifact left in the store by reference delivery.",
    responses={500: {"model": ErrorResponse, "description": "Artifact missing or expired"}},
)
async def fetch_file(name: str, store: ArtifactStore = Depends(get_store)) -> FileResponse:
    path = store.resolve(name)
    return FileResponse(
        path,
        media_type=CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream"),
        filename=path.name,
    )
