"""Core routes for the reelpipe API (root, health check, diagnostics)."""

from api.dependencies import get_config, get_profiles, get_store
from api.schemas import ArtifactListResponse, HealthResponse, ProfileListResponse, RootResponse
from fastapi import APIRouter, Depends
from services.artifact_store import ArtifactStore
from services.format_profiles import FormatProfileRegistry

API_VERSION = "1.0.0"

router = APIRouter(tags=["Core"])


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name and version.",
)
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Reelpipe API", "version": API_VERSION}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health status.",
)
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get(
    "/api/profiles",
    response_model=ProfileListResponse,
    summary="Format profiles",
    description="Lists the fixed extraction profiles and the paired delivery policy.",
)
async def list_profiles(
    profiles: FormatProfileRegistry = Depends(get_profiles),
    config: dict = Depends(get_config),
) -> dict:
    return {
        "profiles": [profile.to_dict() for profile in profiles],
        "paired_delivery": config["paired_delivery"],
    }


@router.get(
    "/api/artifacts",
    response_model=ArtifactListResponse,
    summary="Artifact store listing",
    description="Lists files currently held in the transient artifact store.",
)
async def list_artifacts(store: ArtifactStore = Depends(get_store)) -> dict:
    return {
        "storage_dir": str(store.root),
        "artifacts": [f.to_dict() for f in store.list_artifacts()],
    }
