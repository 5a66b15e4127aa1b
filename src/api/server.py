#!/usr/bin/env python
"""FastAPI server for the reelpipe media pipeline."""

import asyncio
import sys
import uuid
from contextlib import asynccontextmanager, suppress
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_config, get_store
from api.routers import core, media
from services.artifact_store import ArtifactStore
from utils.config import validate_config
from utils.errors import ReelpipeError, ValidationError
from utils.logging import clear_request_context, get_logger, set_request_context, setup_logging

logger = get_logger(__name__)

# Keep references to background tasks to prevent garbage collection
_background_tasks: set = set()


async def sweep_periodically(store: ArtifactStore, max_age_seconds: float, interval_seconds: float) -> None:
    """Reclaim expired artifacts until cancelled."""
    loop = asyncio.get_running_loop()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await loop.run_in_executor(None, store.sweep, max_age_seconds)
        except OSError as e:
            logger.warning(f"Artifact sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    setup_logging(config["log_level"], json_output=config["log_json"])

    for problem in validate_config(config):
        logger.warning(f"Configuration: {problem}")

    store = get_store()
    store.ensure()
    logger.info(f"Artifact store: {store.root}")

    task = asyncio.create_task(
        sweep_periodically(
            store,
            max_age_seconds=config["artifact_retention_minutes"] * 60,
            interval_seconds=config["sweep_interval_seconds"],
        )
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    yield

    task.cancel()
    with suppress(asyncio.CancelledError):
        await task


app = FastAPI(title="Reelpipe API", version=core.API_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every request with an id for log correlation."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    tokens = set_request_context(request_id)
    try:
        response = await call_next(request)
    finally:
        clear_request_context(tokens)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(ReelpipeError)
async def reelpipe_error_handler(request: Request, exc: ReelpipeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc}")
    else:
        logger.info(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        message = error.get("msg", "invalid value")
        problems.append(f"{location}: {message}" if location else message)

    error = ValidationError("; ".join(problems) or "Invalid request")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(core.router)
app.include_router(media.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_config()["port"], log_level="info")
