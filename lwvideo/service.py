"""lwvideo microservice -- FastAPI application.

Endpoints:
    POST /inspect   -- Summarize an uploaded save file
    POST /inject    -- Add a display circuit for uploaded frames to a save
    POST /preview   -- Render uploaded frames as a thresholded PNG contact sheet
    GET  /health    -- Health check
"""

from __future__ import annotations

import io
import tempfile
from pathlib import Path

import structlog
from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from PIL import UnidentifiedImageError
from pydantic import BaseModel, Field

from . import __version__
from .blotter import BlotterFile
from .frames import load_frames
from .inject import inject
from .preview import render_png

structlog.configure(
    processors=[
        structlog.dev.ConsoleRenderer(),
    ],
)

logger = structlog.get_logger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024
MAX_TOTAL_FRAME_BYTES = 200 * 1024 * 1024
FRAME_CONTENT_TYPES = ("image/png", "image/jpeg", "image/webp")

app = FastAPI(
    title="lwvideo",
    description="Encode video frames as a Logic World display circuit",
    version=__version__,
)


# --------------------------------------------------------------------------
# Request / Response models
# --------------------------------------------------------------------------


class InspectResponse(BaseModel):
    """Response body for /inspect."""

    version: int = Field(description="Save format version")
    game_version: str = Field(description="Game version that wrote the save")
    save_type: str = Field(description="WORLD, SUBASSEMBLY or UNKNOWN")
    components: int
    wires: int
    mods: list[str] = Field(default_factory=list)
    component_types: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response body for /health."""

    status: str
    service: str
    version: str


# --------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------


async def _read_upload(upload: UploadFile) -> bytes:
    data = await upload.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Upload too large (max 50MB)")
    return data


def _check_frame_type(upload: UploadFile) -> None:
    if upload.content_type and upload.content_type not in FRAME_CONTENT_TYPES:
        raise HTTPException(
            status_code=422,
            detail=f"Unsupported frame type: {upload.content_type}. Use PNG, JPEG, or WebP.",
        )


async def _save_frames(frames: list[UploadFile], frames_dir: Path) -> list[Path]:
    """Write uploaded frames to disk, ordered by their file names."""
    paths: list[Path] = []
    total = 0
    for index, upload in enumerate(sorted(frames, key=lambda f: f.filename or "")):
        _check_frame_type(upload)
        data = await _read_upload(upload)
        total += len(data)
        if total > MAX_TOTAL_FRAME_BYTES:
            raise HTTPException(status_code=413, detail="Frames too large in total (max 200MB)")
        path = frames_dir / f"{index:05d}{Path(upload.filename or '').suffix or '.png'}"
        path.write_bytes(data)
        paths.append(path)
    return paths


# --------------------------------------------------------------------------
# Endpoints
# --------------------------------------------------------------------------


@app.post("/inspect", response_model=InspectResponse)
async def inspect_save(save: UploadFile = File(...)) -> InspectResponse:
    """Summarize a Logic World save file."""
    data = await _read_upload(save)
    try:
        parsed = BlotterFile.read(io.BytesIO(data))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return InspectResponse(**parsed.summary())


@app.post(
    "/inject",
    response_class=Response,
    responses={
        200: {"content": {"application/octet-stream": {}}, "description": "Modified save"},
        422: {"description": "Invalid save or frames"},
    },
)
async def inject_frames(
    save: UploadFile = File(...),
    frames: list[UploadFile] = File(...),
) -> Response:
    """Add a display circuit playing the uploaded frames to a save file."""
    data = await _read_upload(save)
    try:
        parsed = BlotterFile.read(io.BytesIO(data))
        with tempfile.TemporaryDirectory(prefix="lwvideo-") as tmp:
            paths = await _save_frames(frames, Path(tmp))
            stats = inject(parsed, paths)
        out = io.BytesIO()
        parsed.write(out)
    except HTTPException:
        raise
    except (ValueError, UnidentifiedImageError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("inject_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Injection failed")

    logger.info(
        "inject_served",
        frames=stats.frames,
        components_added=stats.components_added,
        bytes=out.tell(),
    )
    return Response(
        content=out.getvalue(),
        media_type="application/octet-stream",
        headers={"Content-Disposition": 'attachment; filename="data.logicworld"'},
    )


@app.post(
    "/preview",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "PNG contact sheet"},
        422: {"description": "Invalid frames"},
    },
)
async def preview_frames(
    frames: list[UploadFile] = File(...),
    columns: int = Query(default=10, ge=1, le=100),
    scale: int = Query(default=4, ge=1, le=32),
) -> Response:
    """Render the 1-bit version of the uploaded frames."""
    try:
        with tempfile.TemporaryDirectory(prefix="lwvideo-") as tmp:
            paths = await _save_frames(frames, Path(tmp))
            bitmaps = [bitmap for _path, bitmap in load_frames(paths)]
        png_bytes = render_png(bitmaps, columns, scale)
    except HTTPException:
        raise
    except (ValueError, UnidentifiedImageError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("preview_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Preview failed")

    return Response(content=png_bytes, media_type="image/png")


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint for Docker and load balancers."""
    return HealthResponse(
        status="healthy",
        service="lwvideo",
        version=__version__,
    )
