"""
Portfolio Curator Main Application
==================================

FastAPI entry point for the still-extraction service.

Flow:
    1. Client uploads a video (raw request body)
    2. A background task samples it into a run of JPEG stills
    3. Client polls /runs/current or listens on /ws/progress
    4. Client toggles, bulk-selects and deletes frames
    5. Client downloads the selected stills as a zip archive

Endpoints:
    GET    /                      - Service information
    GET    /health                - Liveness probe
    GET    /metrics               - Handle registry and engine metrics
    POST   /runs                  - Upload a video and start sampling
    GET    /runs/current          - Status and progress of the current run
    DELETE /runs/current          - Start over (discard run, release handles)
    GET    /frames                - Ordered frame gallery
    GET    /frames/{id}/image     - JPEG payload of one frame
    POST   /frames/{id}/toggle    - Flip one frame's selection
    POST   /frames/select         - Select or deselect every frame
    POST   /frames/toggle-all     - Select all, or deselect all if all selected
    DELETE /frames/{id}           - Delete one frame, returns successor
    GET    /export                - Zip archive of selected frames
    WS     /ws/progress           - Real-time run progress
"""

import asyncio
import logging
import os
import tempfile
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse, Response

from portfolio_curator.config import settings
from portfolio_curator.decode import (
    DecodeSource,
    MetadataLoadError,
    MockDecodeSource,
    OpenCVDecodeSource,
)
from portfolio_curator.export import ArchiveBuildError, NothingSelectedError
from portfolio_curator.lifecycle import FrameNotFoundError, HandleError
from portfolio_curator.models import (
    FrameListView,
    FrameView,
    RemovalView,
    RunView,
    SamplingRun,
    SelectRequest,
)
from portfolio_curator.sampling import RasterTargetError
from portfolio_curator.session import (
    CuratorSession,
    ExportInProgressError,
    NoActiveRunError,
    RunInProgressError,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_session: Optional[CuratorSession] = None
_sampling_task: Optional[asyncio.Task] = None

# Most recently uploaded run (visible before its task acquires the session)
_latest_run: Optional[SamplingRun] = None

# Set while an upload body is streaming, before its sampling task exists
_upload_pending: bool = False

_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_session() -> CuratorSession:
    if _session is None:
        raise RuntimeError("Curator session not initialized")
    return _session

def get_latest_run() -> Optional[SamplingRun]:
    return _latest_run

def sampling_in_flight() -> bool:
    return _sampling_task is not None and not _sampling_task.done()


# =============================================================================
# Decode Source Factory
# =============================================================================

def create_decode_source(path: str, name: str) -> DecodeSource:
    """
    Create decode source based on config.

    Fails fast on an unknown backend.
    """
    backend = settings.decoder.backend

    if backend == "opencv":
        return OpenCVDecodeSource(path, name=name)

    elif backend == "mock":
        mock = settings.decoder.mock
        return MockDecodeSource(
            duration=mock.duration,
            width=mock.width,
            height=mock.height,
            name=name,
        )

    else:
        raise ValueError(f"Unknown decoder backend: {backend}")


# =============================================================================
# Sampling Task
# =============================================================================

async def _save_upload(request: Request, name: str) -> Optional[Path]:
    """Stream the request body to a temporary file."""
    suffix = Path(name).suffix or ".bin"
    fd, tmp_path = tempfile.mkstemp(
        prefix="curator_",
        suffix=suffix,
        dir=settings.decoder.upload_dir,
    )
    size = 0
    try:
        with os.fdopen(fd, "wb") as f:
            async for chunk in request.stream():
                f.write(chunk)
                size += len(chunk)
    except Exception:
        # Client disconnects land here too
        _discard_upload(Path(tmp_path))
        raise

    if size == 0:
        _discard_upload(Path(tmp_path))
        return None

    logger.info(f"Saved upload {name} ({size} bytes) to {tmp_path}")
    return Path(tmp_path)


def _discard_upload(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


async def run_sampling(source: DecodeSource, run: SamplingRun, upload_path: Optional[Path]) -> None:
    """Background task: sample one uploaded video."""
    try:
        await get_session().start_run(source, run=run)
    except (MetadataLoadError, RasterTargetError) as e:
        logger.warning(f"Run {run.run_id} failed: {e}")
    except asyncio.CancelledError:
        logger.info(f"Run {run.run_id} cancelled")
        raise
    except Exception as e:
        logger.error(f"Sampling task error (run={run.run_id}): {e}")
    finally:
        if upload_path is not None:
            _discard_upload(upload_path)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _session, _sampling_task, _latest_run, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.app.name} {settings.app.version}")
    logger.info(f"Decoder backend: {settings.decoder.backend}")

    _session = CuratorSession(settings)
    _latest_run = None

    yield

    logger.info("Shutting down gracefully...")

    if _sampling_task and not _sampling_task.done():
        _sampling_task.cancel()
        try:
            await _sampling_task
        except asyncio.CancelledError:
            pass

    released = await _session.reset()
    logger.info(f"Shutdown complete, released {released} display handles")

    _sampling_task = None
    _latest_run = None


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="PortfolioCurator",
    description="Extract, curate and download stills from a video",
    version=settings.app.version,
    lifespan=lifespan,
)


# =============================================================================
# Error Mapping
# =============================================================================

@app.exception_handler(NoActiveRunError)
async def _no_run(request: Request, exc: NoActiveRunError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=404)


@app.exception_handler(RunInProgressError)
async def _run_busy(request: Request, exc: RunInProgressError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=409)


@app.exception_handler(ExportInProgressError)
async def _export_busy(request: Request, exc: ExportInProgressError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=409)


@app.exception_handler(FrameNotFoundError)
async def _frame_missing(request: Request, exc: FrameNotFoundError) -> JSONResponse:
    return JSONResponse({"error": f"Frame not found: {exc.args[0]}"}, status_code=404)


@app.exception_handler(HandleError)
async def _handle_gone(request: Request, exc: HandleError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=410)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "PortfolioCurator",
        "version": settings.app.version,
        "name": settings.app.name,
        "status": "running",
        "decoder_backend": settings.decoder.backend,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Handle registry and last-run engine metrics."""
    session = get_session()
    run = get_latest_run()

    run_metrics = {}
    if run is not None:
        run_metrics = {
            "run_status": run.status.value,
            "run_progress": run.progress,
            "frame_count": len(run.frames),
            "selected_count": run.selected_count,
        }

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "sampling_in_flight": sampling_in_flight(),
        "exporting": session.exporting,
        "handles": session.registry.metrics(),
        "engine": session.engine.metrics.to_dict(),
        **run_metrics,
    })


@app.post("/runs", status_code=202)
async def create_run(request: Request) -> JSONResponse:
    """
    Upload a video and start sampling it.

    The body is the raw video. An optional ``X-Filename`` header names it.
    Any previous run is discarded once the new run starts.
    """
    global _sampling_task, _latest_run, _upload_pending

    if _upload_pending or sampling_in_flight():
        return JSONResponse(
            {"error": "A video is already being processed"},
            status_code=409,
        )

    content_type = request.headers.get("content-type", "")
    if content_type and not (
        content_type.startswith("video/")
        or content_type.startswith("application/octet-stream")
    ):
        return JSONResponse(
            {"error": "Please upload a valid video file."},
            status_code=415,
        )

    # Claim the slot before the first await so a concurrent upload sees it
    _upload_pending = True
    try:
        name = request.headers.get("x-filename", "upload")
        upload_path = await _save_upload(request, name)
        if upload_path is None:
            return JSONResponse({"error": "Empty upload"}, status_code=400)

        run = SamplingRun(source_name=name)
        try:
            source = create_decode_source(str(upload_path), name)
        except ValueError:
            _discard_upload(upload_path)
            raise

        _latest_run = run
        _sampling_task = asyncio.create_task(
            run_sampling(source, run, upload_path),
            name="sampling_run",
        )
    finally:
        _upload_pending = False

    return JSONResponse(
        RunView.from_run(run).model_dump(mode="json"),
        status_code=202,
    )


@app.get("/runs/current")
async def current_run() -> JSONResponse:
    """Status and progress of the most recent run."""
    run = get_latest_run()
    if run is None:
        raise NoActiveRunError("No video has been processed")
    return JSONResponse(RunView.from_run(run).model_dump(mode="json"))


@app.delete("/runs/current")
async def discard_run() -> JSONResponse:
    """Start over: discard the run and release every display handle."""
    global _latest_run

    released = await get_session().reset()
    _latest_run = None
    return JSONResponse({"released": released})


@app.get("/frames")
async def list_frames() -> JSONResponse:
    """Ordered frame gallery of the finished run."""
    selection = get_session().selection
    view = FrameListView(
        frames=[FrameView.from_frame(f) for f in selection.frames],
        selected_count=selection.run.selected_count,
        total=len(selection.frames),
    )
    return JSONResponse(view.model_dump(mode="json"))


@app.get("/frames/{frame_id}/image")
async def frame_image(frame_id: str) -> Response:
    """JPEG payload of one frame, resolved through its display handle."""
    payload = get_session().image_for(frame_id)
    if payload is None:
        raise FrameNotFoundError(frame_id)
    return Response(content=payload, media_type="image/jpeg")


@app.post("/frames/select")
async def select_all(body: SelectRequest) -> JSONResponse:
    """Set every frame's selection state."""
    selection = get_session().selection
    changed = selection.set_all(body.selected)
    return JSONResponse({
        "selected": body.selected,
        "changed": changed,
        "selected_count": selection.run.selected_count,
    })


@app.post("/frames/toggle-all")
async def toggle_all() -> JSONResponse:
    """Select all if any frame is unselected, otherwise deselect all."""
    selection = get_session().selection
    applied = selection.toggle_all()
    return JSONResponse({
        "selected": applied,
        "selected_count": selection.run.selected_count,
    })


@app.post("/frames/{frame_id}/toggle")
async def toggle_frame(frame_id: str) -> JSONResponse:
    """Flip one frame's selection state."""
    frame = get_session().selection.toggle(frame_id)
    if frame is None:
        raise FrameNotFoundError(frame_id)
    return JSONResponse(FrameView.from_frame(frame).model_dump(mode="json"))


@app.delete("/frames/{frame_id}")
async def delete_frame(frame_id: str) -> JSONResponse:
    """
    Delete one frame and release its display handle.

    Returns the frame to focus next. When the last frame is deleted the
    response reports ``exhausted`` and the client should offer to start
    over.
    """
    selection = get_session().selection
    successor = selection.remove(frame_id)
    view = RemovalView(
        removed=frame_id,
        successor=FrameView.from_frame(successor) if successor else None,
        exhausted=selection.exhausted,
    )
    return JSONResponse(view.model_dump(mode="json"))


@app.get("/export")
async def export_archive() -> Response:
    """Download the selected frames as a zip archive."""
    try:
        payload = await get_session().export()
    except NothingSelectedError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except ArchiveBuildError as e:
        logger.error(f"Error creating zip: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)

    return Response(
        content=payload,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{settings.export.archive_name}"',
        },
    )


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/progress")
async def progress_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint streaming run progress until the run finishes."""
    await websocket.accept()
    logger.info("Client connected to /ws/progress")

    try:
        while True:
            run = get_latest_run()
            if run is None:
                await websocket.send_json({"status": "idle"})
                break

            await websocket.send_json(RunView.from_run(run).model_dump(mode="json"))
            if run.finished:
                break
            await asyncio.sleep(0.25)

        await websocket.close()

    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/progress")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "portfolio_curator.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
