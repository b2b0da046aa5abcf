import asyncio
import logging
from functools import partial
from typing import Any, Callable

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from lecture_mate.config import settings
from lecture_mate.recording import (
    DeviceUnavailable,
    InvalidStateTransition,
    PermissionDenied,
    RecorderError,
    RecordingSession,
    SessionState,
    UnsupportedEnvironment,
)
from lecture_mate.services.storage import LectureStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recording"])

# Only one lecture is recorded at a time.
# {"session": RecordingSession | None, "websockets": [WebSocket]}
_active: dict[str, Any] = {"session": None, "websockets": []}


def _default_factory() -> RecordingSession:
    return RecordingSession.from_settings(settings)


session_factory: Callable[[], RecordingSession] = _default_factory

_ERROR_STATUS = {
    PermissionDenied: 403,
    DeviceUnavailable: 503,
    UnsupportedEnvironment: 501,
    InvalidStateTransition: 409,
}


class StopRequest(BaseModel):
    title: str | None = None
    presenter: str | None = None


def _http_error(err: RecorderError) -> HTTPException:
    status = _ERROR_STATUS.get(type(err), 500)
    return HTTPException(
        status_code=status,
        detail={"error": err.code, "message": str(err), "retryable": err.retryable},
    )


def _current() -> RecordingSession:
    session = _active["session"]
    if session is None:
        raise HTTPException(status_code=404, detail="No recording session.")
    return session


async def _run(fn: Callable, *args) -> Any:
    """Lifecycle calls block (device I/O, model load, thread joins)."""
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, partial(fn, *args))
    except RecorderError as e:
        raise _http_error(e) from e


# ==================================================================
# REST endpoints
# ==================================================================


@router.get("/api/recording/environment")
async def check_environment() -> dict:
    """Report whether recording can start on this host."""
    try:
        await _run(session_factory().check_environment)
    except HTTPException as e:
        return {"supported": False, "reason": e.detail["message"]}
    return {"supported": True, "reason": None}


@router.get("/api/recording")
async def get_recording() -> dict:
    session = _active["session"]
    if session is None:
        return {"state": SessionState.IDLE.value}
    return session.snapshot().to_dict()


@router.post("/api/recording/start")
async def start_recording() -> dict:
    previous = _active["session"]
    if previous is not None and previous.state is not SessionState.STOPPED:
        raise HTTPException(status_code=409, detail="Recording already active.")

    loop = asyncio.get_running_loop()
    session = session_factory()
    session.on_lecture_ready(LectureStore.save)

    def _on_update(message: dict) -> None:
        """Called from recording threads. Bridges to the event loop."""
        asyncio.run_coroutine_threadsafe(_send_to_all(message), loop)

    session.subscribe(_on_update)

    # Claim the slot before awaiting so a concurrent start sees it taken
    _active["session"] = session
    try:
        await _run(session.start)
    except BaseException:
        if _active["session"] is session:
            _active["session"] = previous
        raise
    return session.snapshot().to_dict()


@router.post("/api/recording/pause")
async def pause_recording() -> dict:
    session = _current()
    await _run(session.pause)
    return session.snapshot().to_dict()


@router.post("/api/recording/resume")
async def resume_recording() -> dict:
    session = _current()
    await _run(session.resume)
    return session.snapshot().to_dict()


@router.post("/api/recording/stop")
async def stop_recording(body: StopRequest | None = None) -> dict:
    """Stop recording; the lecture is saved and returned."""
    session = _current()
    body = body or StopRequest()
    lecture = await _run(session.stop, body.title, body.presenter)
    return lecture.to_dict()


# ==================================================================
# WebSocket endpoint
# ==================================================================


@router.websocket("/ws/recording")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Live update stream for the active recording."""
    await websocket.accept()
    _active["websockets"].append(websocket)

    session = _active["session"]
    state = session.state.value if session is not None else SessionState.IDLE.value
    await websocket.send_json({"type": "status", "state": state})

    try:
        while True:
            await websocket.receive_text()  # keep-alive; client sends pings
    except WebSocketDisconnect:
        if websocket in _active["websockets"]:
            _active["websockets"].remove(websocket)


async def _send_to_all(message: dict) -> None:
    """Broadcast a JSON message to all connected WebSocket clients."""
    for ws in list(_active["websockets"]):
        try:
            await ws.send_json(message)
        except Exception:
            logger.debug("Dropping websocket client", exc_info=True)
            if ws in _active["websockets"]:
                _active["websockets"].remove(ws)
