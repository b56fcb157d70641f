from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
import redis

from bakery2048.api.deps import get_manager, get_redis
from bakery2048.api.models import ExitResponse, IdentityRequest, MoveRequest, SessionResponse
from bakery2048.identity import Identity, ProfileIdCache
from bakery2048.manager import AuthenticationRequired, SessionHandle, SessionManager
from bakery2048.websocket_hub import hub

router = APIRouter()


def _require_handle(manager: SessionManager) -> SessionHandle:
    handle = manager.current
    if handle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active session")
    return handle


def _response(handle: SessionHandle, *, moved: bool | None = None) -> SessionResponse:
    return SessionResponse(session_id=handle.session_id, moved=moved, state=handle.session.view())


@router.websocket("/ws/session/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: str) -> None:
    await hub.connect(session_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(session_id, websocket)
    except Exception:
        await hub.disconnect(session_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/session/identity", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def identity_route(
    payload: IdentityRequest,
    manager: SessionManager = Depends(get_manager),
    r: redis.Redis = Depends(get_redis),
) -> SessionResponse:
    identity = Identity(token=payload.token, username=payload.username, role=payload.role, profile_id=payload.profile_id)
    try:
        handle = await manager.change_identity(identity, cache=ProfileIdCache(r=r))
    except AuthenticationRequired as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e
    if handle is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return _response(handle)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def close_session_route(manager: SessionManager = Depends(get_manager)) -> None:
    await manager.close()


@router.get("/session", response_model=SessionResponse)
async def get_session_route(manager: SessionManager = Depends(get_manager)) -> SessionResponse:
    return _response(_require_handle(manager))


@router.post("/session/move", response_model=SessionResponse)
async def move_route(payload: MoveRequest, manager: SessionManager = Depends(get_manager)) -> SessionResponse:
    handle = _require_handle(manager)
    try:
        moved = manager.apply_move(payload.direction)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return _response(handle, moved=moved)


@router.post("/session/reset", response_model=SessionResponse)
async def reset_route(manager: SessionManager = Depends(get_manager)) -> SessionResponse:
    _require_handle(manager)
    return _response(manager.reset())


@router.post("/session/exit", response_model=ExitResponse)
async def exit_route(manager: SessionManager = Depends(get_manager)) -> ExitResponse:
    """Page/tab teardown: blocking progress flush, then the session is closed."""

    handle = _require_handle(manager)
    flushed = manager.flush_on_exit()
    await manager.close()
    return ExitResponse(session_id=handle.session_id, flushed=flushed)
