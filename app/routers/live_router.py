import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.auth.supabase_auth import verify_token
from app.gateway.factory import open_gateway
from app.views.live_session import LiveSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Live"])

UNAUTHORIZED = 4401


@router.websocket("/live")
async def live(websocket: WebSocket, token: str | None = None):
    """
    Browsers cannot set headers on a WebSocket handshake, so the access
    token rides in ``?token=``. Frames in: ``{"action": ..., ...}``.
    Frames out: ``{"type": "state", ...}`` and ``{"type": "toast", ...}``.
    """
    payload = verify_token(token)
    if payload is None:
        await websocket.close(code=UNAUTHORIZED)
        return

    user_id = payload["sub"]
    await websocket.accept()

    gateway = await open_gateway(token)
    session = LiveSession(gateway, user_id, websocket.send_json)
    try:
        await session.start()
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                session.toasts.error("Malformed frame")
                continue
            session.dispatch(frame)
    except WebSocketDisconnect:
        logger.info("Live socket closed by %s", user_id)
    finally:
        await session.close()
        await gateway.aclose()
