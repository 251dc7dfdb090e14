"""WebSocket change feed: new notifications and patient requests, per addressee"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, HTTPException, status
from sqlmodel import Session
from database import get_session
from dependencies import user_from_token, profile_for_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/realtime", tags=["Realtime"])


@router.websocket("/ws")
async def realtime_feed(
    websocket: WebSocket,
    token: str,
    db: Session = Depends(get_session)
):
    """
    Subscribe to INSERT events addressed to the caller's profile.
    Frames are JSON: {"channel": ..., "event": "INSERT", "record": {...}}.
    A text "ping" is answered with "pong".
    """
    try:
        profile_id = profile_for_user(user_from_token(token, db), db).id
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        # Release the pooled connection; the socket can stay open for hours
        db.close()

    hub = websocket.app.state.services.realtime
    subscriber = await hub.connect(websocket, profile_id)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(subscriber)
