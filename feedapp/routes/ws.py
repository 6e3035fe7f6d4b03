from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from ..auth import verify_token
from ..core import get_notifier
from ..errors import AuthError
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket('/posts')
async def posts_ws(websocket: WebSocket, token: str = Query(None)):
    try:
        user_id = verify_token(token)
    except AuthError:
        await websocket.close(code=1008)
        return
    notifier = get_notifier()
    await notifier.connect(websocket)
    logger.info(f"user {user_id} subscribed to live posts")
    try:
        while True:
            # the feed is push-only; inbound frames are ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        notifier.disconnect(websocket)
