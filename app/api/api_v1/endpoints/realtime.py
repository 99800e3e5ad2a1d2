from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import logging

from app.core.exceptions import AuthenticationError
from app.realtime.connection import Connection
from app.realtime.hub import RealtimeHub

router = APIRouter()
logger = logging.getLogger(__name__)

# 핸드셰이크 인증 실패 시 사용하는 close code
WS_CLOSE_UNAUTHORIZED = 4401

@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket):
    """
    실시간 채팅 연결

    - 핸드셰이크: `?token=<jwt>` 또는 `Authorization: Bearer <jwt>`
    - 프레임: `{"event": "...", "data": {...}}`
    - 클라이언트 이벤트: `send_message`, `create_chat`, `ping`
    - 서버 이벤트: `receive_message`, `new_chat`, `error`, `pong`
    """
    hub: RealtimeHub = websocket.app.state.realtime

    try:
        claims = hub.authenticate(websocket)
    except AuthenticationError as e:
        # 룸 구독 전에 거절
        logger.info(f"Rejected realtime handshake: {e.error_code.value}")
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason=e.error_code.value)
        return

    await websocket.accept()
    connection = await hub.connect(Connection(websocket, claims))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            await hub.dispatch(connection, text if text is not None else message.get("bytes") or b"")
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(connection)
