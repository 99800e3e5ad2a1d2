"""
실시간 허브: 연결 레지스트리, 브로드캐스트 버스, 룸 멤버십, 메시지 릴레이,
채팅 생성 조정자를 묶고 클라이언트 이벤트를 각 핸들러로 보냅니다.

핸들러에서 발생한 APIError는 이 경계에서 잡혀 발신 연결에만 `error` 이벤트로
전달됩니다. 어떤 에러도 연결이나 프로세스를 종료시키지 않습니다.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from fastapi import WebSocket
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import APIError, ErrorCode, ErrorSeverity, ValidationError
from app.core.error_tracking import error_tracker
from app.core.security import TokenClaims, verify_token
from app.core.structured_logging import structured_logger
from app.realtime.bus import BroadcastBus
from app.realtime.connection import Connection, ConnectionRegistry
from app.realtime.coordinator import ChatCreationCoordinator
from app.realtime.membership import RoomMembershipManager
from app.realtime.relay import MessageRelay
from app.schemas.chat import CreateChatPayload, SendMessagePayload
from app.schemas.realtime import RealtimeEnvelope
from app.services.chat_gateway import ChatGateway

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Dict[str, Any]], Awaitable[None]]

def extract_token(websocket: WebSocket) -> Optional[str]:
    """쿼리 파라미터 `token` 또는 Authorization 헤더에서 토큰을 꺼냅니다."""
    token = websocket.query_params.get("token")
    if token:
        return token
    return websocket.headers.get("authorization")

class RealtimeHub:

    def __init__(self, bus: BroadcastBus, gateway: ChatGateway, registry: Optional[ConnectionRegistry] = None):
        self.bus = bus
        self.gateway = gateway
        self.registry = registry or ConnectionRegistry()
        self.membership = RoomMembershipManager(bus, gateway)
        self.relay = MessageRelay(bus, gateway)
        self.coordinator = ChatCreationCoordinator(bus, gateway, self.membership)
        self._handlers: Dict[str, Handler] = {
            "send_message": self._handle_send_message,
            "create_chat": self._handle_create_chat,
            "ping": self._handle_ping,
        }

    async def start(self) -> None:
        await self.bus.start()

    async def close(self) -> None:
        await self.bus.close()

    # --- 연결 생명주기 ---

    def authenticate(self, websocket: WebSocket) -> TokenClaims:
        """핸드셰이크 인증. 실패 시 MissingTokenError / InvalidTokenError"""
        return verify_token(extract_token(websocket))

    async def connect(self, connection: Connection) -> Connection:
        self.registry.register(connection)
        await self.membership.join_rooms(connection)
        structured_logger.log_realtime_event(
            "connected", connection_id=connection.id, user_id=connection.user_id,
            rooms=sorted(connection.rooms)
        )
        return connection

    def disconnect(self, connection: Connection) -> None:
        self.membership.leave_rooms(connection)
        self.registry.unregister(connection)
        structured_logger.log_realtime_event(
            "disconnected", connection_id=connection.id, user_id=connection.user_id
        )

    # --- 이벤트 처리 ---

    async def dispatch(self, connection: Connection, raw: Union[str, bytes]) -> None:
        try:
            if not isinstance(raw, str):
                raise ValidationError("Binary frames are not supported")
            envelope = RealtimeEnvelope.model_validate_json(raw)
            error_tracker.add_breadcrumb(
                f"realtime event {envelope.event}", data={"connection_id": connection.id}
            )
            handler = self._handlers.get(envelope.event)
            if handler is None:
                raise ValidationError(f"Unknown event: {envelope.event}")
            await handler(connection, envelope.data)
        except PydanticValidationError as e:
            await self._report(connection, ValidationError(f"Malformed frame: {e}"))
        except APIError as e:
            await self._report(connection, e)
        except Exception as e:
            error_tracker.capture_exception(e, context={"connection_id": connection.id}, user_id=connection.user_id)
            structured_logger.log_error(e, context={"connection_id": connection.id}, user_id=connection.user_id)
            await self._report(connection, APIError(
                error_code=ErrorCode.INTERNAL_SERVER_ERROR,
                message=f"Unexpected error: {e}",
                severity=ErrorSeverity.CRITICAL
            ))

    async def _report(self, connection: Connection, error: APIError) -> None:
        logger.info(f"Realtime error for {connection!r}: {error.error_code.value} - {error.detail}")
        try:
            await connection.send_error(error.to_event_payload())
        except Exception as e:
            logger.warning(f"Could not deliver error event to {connection!r}: {e}")

    async def _handle_ping(self, connection: Connection, data: Dict[str, Any]) -> None:
        await connection.send("pong", {})

    async def _handle_send_message(self, connection: Connection, data: Dict[str, Any]) -> None:
        payload = SendMessagePayload.model_validate(data)
        await self.relay.send_message(connection, payload.chat_id, payload.content)

    async def _handle_create_chat(self, connection: Connection, data: Dict[str, Any]) -> None:
        payload = CreateChatPayload.model_validate(data)
        await self.coordinator.create_chat(
            connection, payload.participants, payload.name, payload.is_group
        )
