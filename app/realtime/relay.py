"""
메시지 릴레이

send_message 처리 순서:
1. 발신자가 채팅 참여자인지 확인 (아니면 PermissionDeniedError)
2. 메시지 저장 (id, 타임스탬프는 저장소가 발급)
3. 커밋 이후 `chat:<id>` 룸으로 receive_message 발행
4. 채팅의 마지막 메시지 포인터 갱신 (실패해도 전달은 유지, 로그만 남김)
"""
import logging
from typing import Any, Optional

from app.core.config import settings
from app.core.exceptions import PermissionDeniedError, PersistenceError, ValidationError
from app.core.structured_logging import structured_logger
from app.realtime.bus import BroadcastBus, chat_room
from app.realtime.connection import Connection
from app.schemas.chat import Message
from app.services.chat_gateway import ChatGateway

logger = logging.getLogger(__name__)

RECEIVE_MESSAGE_EVENT = "receive_message"

class MessageRelay:

    def __init__(self, bus: BroadcastBus, gateway: ChatGateway, max_message_length: Optional[int] = None):
        self.bus = bus
        self.gateway = gateway
        self.max_message_length = max_message_length or settings.MAX_MESSAGE_LENGTH

    def _validate(self, chat_id: Any, content: Any) -> str:
        if not chat_id or not str(chat_id).strip():
            raise ValidationError(
                "chatId is required",
                field_errors=[{"field": "chatId", "message": "required"}],
                user_message="채팅이 지정되지 않았습니다."
            )
        if not isinstance(content, str) or not content.strip():
            raise ValidationError(
                "Message content is empty",
                field_errors=[{"field": "content", "message": "empty"}],
                user_message="메시지 내용을 입력해주세요."
            )
        if len(content) > self.max_message_length:
            raise ValidationError(
                f"Message too long: {len(content)} > {self.max_message_length}",
                field_errors=[{"field": "content", "message": "too long"}],
                user_message="메시지가 너무 깁니다."
            )
        return content

    async def send_message(self, connection: Connection, chat_id: str, content: str) -> Message:
        content = self._validate(chat_id, content)
        chat_id = str(chat_id)
        user_id = connection.user_id

        chat = await self.gateway.fetch_chat_for_participant(chat_id, user_id)
        if chat is None:
            # 채팅이 없는 경우와 참여자가 아닌 경우를 구분하지 않음
            logger.info(f"User {user_id} denied sending to chat {chat_id}")
            raise PermissionDeniedError(f"User {user_id} is not a participant of chat {chat_id}")

        message = await self.gateway.insert_message(chat_id, user_id, content)

        await self.bus.publish(
            chat_room(chat_id),
            RECEIVE_MESSAGE_EVENT,
            message.model_dump(by_alias=True)
        )

        await self._touch_chat(chat_id, message)
        return message

    async def _touch_chat(self, chat_id: str, message: Message) -> None:
        try:
            updated = await self.gateway.update_chat_last_message(chat_id, message.id)
        except PersistenceError as e:
            structured_logger.warning("chat_metadata_update_failed", {
                "chat_id": chat_id,
                "message_id": message.id,
                "error": str(e.detail),
            })
            return
        if not updated:
            structured_logger.warning("chat_metadata_update_failed", {
                "chat_id": chat_id,
                "message_id": message.id,
                "error": "chat row not updated",
            })
