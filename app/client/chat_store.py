"""
클라이언트 측 채팅 스토어

서버 채팅 상태를 반영하는 반응형 캐시입니다. 메시지 전송은 낙관적 갱신 없이
서버가 발신자 연결로 되돌려 보낸 receive_message로만 화면에 반영됩니다.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.client.events import EventEmitter, RealtimeTransport, Subscription
from app.schemas.chat import Chat, Message

logger = logging.getLogger(__name__)

ChatLoader = Callable[[], Awaitable[List[Chat]]]

CHANGE_EVENT = "change"

class ChatStore:

    def __init__(self, current_user_id: str, transport: RealtimeTransport, loader: ChatLoader):
        self.current_user_id = current_user_id
        self.transport = transport
        self.loader = loader
        self.chats: List[Chat] = []
        self.active_chat: Optional[Chat] = None
        self.loading = False
        self._changes = EventEmitter()
        self._subscriptions: List[Subscription] = []

    # --- 생명주기 ---

    def bind(self) -> "ChatStore":
        """전송 계층 이벤트 구독. close()에서 모두 해제됩니다."""
        if not self._subscriptions:
            self._subscriptions = [
                self.transport.on("receive_message", self.apply_message),
                self.transport.on("new_chat", self.apply_new_chat),
            ]
        return self

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions = []

    def __enter__(self) -> "ChatStore":
        return self.bind()

    def __exit__(self, *exc) -> None:
        self.close()

    def subscribe(self, listener: Callable[["ChatStore"], None]) -> Subscription:
        """상태 변경 알림 구독"""
        return self._changes.on(CHANGE_EVENT, lambda _: listener(self))

    def _notify(self) -> None:
        self._changes.emit_local(CHANGE_EVENT, {})

    # --- 상태 전이 ---

    async def load(self) -> None:
        """전체 목록을 서버 상태로 교체합니다."""
        self.loading = True
        try:
            chats = await self.loader()
            self.chats = sorted(chats, key=lambda c: c.updated_at or 0, reverse=True)
            if self.active_chat is not None:
                self.active_chat = self.get_chat(self.active_chat.id)
            logger.debug(f"Loaded {len(self.chats)} chats for {self.current_user_id}")
        finally:
            self.loading = False
        self._notify()

    def apply_message(self, data: Dict[str, Any]) -> bool:
        try:
            message = Message.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring malformed receive_message: {e}")
            return False

        chat = self.get_chat(message.chat_id)
        if chat is None:
            # 로컬에 없는 채팅의 메시지는 버림
            logger.debug(f"Dropping message {message.id} for unknown chat {message.chat_id}")
            return False

        if any(m.id == message.id for m in chat.messages):
            return False

        chat.messages.append(message)
        chat.last_message = message
        chat.updated_at = message.timestamp
        self.chats.remove(chat)
        self.chats.insert(0, chat)

        if self.active_chat is not None and self.active_chat.id == chat.id:
            self.active_chat = chat
        self._notify()
        return True

    def apply_new_chat(self, data: Dict[str, Any]) -> bool:
        try:
            chat = Chat.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring malformed new_chat: {e}")
            return False

        # 여러 룸에서 중복 전달될 수 있음
        if self.get_chat(chat.id) is not None:
            return False

        self.chats.insert(0, chat)
        self._notify()
        return True

    # --- 조회 ---

    def get_chat(self, chat_id: str) -> Optional[Chat]:
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        return None

    def set_active_chat(self, chat: Optional[Chat]) -> None:
        self.active_chat = chat
        self._notify()

    def find_existing_private_chat(self, participant_id: str) -> Optional[Chat]:
        for chat in self.chats:
            if (
                not chat.is_group
                and len(chat.participants) == 2
                and self.current_user_id in chat.participants
                and participant_id in chat.participants
            ):
                return chat
        return None

    # --- 서버로 보내는 동작 ---

    def send_message(self, chat_id: str, content: str) -> bool:
        """전송만 하고 로컬 상태는 바꾸지 않습니다."""
        if not content or not content.strip():
            return False
        return self.transport.emit("send_message", {"chatId": chat_id, "content": content})

    def create_chat(self, participant_ids: List[str], name: str = "") -> bool:
        participants = list(participant_ids)
        if self.current_user_id not in participants:
            participants.append(self.current_user_id)
        is_group = len(participants) > 2 or bool(name)
        return self.transport.emit("create_chat", {
            "participants": participants,
            "name": name,
            "isGroup": is_group,
        })

    def create_private_chat(self, participant_id: str) -> bool:
        """기존 1:1 채팅이 있으면 활성화하고, 없으면 생성을 요청합니다."""
        if participant_id == self.current_user_id:
            return False
        existing = self.find_existing_private_chat(participant_id)
        if existing is not None:
            self.set_active_chat(existing)
            return True
        # 새 채팅은 new_chat 이벤트로 추가됨
        return self.transport.emit("create_chat", {
            "participants": [self.current_user_id, participant_id],
            "name": "",
            "isGroup": False,
        })

    def add_participant_to_chat(self, chat_id: str, participant_id: str) -> bool:
        # 서버에 참여자 추가 이벤트가 없으므로 항상 실패
        logger.warning(f"Cannot add {participant_id} to chat {chat_id}: adding participants is not supported")
        return False
