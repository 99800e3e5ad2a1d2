import logging
from typing import Iterable, List, Optional

from app.core.exceptions import ChatCreationFailedError, PersistenceError, ValidationError
from app.realtime.bus import BroadcastBus, user_room
from app.realtime.membership import RoomMembershipManager
from app.realtime.connection import Connection
from app.schemas.chat import Chat
from app.services.chat_gateway import ChatGateway

logger = logging.getLogger(__name__)

NEW_CHAT_EVENT = "new_chat"

def normalize_participants(participant_ids: Iterable[str], creator_id: str) -> List[str]:
    """중복을 제거하고 생성자를 정확히 한 번 포함시킵니다. 입력 순서는 유지됩니다."""
    normalized: List[str] = []
    for participant_id in participant_ids:
        participant_id = str(participant_id).strip()
        if participant_id and participant_id not in normalized:
            normalized.append(participant_id)
    if creator_id not in normalized:
        normalized.append(creator_id)
    return normalized

class ChatCreationCoordinator:
    """채팅 생성 후 모든 참여자의 개인 룸에 new_chat을 알립니다."""

    def __init__(self, bus: BroadcastBus, gateway: ChatGateway, membership: RoomMembershipManager):
        self.bus = bus
        self.gateway = gateway
        self.membership = membership

    async def create_chat(
        self,
        connection: Connection,
        participant_ids: Iterable[str],
        name: Optional[str] = "",
        is_group_hint: Optional[bool] = False
    ) -> Chat:
        participants = normalize_participants(participant_ids or [], connection.user_id)
        if len(participants) < 2:
            raise ValidationError(
                "A chat needs at least one other participant",
                field_errors=[{"field": "participants", "message": "at least 2 required"}],
                user_message="대화 상대를 선택해주세요."
            )

        is_group = bool(is_group_hint) or len(participants) > 2
        name = (name or "").strip()

        try:
            users = await self.gateway.fetch_users_by_ids(participants)
        except PersistenceError as e:
            logger.error(f"Participant lookup failed for {connection.user_id}: {e.detail}")
            raise ChatCreationFailedError() from e

        unknown = [p for p in participants if p not in users]
        if unknown:
            raise ValidationError(
                f"Unknown participants: {unknown}",
                field_errors=[{"field": "participants", "message": f"unknown user {p}"} for p in unknown],
                user_message="존재하지 않는 사용자가 포함되어 있습니다."
            )

        try:
            chat = await self.gateway.insert_chat(participants, name, is_group)
        except PersistenceError as e:
            logger.error(f"Chat creation failed for {connection.user_id}: {e.detail}")
            raise ChatCreationFailedError() from e

        chat.participants_info = [users[p] for p in chat.participants]
        payload = chat.model_dump(by_alias=True)

        # 커밋이 끝난 뒤에만 알림 발행
        for participant_id in chat.participants:
            await self.bus.publish(user_room(participant_id), NEW_CHAT_EVENT, payload)

        self.membership.join_chat(connection, chat.id)
        logger.info(f"Chat {chat.id} created by {connection.user_id} with {len(chat.participants)} participants")
        return chat
