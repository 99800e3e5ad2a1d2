import logging

from app.core.exceptions import PersistenceError
from app.core.structured_logging import structured_logger
from app.realtime.bus import BroadcastBus, chat_room, user_room
from app.realtime.connection import Connection
from app.services.chat_gateway import ChatGateway

logger = logging.getLogger(__name__)

class RoomMembershipManager:
    """연결 수립 시 개인 룸과 참여 중인 채팅 룸을 구독시킵니다."""

    def __init__(self, bus: BroadcastBus, gateway: ChatGateway):
        self.bus = bus
        self.gateway = gateway

    async def join_rooms(self, connection: Connection) -> None:
        self.bus.subscribe(user_room(connection.user_id), connection)

        try:
            chat_ids = await self.gateway.fetch_chat_ids_for_user(connection.user_id)
        except PersistenceError as e:
            # 개인 룸만 유지한 채 연결은 살려 둠
            structured_logger.log_error(e, context={
                "operation": "join_rooms",
                "connection_id": connection.id,
            }, user_id=connection.user_id)
            return

        for chat_id in chat_ids:
            self.bus.subscribe(chat_room(chat_id), connection)

        logger.info(f"{connection!r} joined {len(chat_ids)} chat rooms")

    def join_chat(self, connection: Connection, chat_id: str) -> None:
        self.bus.subscribe(chat_room(chat_id), connection)

    def leave_rooms(self, connection: Connection) -> None:
        self.bus.unsubscribe_all(connection)
