"""
채팅 저장소 게이트웨이

crud 모듈의 동기 SQLAlchemy 함수를 스레드풀에서 실행해 이벤트 루프를
막지 않도록 감싼 비동기 인터페이스입니다. 호출마다 세션을 새로 열고 닫으며,
결과는 세션 밖에서도 안전한 pydantic 스키마로 반환합니다.
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import PersistenceError
from app.core.utils import to_epoch_millis
from app.crud import crud_chat, crud_user
from app.models.chat import Chat as ChatModel
from app.models.message import Message as MessageModel
from app.models.user import User as UserModel
from app.schemas.chat import Chat, Message, ParticipantInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

def serialize_message(message: MessageModel) -> Message:
    return Message(**message.to_dict())

def serialize_chat(
    chat: ChatModel,
    users_by_id: Dict[str, UserModel],
    messages: Optional[List[MessageModel]] = None
) -> Chat:
    serialized_messages = [serialize_message(m) for m in (messages or [])]
    participants = chat.participants
    return Chat(
        id=chat.id,
        name=chat.name or "",
        participants=participants,
        participants_info=[
            ParticipantInfo(**users_by_id[p].to_participant_info())
            for p in participants if p in users_by_id
        ],
        is_group=bool(chat.is_group),
        messages=serialized_messages,
        last_message=serialized_messages[-1] if serialized_messages else None,
        updated_at=to_epoch_millis(chat.updated_at),
    )

class ChatGateway:
    """채팅/메시지/참여자 저장소 접근 지점"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def _run(self, operation: str, func: Callable[..., T], *args) -> T:
        return await run_in_threadpool(self._call, operation, func, *args)

    def _call(self, operation: str, func: Callable[..., T], *args) -> T:
        db = self.session_factory()
        try:
            return func(db, *args)
        except SQLAlchemyError as e:
            logger.error(f"Persistence operation '{operation}' failed: {e}", exc_info=True)
            raise PersistenceError(message=f"{operation} failed: {e}", operation=operation) from e
        finally:
            db.close()

    # --- 조회 ---

    async def fetch_chat_ids_for_user(self, user_id: str) -> List[str]:
        return await self._run("fetch_chat_ids_for_user", crud_chat.get_chat_ids_by_participant, user_id)

    async def fetch_chats_for_user(self, user_id: str) -> List[Chat]:
        """메시지와 참여자 정보를 포함한 사용자의 전체 채팅 목록"""
        def _fetch(db: Session, user_id: str) -> List[Chat]:
            chats = crud_chat.get_chats_by_participant(db, user_id)
            user_ids = {p for chat in chats for p in chat.participants}
            users_by_id = {u.id: u for u in crud_user.get_users_by_ids(db, user_ids)}
            return [
                serialize_chat(chat, users_by_id, crud_chat.get_chat_messages(db, chat.id))
                for chat in chats
            ]
        return await self._run("fetch_chats_for_user", _fetch, user_id)

    async def fetch_chat_for_participant(
        self,
        chat_id: str,
        user_id: str,
        with_messages: bool = False
    ) -> Optional[Chat]:
        """채팅이 없거나 user_id가 참여자가 아니면 None"""
        def _fetch(db: Session, chat_id: str, user_id: str) -> Optional[Chat]:
            chat = crud_chat.get_chat_for_participant(db, chat_id, user_id)
            if chat is None:
                return None
            if not with_messages:
                return serialize_chat(chat, {})
            users_by_id = {u.id: u for u in crud_user.get_users_by_ids(db, chat.participants)}
            return serialize_chat(chat, users_by_id, crud_chat.get_chat_messages(db, chat.id))
        return await self._run("fetch_chat_for_participant", _fetch, chat_id, user_id)

    async def fetch_users_by_ids(self, user_ids: Iterable[str]) -> Dict[str, ParticipantInfo]:
        def _fetch(db: Session, user_ids: List[str]) -> Dict[str, ParticipantInfo]:
            return {
                u.id: ParticipantInfo(**u.to_participant_info())
                for u in crud_user.get_users_by_ids(db, user_ids)
            }
        return await self._run("fetch_users_by_ids", _fetch, list(user_ids))

    # --- 쓰기 ---

    async def insert_message(self, chat_id: str, sender_id: str, content: str) -> Message:
        def _insert(db: Session, chat_id: str, sender_id: str, content: str) -> Message:
            return serialize_message(crud_chat.create_message(db, chat_id, sender_id, content))
        return await self._run("insert_message", _insert, chat_id, sender_id, content)

    async def update_chat_last_message(self, chat_id: str, message_id: str) -> bool:
        return await self._run("update_chat_last_message", crud_chat.update_last_message, chat_id, int(message_id))

    async def insert_chat(self, participant_ids: List[str], name: str, is_group: bool) -> Chat:
        def _insert(db: Session, participant_ids: List[str], name: str, is_group: bool) -> Chat:
            return serialize_chat(crud_chat.create_chat(db, participant_ids, name, is_group), {})
        return await self._run("insert_chat", _insert, participant_ids, name, is_group)
