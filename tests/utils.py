"""테스트 공용 도우미: DB 초기화, 사용자/채팅 생성, 이벤트를 기록하는 가짜 연결"""
import json
from typing import Any, Dict, List, Optional, Tuple
from unittest import mock

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.security import TokenClaims, create_access_token
from app.crud import crud_chat
from app.db.base import Base
from app.db.init_db import init_db
from app.db.session import SessionLocal, engine
from app.models.chat import Chat
from app.models.message import Message
from app.models.user import User
from app.realtime.connection import Connection

def reset_database() -> None:
    init_db(max_retries=1)
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())

def create_user(name: str, email: Optional[str] = None, photo_url: Optional[str] = None) -> User:
    db = SessionLocal()
    try:
        user = User(email=email or f"{name.lower()}@example.com", name=name, photo_url=photo_url)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    finally:
        db.close()

def create_chat(participant_ids: List[str], name: str = "", is_group: bool = False) -> Chat:
    db = SessionLocal()
    try:
        return crud_chat.create_chat(db, participant_ids, name, is_group)
    finally:
        db.close()

def stored_messages(chat_id: str) -> List[Message]:
    db = SessionLocal()
    try:
        return crud_chat.get_chat_messages(db, chat_id)
    finally:
        db.close()

def stored_chat(chat_id: str) -> Optional[Chat]:
    db = SessionLocal()
    try:
        return db.get(Chat, chat_id)
    finally:
        db.close()

def token_for(user: User) -> str:
    return create_access_token(user.id, email=user.email)

def failing_session_factory():
    """모든 쿼리가 OperationalError를 내는 세션"""
    session = mock.Mock(spec=Session)
    session.query.side_effect = OperationalError("SELECT 1", {}, Exception("database is down"))
    return session

class RecordingConnection(Connection):
    """보낸 이벤트를 기록하는 연결. 실제 소켓처럼 JSON 직렬화를 거칩니다."""

    def __init__(self, user_id: str, fail: bool = False):
        super().__init__(None, TokenClaims(user_id=user_id))
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.fail = fail

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket is closed")
        self.events.append((event, json.loads(json.dumps(data))))

    def received(self, event: str) -> List[Dict[str, Any]]:
        return [data for name, data in self.events if name == event]
