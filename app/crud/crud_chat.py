from sqlalchemy.orm import Session, selectinload
from app.models.chat import Chat, ChatParticipant
from app.models.message import Message
from datetime import datetime, timezone
from typing import List, Optional


def get_chats_by_participant(db: Session, user_id: str) -> List[Chat]:
    """사용자가 참여한 모든 채팅 (최근 갱신 순)"""
    return db.query(Chat).join(
        ChatParticipant, ChatParticipant.chat_id == Chat.id
    ).filter(
        ChatParticipant.user_id == str(user_id)
    ).options(
        selectinload(Chat.participant_links)
    ).order_by(Chat.updated_at.desc(), Chat.created_at.desc()).all()

def get_chat_ids_by_participant(db: Session, user_id: str) -> List[str]:
    rows = db.query(ChatParticipant.chat_id).filter(
        ChatParticipant.user_id == str(user_id)
    ).all()
    return [row[0] for row in rows]

def get_chat_for_participant(db: Session, chat_id: str, user_id: str) -> Optional[Chat]:
    """채팅이 존재하고 user_id가 참여자인 경우에만 반환합니다."""
    return db.query(Chat).join(
        ChatParticipant, ChatParticipant.chat_id == Chat.id
    ).filter(
        Chat.id == str(chat_id),
        ChatParticipant.user_id == str(user_id)
    ).options(
        selectinload(Chat.participant_links)
    ).first()

def get_chat_messages(db: Session, chat_id: str) -> List[Message]:
    # id는 INSERT 순서대로 발급되므로 브로드캐스트 순서와 같음
    return db.query(Message).filter(
        Message.chat_id == chat_id
    ).order_by(Message.id.asc()).all()

def create_chat(db: Session, participant_ids: List[str], name: str, is_group: bool) -> Chat:
    try:
        current_time = datetime.now(timezone.utc)
        db_chat = Chat(
            name=name or "",
            is_group=is_group,
            created_at=current_time,
            updated_at=current_time
        )
        db_chat.participant_links = [
            ChatParticipant(user_id=user_id, position=position)
            for position, user_id in enumerate(participant_ids)
        ]
        db.add(db_chat)
        db.commit()
        db.refresh(db_chat)
        return db_chat
    except Exception:
        db.rollback()
        raise

def create_message(db: Session, chat_id: str, sender_id: str, content: str) -> Message:
    try:
        # created_at은 저장소가 채우고 refresh로 읽어옴
        db_message = Message(
            chat_id=chat_id,
            sender_id=sender_id,
            content=content
        )
        db.add(db_message)
        db.commit()
        db.refresh(db_message)
        return db_message
    except Exception:
        db.rollback()
        raise

def update_last_message(db: Session, chat_id: str, message_id: int) -> bool:
    try:
        updated = db.query(Chat).filter(Chat.id == chat_id).update(
            {
                Chat.last_message_id: message_id,
                Chat.updated_at: datetime.now(timezone.utc)
            },
            synchronize_session=False
        )
        db.commit()
        return bool(updated)
    except Exception:
        db.rollback()
        raise
