from sqlalchemy import Boolean, Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.core.utils import generate_uuid

class ChatParticipant(Base):
    __tablename__ = "chat_participants"

    # (chat_id, user_id) 기본키: 한 채팅에 같은 사용자는 한 번만 등록됩니다
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)

    chat = relationship("Chat", back_populates="participant_links")
    user = relationship("User")

class Chat(Base):
    __tablename__ = "chats"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False, default="")  # 1:1 채팅은 빈 문자열
    is_group = Column(Boolean, nullable=False, default=False)
    last_message_id = Column(
        Integer,
        ForeignKey("messages.id", use_alter=True, name="fk_chats_last_message_id", ondelete="SET NULL"),
        nullable=True
    )

    participant_links = relationship(
        "ChatParticipant",
        back_populates="chat",
        order_by="ChatParticipant.position",
        cascade="all, delete-orphan"
    )
    messages = relationship(
        "Message",
        back_populates="chat",
        foreign_keys="Message.chat_id",
        order_by="Message.id",
        cascade="all, delete-orphan"
    )
    last_message = relationship("Message", foreign_keys=[last_message_id], post_update=True)

    @property
    def participants(self) -> list:
        return [link.user_id for link in self.participant_links]

    def __repr__(self):
        return f"<Chat {self.id} participants={self.participants}>"
