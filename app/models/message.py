from sqlalchemy import Column, DateTime, String, Text, Integer, ForeignKey, Index, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.core.utils import to_epoch_millis

class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_chat_id_id", "chat_id", "id"),
    )

    # 저장소가 발급하는 증가형 id: 커밋 순서와 일치
    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    # INSERT 시점에 저장소가 기록
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    chat = relationship("Chat", back_populates="messages", foreign_keys=[chat_id])

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "chatId": self.chat_id,
            "senderId": self.sender_id,
            "content": self.content,
            "timestamp": to_epoch_millis(self.created_at),
        }
