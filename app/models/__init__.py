from app.models.user import User
from app.models.chat import Chat, ChatParticipant
from app.models.message import Message

__all__ = [
    "User",
    "Chat",
    "ChatParticipant",
    "Message",
]
