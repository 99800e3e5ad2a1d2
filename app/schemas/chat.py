from pydantic import BaseModel, Field, validator
from typing import Optional, List

class ParticipantInfo(BaseModel):
    id: str
    name: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")

    class Config:
        populate_by_name = True

class Message(BaseModel):
    id: str
    chat_id: str = Field(alias="chatId")
    sender_id: str = Field(alias="senderId")
    content: str
    timestamp: int  # epoch 밀리초

    class Config:
        populate_by_name = True

class Chat(BaseModel):
    id: str
    name: str = ""
    participants: List[str]
    participants_info: List[ParticipantInfo] = Field(default_factory=list, alias="participantsInfo")
    is_group: bool = Field(default=False, alias="isGroup")
    messages: List[Message] = Field(default_factory=list)
    last_message: Optional[Message] = Field(default=None, alias="lastMessage")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")

    class Config:
        populate_by_name = True

# --- 실시간 이벤트 페이로드 (client -> server) ---

class SendMessagePayload(BaseModel):
    chat_id: str = Field(alias="chatId")
    content: str = ""

    class Config:
        populate_by_name = True

    @validator("chat_id", pre=True)
    def coerce_chat_id(cls, v):
        # 숫자 id를 보내는 클라이언트 호환
        if isinstance(v, int):
            return str(v)
        return v

class CreateChatPayload(BaseModel):
    participants: List[str] = Field(default_factory=list)
    name: Optional[str] = ""
    is_group: Optional[bool] = Field(default=False, alias="isGroup")

    class Config:
        populate_by_name = True

    @validator("participants", pre=True)
    def coerce_participants(cls, v):
        if isinstance(v, list):
            return [str(p) if isinstance(p, int) else p for p in v]
        return v
