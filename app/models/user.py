from sqlalchemy import Boolean, Column, String
from app.db.base_class import Base
from app.core.utils import generate_uuid

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)  # 프로필 이미지 경로
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<User {self.email}>"

    def to_participant_info(self) -> dict:
        """채팅 참여자 표시용 최소 정보"""
        return {
            "id": self.id,
            "name": self.name,
            "photoUrl": self.photo_url,
        }
