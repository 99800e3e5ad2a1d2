from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from app.core.security import get_password_hash, verify_password
from app.models.user import User
from app.schemas.auth import UserCreate

def get_user(db: Session, id: str) -> Optional[User]:
    return db.query(User).filter(User.id == id).first()

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()

def get_users_by_ids(db: Session, ids: Iterable[str]) -> List[User]:
    """여러 사용자를 한 번에 조회합니다. 순서는 보장하지 않습니다."""
    ids = list({str(i) for i in ids})
    if not ids:
        return []
    return db.query(User).filter(User.id.in_(ids)).all()

def create_user(db: Session, *, obj_in: UserCreate) -> User:
    try:
        db_user = User(
            email=obj_in.email,
            name=obj_in.name,
            hashed_password=get_password_hash(obj_in.password),
            is_active=True
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        return db_user
    except Exception:
        db.rollback()
        raise

def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email=email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
