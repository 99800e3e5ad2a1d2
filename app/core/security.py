"""
인증 모듈: 비밀번호 해시, JWT 발급 및 검증

`verify_token`은 HTTP 요청과 실시간 연결 핸드셰이크가 함께 사용하는
단일 검증 지점입니다. 부수효과가 없습니다.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import MissingTokenError, InvalidTokenError

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)

class TokenClaims(BaseModel):
    """검증된 토큰에서 추출한 신원 정보"""
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """일반 비밀번호와 해시된 비밀번호를 비교합니다."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False

def get_password_hash(password: str) -> str:
    """비밀번호를 해시 처리합니다."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')

def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    email: Optional[str] = None
) -> str:
    """액세스 토큰을 생성합니다."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode = {"exp": expire, "sub": str(subject)}
    if email:
        to_encode["email"] = email
    return jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM
    )

def verify_token(token: Optional[str]) -> TokenClaims:
    """Bearer 토큰을 검증하고 신원 정보를 반환합니다.

    토큰이 없거나 비어 있으면 MissingTokenError,
    형식 오류/만료/서명 불일치/subject 누락이면 InvalidTokenError를 발생시킵니다.
    """
    if token is None or not token.strip():
        raise MissingTokenError()

    token = token.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError as e:
        raise InvalidTokenError(f"Invalid token: {e}")

    # 구 버전 토큰은 `id` 클레임을 사용
    user_id = payload.get("sub") or payload.get("id")
    if user_id is None or str(user_id).strip() == "":
        raise InvalidTokenError("Token has no subject")

    exp = payload.get("exp")
    return TokenClaims(
        user_id=str(user_id),
        email=payload.get("email"),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )

async def get_current_claims(token: Optional[str] = Depends(oauth2_scheme)) -> TokenClaims:
    """HTTP 요청용 인증 의존성"""
    return verify_token(token)
