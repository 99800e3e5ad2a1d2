from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core import security
from app.core.exceptions import AuthenticationError, ErrorCode, ValidationError
from app.crud import crud_user
from app.db.session import get_db
from app.schemas.auth import LoginRequest, Token, User, UserCreate

router = APIRouter()

@router.post("/signup", response_model=Token, status_code=201, summary="사용자 회원가입")
def create_user(user_in: UserCreate, db: Session = Depends(get_db)):
    """
    새로운 사용자를 등록하고 액세스 토큰을 발급합니다.

    - **email**: 사용자 이메일 주소 (필수)
    - **name**: 표시 이름 (필수)
    - **password**: 비밀번호 (필수, 최소 8자 이상)
    """
    if crud_user.get_user_by_email(db, email=user_in.email):
        raise ValidationError("Email already registered", user_message="이미 가입된 이메일입니다.")

    user = crud_user.create_user(db, obj_in=user_in)
    return Token(
        access_token=security.create_access_token(user.id, email=user.email),
        user=User.model_validate(user)
    )

@router.post("/login", response_model=Token, summary="사용자 로그인")
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = crud_user.authenticate(db, credentials.email, credentials.password)
    if not user or not user.is_active:
        raise AuthenticationError("Incorrect email or password", error_code=ErrorCode.INVALID_CREDENTIALS)

    return Token(
        access_token=security.create_access_token(user.id, email=user.email),
        user=User.model_validate(user)
    )
