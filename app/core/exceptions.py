from typing import Dict, Any, Optional, List
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
import uuid
from enum import Enum

class ErrorCode(str, Enum):
    """표준화된 에러 코드"""

    # 일반 에러
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"

    # 인증 관련 에러
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    # 채팅 관련 에러
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CHAT_CREATION_FAILED = "CHAT_CREATION_FAILED"

    # 데이터베이스 관련 에러
    DATABASE_ERROR = "DATABASE_ERROR"

class ErrorSeverity(str, Enum):
    """에러 심각도"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

class APIError(HTTPException):
    """표준화된 API 에러

    HTTP 응답과 실시간 `error` 이벤트 양쪽에서 같은 형태로 사용됩니다.
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 500,
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM
    ):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.user_message = user_message or self._get_user_friendly_message(error_code)
        self.details = details or {}
        self.severity = severity
        self.error_id = str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def _get_user_friendly_message(self, error_code: ErrorCode) -> str:
        """사용자 친화적 에러 메시지"""
        messages = {
            ErrorCode.INTERNAL_SERVER_ERROR: "일시적인 서버 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
            ErrorCode.VALIDATION_ERROR: "입력 정보에 오류가 있습니다. 다시 확인해주세요.",
            ErrorCode.UNAUTHORIZED: "로그인이 필요합니다.",
            ErrorCode.FORBIDDEN: "접근 권한이 없습니다.",
            ErrorCode.NOT_FOUND: "요청한 정보를 찾을 수 없습니다.",

            ErrorCode.MISSING_TOKEN: "인증 토큰이 제공되지 않았습니다.",
            ErrorCode.INVALID_TOKEN: "유효하지 않은 인증 토큰입니다.",
            ErrorCode.INVALID_CREDENTIALS: "이메일 또는 비밀번호가 올바르지 않습니다.",

            ErrorCode.PERMISSION_DENIED: "이 채팅에 메시지를 보낼 권한이 없습니다.",
            ErrorCode.CHAT_CREATION_FAILED: "채팅을 생성하지 못했습니다.",

            ErrorCode.DATABASE_ERROR: "데이터베이스 오류가 발생했습니다.",
        }
        return messages.get(error_code, "알 수 없는 오류가 발생했습니다.")

    def to_event_payload(self) -> Dict[str, Any]:
        """실시간 `error` 이벤트 페이로드"""
        return {
            "message": self.user_message,
            "code": self.error_code.value,
        }

class ValidationError(APIError):
    """입력 검증 에러"""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None, user_message: Optional[str] = None):
        super().__init__(
            error_code=ErrorCode.VALIDATION_ERROR,
            message=message,
            status_code=400,
            user_message=user_message,
            details={"field_errors": field_errors or []},
            severity=ErrorSeverity.LOW
        )

class AuthenticationError(APIError):
    """인증 에러"""

    def __init__(self, message: str = "Authentication required", error_code: ErrorCode = ErrorCode.UNAUTHORIZED):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
            severity=ErrorSeverity.MEDIUM
        )

class MissingTokenError(AuthenticationError):
    """토큰 누락"""

    def __init__(self, message: str = "Token not provided"):
        super().__init__(message=message, error_code=ErrorCode.MISSING_TOKEN)

class InvalidTokenError(AuthenticationError):
    """토큰 형식 오류, 만료, 서명 불일치"""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message=message, error_code=ErrorCode.INVALID_TOKEN)

class PermissionDeniedError(APIError):
    """채팅 멤버십 밖에서의 요청"""

    def __init__(self, message: str = "Access denied"):
        super().__init__(
            error_code=ErrorCode.PERMISSION_DENIED,
            message=message,
            status_code=403,
            severity=ErrorSeverity.MEDIUM
        )

class NotFoundError(APIError):
    """리소스 찾기 실패 에러"""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(
            error_code=ErrorCode.NOT_FOUND,
            message=message,
            status_code=404,
            severity=ErrorSeverity.LOW
        )

class PersistenceError(APIError):
    """저장소 장애. 클라이언트에는 일반 메시지만 노출됩니다."""

    def __init__(self, message: str, operation: Optional[str] = None, error_code: ErrorCode = ErrorCode.DATABASE_ERROR):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=500,
            details={"operation": operation} if operation else None,
            severity=ErrorSeverity.HIGH
        )

class ChatCreationFailedError(PersistenceError):
    """채팅 생성 실패"""

    def __init__(self, message: str = "Chat creation failed"):
        super().__init__(
            message=message,
            operation="insert_chat",
            error_code=ErrorCode.CHAT_CREATION_FAILED
        )

def create_error_response(error: APIError) -> JSONResponse:
    """표준화된 에러 응답 생성"""
    details = {} if isinstance(error, PersistenceError) else error.details
    return JSONResponse(
        status_code=error.status_code,
        content={
            "error": {
                "code": error.error_code,
                "message": error.user_message,
                "details": details,
                "error_id": error.error_id,
                "timestamp": error.timestamp,
                "severity": error.severity
            }
        },
        headers=getattr(error, "headers", None)
    )
