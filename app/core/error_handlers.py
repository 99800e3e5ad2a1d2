"""
HTTP 에러 응답

모든 예외를 `{"error": {code, message, details, error_id, timestamp, severity}}`
형태로 응답합니다. HIGH 이상은 구조화 로그와 Sentry에 함께 기록하고,
나머지는 경고 로그만 남깁니다.
"""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.error_tracking import REPORTED_SEVERITIES, error_tracker
from app.core.exceptions import (
    APIError, ErrorCode, ErrorSeverity,
    PersistenceError, ValidationError,
    create_error_response
)
from app.core.structured_logging import StructuredLogger

logger = StructuredLogger("error_handler")

_STATUS_TO_CODE = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
}

async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    _report(request, exc)
    return create_error_response(exc)

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """라우팅 404, 405 등 프레임워크가 만든 HTTP 에러"""
    if exc.status_code >= 500:
        code, severity = ErrorCode.INTERNAL_SERVER_ERROR, ErrorSeverity.HIGH
    else:
        code, severity = _STATUS_TO_CODE.get(exc.status_code, ErrorCode.VALIDATION_ERROR), ErrorSeverity.LOW
    api_error = APIError(
        error_code=code,
        message=str(exc.detail),
        status_code=exc.status_code,
        severity=severity
    )
    api_error.headers = getattr(exc, "headers", None)
    _report(request, api_error)
    return create_error_response(api_error)

async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    api_error = ValidationError(
        message="Request validation failed",
        field_errors=[
            {
                "field": " -> ".join(str(x) for x in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
    )
    _report(request, api_error)
    return create_error_response(api_error)

async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    api_error = PersistenceError(
        message=f"Database error: {exc}",
        operation=f"{request.method} {request.url.path}"
    )
    _report(request, api_error, original=exc)
    return create_error_response(api_error)

async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    api_error = APIError(
        error_code=ErrorCode.INTERNAL_SERVER_ERROR,
        message=f"Unexpected error: {exc}" if settings.DEBUG else "Internal server error",
        status_code=500,
        severity=ErrorSeverity.CRITICAL
    )
    _report(request, api_error, original=exc)
    return create_error_response(api_error)

def setup_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

def _report(request: Request, error: APIError, original: Optional[Exception] = None) -> None:
    request_info = _request_info(request)

    if error.severity not in REPORTED_SEVERITIES:
        logger.warning("http_error", {
            "error_id": error.error_id,
            "error_code": error.error_code.value,
            "status_code": error.status_code,
            "detail": error.detail,
            **request_info,
        })
        return

    logger.log_error(
        error=original or error,
        context={
            "error_id": error.error_id,
            "error_code": error.error_code.value,
            "status_code": error.status_code,
            "detail": error.detail,
            "request_info": request_info,
        },
        request_id=request_info.get("request_id")
    )
    error_tracker.capture_exception(
        original or error,
        context={"error_id": error.error_id, "request_info": request_info},
        extra={"severity": error.severity.value, "status_code": error.status_code}
    )

def _request_info(request: Request) -> dict:
    client_ip = request.client.host if request.client else "unknown"
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()

    return {
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
        "request_id": request.headers.get("X-Request-ID"),
    }
