"""
Sentry 연동

HTTP 에러 핸들러와 실시간 허브가 예상하지 못한 에러를 보고할 때 사용합니다.
SENTRY_DSN이 없으면 sentry_sdk 호출은 아무 일도 하지 않습니다.
"""
import logging
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.core.config import settings
from app.core.exceptions import APIError, ErrorSeverity

logger = logging.getLogger(__name__)

REPORTED_SEVERITIES = (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL)

def _drop_client_errors(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # 검증/권한 같은 낮은 심각도의 APIError는 보내지 않음
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], APIError) and exc_info[1].severity not in REPORTED_SEVERITIES:
        return None
    return event

def init_sentry() -> bool:
    if not settings.SENTRY_DSN:
        logger.info("SENTRY_DSN is not set, error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            LoggingIntegration(level=None, event_level=None),
        ],
        traces_sample_rate=0.1,
        environment=settings.ENVIRONMENT,
        release=f"marketplace-chat-api@{settings.VERSION}",
        before_send=_drop_client_errors,
    )
    return True

class ErrorTracker:

    @staticmethod
    def capture_exception(
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> None:
        with sentry_sdk.new_scope() as scope:
            if user_id:
                scope.set_user({"id": user_id})
            for key, value in (context or {}).items():
                scope.set_context(key, value if isinstance(value, dict) else {"value": value})
            for key, value in (extra or {}).items():
                scope.set_extra(key, value)

            scope.set_tag("error_type", type(error).__name__)
            if isinstance(error, APIError):
                scope.set_tag("error_code", error.error_code.value)
                scope.set_tag("error_id", error.error_id)

            sentry_sdk.capture_exception(error)

    @staticmethod
    def add_breadcrumb(message: str, category: str = "realtime", data: Optional[Dict[str, Any]] = None) -> None:
        """실시간 이벤트 흐름을 에러 리포트에 남깁니다."""
        sentry_sdk.add_breadcrumb(message=message, category=category, level="info", data=data or {})

error_tracker = ErrorTracker()
