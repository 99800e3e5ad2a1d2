import logging
import json
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional

class StructuredLogger:
    """구조화된 로그 시스템

    이벤트 이름과 데이터를 JSON 한 줄로 기록합니다. 핸들러와 포맷은
    `logging_config.setup_logging`이 루트 로거에 설정한 것을 그대로 사용합니다.
    """

    def __init__(self, name: str = "marketplace_api"):
        self.logger = logging.getLogger(name)

    def log_realtime_event(self,
                           event: str,
                           connection_id: Optional[str] = None,
                           user_id: Optional[str] = None,
                           **kwargs):
        """실시간 연결 이벤트 로그"""
        self.info("realtime_event", {
            "event": event,
            "connection_id": connection_id,
            "user_id": user_id,
            **kwargs
        })

    def log_error(self,
                  error: Exception,
                  context: Dict[str, Any] = None,
                  user_id: Optional[str] = None,
                  request_id: Optional[str] = None):
        """에러 로그"""
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            "user_id": user_id,
            "request_id": request_id,
            "context": context or {}
        }
        self.error("error_occurred", error_data)

    def _render(self, level: str, event: str, data: Optional[Dict[str, Any]]) -> str:
        return json.dumps({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "data": data or {}
        }, ensure_ascii=False, default=str)

    def info(self, event: str, data: Optional[Dict[str, Any]] = None):
        """정보 로그"""
        self.logger.info(self._render("INFO", event, data))

    def warning(self, event: str, data: Optional[Dict[str, Any]] = None):
        """경고 로그"""
        self.logger.warning(self._render("WARNING", event, data))

    def error(self, event: str, data: Optional[Dict[str, Any]] = None):
        """에러 로그"""
        self.logger.error(self._render("ERROR", event, data))

# 전역 로거 인스턴스
structured_logger = StructuredLogger()
