"""
중앙 집중식 로깅 설정 모듈

- JSON 형식의 구조화된 로그 출력
- 파일 크기 기반 로그 순환
- 외부 라이브러리 로깅 레벨 제어
"""
import logging
import logging.handlers
import os
import json
from datetime import datetime, timezone
from typing import Optional

from app.core.config import settings

_RESERVED_ATTRS = {
    'args', 'asctime', 'created', 'exc_info', 'exc_text', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message', 'msg', 'name',
    'pathname', 'process', 'processName', 'relativeCreated', 'stack_info',
    'thread', 'threadName', 'taskName',
}

# --- JSON Formatter ---

class JsonFormatter(logging.Formatter):
    """로그 레코드를 JSON 형식으로 변환하는 포맷터"""
    def format(self, record: logging.LogRecord) -> str:
        log_object = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_object['exc_info'] = self.formatException(record.exc_info)

        # extra 필드의 내용을 로그 객체에 추가
        for key, value in record.__dict__.items():
            if key not in log_object and key not in _RESERVED_ATTRS:
                log_object[key] = value

        return json.dumps(log_object, ensure_ascii=False, default=str)

# --- 로깅 설정 함수 ---

def setup_logging(
    log_level: str = settings.LOG_LEVEL,
    log_file: Optional[str] = settings.LOG_FILE,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
):
    """애플리케이션 전역 로깅을 설정합니다."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = JsonFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 기존 핸들러 제거
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # 주요 외부 라이브러리 로깅 레벨 조정
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.info(f"Logging system initialized. Level: {log_level}, File logging: {bool(log_file)}")

# main.py 시작 이벤트에서 호출합니다.
def init_logging():
    setup_logging()
