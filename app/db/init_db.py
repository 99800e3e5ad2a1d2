from sqlalchemy.exc import OperationalError
from app.db.base import Base
from app.db.session import engine
import logging
import time

logger = logging.getLogger(__name__)

def init_db(max_retries: int = 5, retry_interval: float = 2.0) -> None:
    # 데이터베이스 연결 재시도 로직
    for attempt in range(max_retries):
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables are ready")
            return
        except OperationalError as e:
            if attempt == max_retries - 1:
                logger.error(f"Database initialization failed after {max_retries} attempts: {e}")
                raise
            logger.warning(f"Database connection failed (attempt {attempt + 1}/{max_retries}): {e}")
            time.sleep(retry_interval)
