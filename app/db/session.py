from typing import Any, Dict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from app.core.config import settings


def _engine_options(database_url: str) -> Dict[str, Any]:
    """데이터베이스 종류별 엔진 옵션"""
    if database_url.startswith("sqlite"):
        # 스레드풀에서 같은 연결을 공유 (테스트/로컬 개발용)
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "poolclass": QueuePool,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 1800,  # 30분마다 연결 재활용
        "pool_timeout": 30,
        "connect_args": {
            "connect_timeout": 15,
            "application_name": "marketplace_api"
        },
    }


engine = create_engine(
    settings.SQLALCHEMY_DATABASE_URL,
    echo=False,
    **_engine_options(settings.SQLALCHEMY_DATABASE_URL)
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
