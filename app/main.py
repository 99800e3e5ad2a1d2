from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import settings
from app.api.api_v1.api import api_router
from app.db.init_db import init_db
from app.db.session import SessionLocal
from app.core.error_handlers import setup_error_handlers
from app.core.error_tracking import init_sentry
from app.core.logging_config import init_logging
from app.realtime.bus import create_broadcast_bus
from app.realtime.hub import RealtimeHub
from app.services.chat_gateway import ChatGateway
import logging

logger = logging.getLogger(__name__)

description = """
## Freelance Marketplace Chat API

프리랜서 마켓플레이스의 실시간 채팅 백엔드입니다.

### 인증 방식

Bearer 토큰 인증을 사용합니다. 로그인 후 받은 토큰을 Authorization 헤더에 포함하세요.

```
Authorization: Bearer <your-token>
```

실시간 연결은 `/api/v1/ws?token=<your-token>` 으로 접속합니다.
"""

tags_metadata = [
    {"name": "auth", "description": "회원가입 및 로그인"},
    {"name": "chats", "description": "채팅 목록 및 메시지 조회"},
    {"name": "realtime", "description": "WebSocket 기반 실시간 채팅"},
    {"name": "health", "description": "서버 상태 확인"},
]

# 환경별 문서 접근 설정
docs_url = f"{settings.API_V1_STR}/docs" if settings.ENVIRONMENT == "development" else None
openapi_url = f"{settings.API_V1_STR}/openapi.json" if settings.ENVIRONMENT == "development" else None

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=description,
    version=settings.VERSION,
    openapi_url=openapi_url,
    docs_url=docs_url,
    redoc_url=None,
    openapi_tags=tags_metadata,
    debug=settings.DEBUG
)

# 에러 추적 초기화 (Sentry)
init_sentry()

# 글로벌 에러 핸들러 설정
setup_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_event():
    init_logging()
    init_db()

    app.state.realtime = RealtimeHub(
        bus=create_broadcast_bus(settings),
        gateway=ChatGateway(SessionLocal)
    )
    await app.state.realtime.start()

    logger.info(f"{settings.PROJECT_NAME} started (broadcast backend: {settings.BROADCAST_BACKEND})")

@app.on_event("shutdown")
async def shutdown_event():
    """애플리케이션 종료 시 정리 작업"""
    hub = getattr(app.state, "realtime", None)
    if hub is not None:
        await hub.close()
    logger.info(f"{settings.PROJECT_NAME} stopped")

app.include_router(api_router, prefix=settings.API_V1_STR.strip())

@app.get("/", tags=["root"])
def read_root():
    """API 루트 엔드포인트"""
    response = {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
    }
    if settings.ENVIRONMENT == "development":
        response["docs_url"] = f"{settings.API_V1_STR}/docs"
    return response
