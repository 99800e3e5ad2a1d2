from fastapi import APIRouter, Request
from datetime import datetime, timezone

router = APIRouter()

@router.get("/health", tags=["health"])
def health_check(request: Request):
    """
    헬스 체크 엔드포인트

    API 서버 상태와 현재 프로세스의 실시간 연결 수를 반환합니다.
    """
    hub = getattr(request.app.state, "realtime", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "connections": len(hub.registry) if hub is not None else 0,
    }
