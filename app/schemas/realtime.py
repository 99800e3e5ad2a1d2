"""WebSocket 메시지 봉투 모델"""
from typing import Any, Dict

from pydantic import BaseModel

class RealtimeEnvelope(BaseModel):
    """양방향 공통 프레임: {"event": ..., "data": {...}}"""

    event: str
    data: Dict[str, Any] = {}
