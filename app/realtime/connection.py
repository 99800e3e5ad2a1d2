"""
실시간 연결과 연결 레지스트리

연결은 검증된 사용자 id에 묶인 일시적 세션입니다. 레지스트리는 프로세스
전역 변수가 아니라 RealtimeHub가 소유하며, 연결 수립/종료 시점에만 변경됩니다.
"""
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from app.core.security import TokenClaims
from app.core.utils import generate_uuid

logger = logging.getLogger(__name__)

class Connection:
    """하나의 WebSocket 세션"""

    def __init__(self, websocket: Optional[WebSocket], claims: TokenClaims, connection_id: Optional[str] = None):
        self.id = connection_id or generate_uuid()
        self.websocket = websocket
        self.claims = claims
        self.rooms: Set[str] = set()

    @property
    def user_id(self) -> str:
        return self.claims.user_id

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    async def send_error(self, payload: Dict[str, Any]) -> None:
        """발신 연결에만 전달되는 error 이벤트"""
        await self.send("error", payload)

    def __repr__(self):
        return f"<Connection {self.id} user={self.user_id}>"

class ConnectionRegistry:
    """연결 id -> 연결, 사용자 id -> 연결 집합"""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._by_user: Dict[str, Set[str]] = {}

    def register(self, connection: Connection) -> None:
        self._connections[connection.id] = connection
        self._by_user.setdefault(connection.user_id, set()).add(connection.id)
        logger.debug(f"Registered {connection!r}")

    def unregister(self, connection: Connection) -> None:
        self._connections.pop(connection.id, None)
        ids = self._by_user.get(connection.user_id)
        if ids is not None:
            ids.discard(connection.id)
            if not ids:
                del self._by_user[connection.user_id]
        logger.debug(f"Unregistered {connection!r}")

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connections_for_user(self, user_id: str) -> List[Connection]:
        return [self._connections[cid] for cid in self._by_user.get(user_id, ())]

    def online_user_ids(self) -> List[str]:
        return list(self._by_user.keys())

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: Connection) -> bool:
        return connection.id in self._connections
