from typing import List, Optional

import httpx

from app.schemas.chat import Chat

class ChatApiClient:
    """채팅 REST API 클라이언트 (httpx)"""

    def __init__(self, base_url: str, token: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def get_chats(self) -> List[Chat]:
        async with self._session() as client:
            response = await client.get(f"{self.base_url}/chats", headers=self._headers())
            response.raise_for_status()
            return [Chat.model_validate(item) for item in response.json()]

    async def login(self, email: str, password: str) -> dict:
        async with self._session() as client:
            response = await client.post(
                f"{self.base_url}/auth/login",
                json={"email": email, "password": password}
            )
            response.raise_for_status()
            data = response.json()
            self.token = data["access_token"]
            return data

    def _session(self):
        if self._client is not None:
            return _Borrowed(self._client)
        return httpx.AsyncClient(timeout=10.0)

class _Borrowed:
    """외부에서 주입한 클라이언트는 닫지 않음"""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def __aenter__(self) -> httpx.AsyncClient:
        return self.client

    async def __aexit__(self, *exc) -> None:
        return None
