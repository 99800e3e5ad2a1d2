"""
websockets 클라이언트 기반 실시간 전송 계층

`{url}?token=<jwt>`로 핸드셰이크한 뒤, 수신 프레임은 handle_frame으로 넘기고
emit한 프레임은 보낸 순서대로 전송합니다. 연결이 끊기면 `disconnect` 이벤트를
로컬 리스너에게 알립니다.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

import httpx
import websockets
from websockets.exceptions import ConnectionClosed

from app.client.events import RealtimeTransport

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]

def with_token(url: str, token: str) -> str:
    return str(httpx.URL(url).copy_merge_params({"token": token}))

class WebSocketTransport(RealtimeTransport):

    def __init__(self, url: str, token: str, connector: Connector = websockets.connect):
        super().__init__()
        self.url = url
        self.token = token
        self._connector = connector
        self._ws = None
        self._outbox: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """핸드셰이크가 거절되면 websockets의 InvalidHandshake가 그대로 전파됩니다."""
        if self._ws is not None:
            return
        ws = await self._connector(with_token(self.url, self.token))
        self._ws = ws
        self._outbox = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._read_loop(ws)),
            asyncio.create_task(self._write_loop(ws, self._outbox)),
        ]
        logger.info(f"Realtime transport connected to {self.url}")

    def send_frame(self, frame: str) -> None:
        self._outbox.put_nowait(frame)

    async def _read_loop(self, ws) -> None:
        try:
            async for raw in ws:
                if isinstance(raw, str):
                    self.handle_frame(raw)
                else:
                    logger.warning("Ignoring binary frame from server")
        except ConnectionClosed as e:
            logger.warning(f"Realtime connection closed: {e}")
        finally:
            self._mark_closed()

    async def _write_loop(self, ws, outbox: asyncio.Queue) -> None:
        while True:
            frame = await outbox.get()
            try:
                await ws.send(frame)
            except ConnectionClosed as e:
                logger.warning(f"Dropping frame, connection closed: {e}")
                return
            finally:
                outbox.task_done()

    def _mark_closed(self) -> None:
        if self._ws is None:
            return
        self._ws = None
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current:
                task.cancel()
        self.emit_local("disconnect", {})

    async def close(self) -> None:
        """보내지 않은 프레임을 마저 보낸 뒤 연결을 닫습니다."""
        ws, outbox, tasks = self._ws, self._outbox, self._tasks
        if ws is None:
            return
        try:
            await asyncio.wait_for(outbox.join(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning("Closing realtime transport with unsent frames")
        self._mark_closed()
        await ws.close()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks = []
