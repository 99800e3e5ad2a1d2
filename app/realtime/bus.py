"""
브로드캐스트 버스

룸(`user:<id>`, `chat:<id>`) 구독은 항상 프로세스 로컬 연결에 대한 집합 연산입니다.
publish는 구현에 따라 로컬에서 바로 전달(InMemory)하거나, Redis 채널을 거쳐
모든 프로세스가 각자의 로컬 구독자에게 전달(Redis)합니다.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.core.config import Settings
from app.realtime.connection import Connection

logger = logging.getLogger(__name__)

def user_room(user_id: str) -> str:
    return f"user:{user_id}"

def chat_room(chat_id: str) -> str:
    return f"chat:{chat_id}"

class BroadcastBus(ABC):
    """publish(room, event, payload) / subscribe(room, connection)"""

    def __init__(self):
        self._rooms: Dict[str, Set[Connection]] = {}

    def subscribe(self, room: str, connection: Connection) -> None:
        self._rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)

    def unsubscribe(self, room: str, connection: Connection) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]
        connection.rooms.discard(room)

    def unsubscribe_all(self, connection: Connection) -> None:
        for room in list(connection.rooms):
            self.unsubscribe(room, connection)

    def room_members(self, room: str) -> Set[Connection]:
        return set(self._rooms.get(room, ()))

    @abstractmethod
    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        ...

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def _deliver(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        """로컬 구독자에게 전달하고 전달된 연결 수를 반환합니다."""
        delivered = 0
        for connection in list(self._rooms.get(room, ())):
            try:
                await connection.send(event, payload)
                delivered += 1
            except Exception as e:
                # 끊어진 연결 하나가 나머지 구독자 전달을 막지 않도록 함
                logger.warning(f"Failed to deliver '{event}' to {connection!r} in {room}: {e}")
        return delivered

class InMemoryBroadcastBus(BroadcastBus):
    """단일 프로세스용"""

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        await self._deliver(room, event, payload)

class RedisBroadcastBus(BroadcastBus):
    """Redis pub/sub 채널을 통한 다중 프로세스 전달

    발행한 프로세스도 채널을 통해 되돌려 받아 전달하므로, 각 구독자는
    정확히 한 번 수신합니다. 구독 연결이 끊기면 지수 백오프로 재구독합니다.
    """

    def __init__(
        self,
        redis_url: str,
        channel: str,
        client: Optional[aioredis.Redis] = None,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0
    ):
        super().__init__()
        self.redis_url = redis_url
        self.channel = channel
        self.client = client
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self.client is None:
            self.client = aioredis.Redis.from_url(
                self.redis_url, decode_responses=True,
                socket_connect_timeout=5, health_check_interval=30
            )
        await self._subscribe()
        self._listener = asyncio.create_task(self._listen())
        self._listener.add_done_callback(self._on_listener_done)
        logger.info(f"Redis broadcast bus subscribed to '{self.channel}'")

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        envelope = json.dumps({"room": room, "event": event, "data": payload}, ensure_ascii=False)
        await self.client.publish(self.channel, envelope)

    async def _subscribe(self) -> None:
        self._pubsub = self.client.pubsub()
        await self._pubsub.subscribe(self.channel)

    async def _reset_pubsub(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.aclose()
        except RedisError as e:
            logger.debug(f"Ignoring error while closing stale pubsub: {e}")

    async def _listen(self) -> None:
        delay = self.reconnect_delay
        while True:
            try:
                if self._pubsub is None:
                    await self._subscribe()
                    logger.info(f"Redis broadcast bus resubscribed to '{self.channel}'")
                async for message in self._pubsub.listen():
                    delay = self.reconnect_delay
                    if message.get("type") != "message":
                        continue
                    await self.handle_raw_message(message["data"])
                logger.warning(f"Redis subscription to '{self.channel}' ended, resubscribing in {delay:.1f}s")
            except (RedisConnectionError, RedisTimeoutError) as e:
                logger.warning(f"Redis broadcast listener lost connection, retrying in {delay:.1f}s: {e}")
            await self._reset_pubsub()
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    def _on_listener_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Redis broadcast listener stopped: {error!r}", exc_info=error)

    async def handle_raw_message(self, raw: Any) -> int:
        try:
            envelope = json.loads(raw)
            room, event, payload = envelope["room"], envelope["event"], envelope["data"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Dropping malformed broadcast envelope: {e}")
            return 0
        return await self._deliver(room, event, payload)

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            # 이미 오류로 끝난 리스너는 _on_listener_done에서 기록됨
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
            except RedisError as e:
                logger.warning(f"Failed to unsubscribe from '{self.channel}': {e}")
            await self._reset_pubsub()
        if self.client is not None:
            await self.client.aclose()
            self.client = None

def create_broadcast_bus(settings: Settings) -> BroadcastBus:
    """설정(BROADCAST_BACKEND)에 따라 버스 구현을 선택합니다."""
    if settings.BROADCAST_BACKEND == "redis":
        if not settings.REDIS_URL:
            raise ValueError("REDIS_URL is required when BROADCAST_BACKEND is 'redis'")
        return RedisBroadcastBus(settings.REDIS_URL, settings.BROADCAST_CHANNEL)
    return InMemoryBroadcastBus()
