"""
클라이언트 이벤트 구독 도구

`on()`은 해제 가능한 Subscription 핸들을 반환합니다. 컴포넌트 종료 시
핸들을 dispose 하면 리스너가 남지 않습니다.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]

class Subscription:
    """한 번만 해제되는 구독 핸들 (컨텍스트 매니저로도 사용 가능)"""

    def __init__(self, dispose: Callable[[], None]):
        self._dispose = dispose
        self.disposed = False

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self._dispose()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()

class EventEmitter:
    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Subscription:
        self._listeners.setdefault(event, []).append(listener)

        def _remove():
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(event, None)

        return Subscription(_remove)

    def emit_local(self, event: str, data: Dict[str, Any]) -> int:
        """등록된 리스너를 호출하고 호출 수를 반환합니다."""
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            listener(data)
        return len(listeners)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, ()))
        return sum(len(v) for v in self._listeners.values())

class RealtimeTransport(EventEmitter, ABC):
    """서버와 `{"event", "data"}` 프레임을 주고받는 전송 계층

    하위 클래스는 `connected`와 `send_frame`을 구현하고, 수신한 프레임을
    `handle_frame`으로 넘깁니다.
    """

    @property
    @abstractmethod
    def connected(self) -> bool:
        ...

    @abstractmethod
    def send_frame(self, frame: str) -> None:
        ...

    def emit(self, event: str, data: Dict[str, Any]) -> bool:
        """서버로 이벤트 전송. 연결되어 있지 않으면 False"""
        if not self.connected:
            logger.error("Realtime transport is not connected")
            return False
        self.send_frame(json.dumps({"event": event, "data": data}, ensure_ascii=False))
        return True

    def handle_frame(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
            event, data = frame["event"], frame.get("data") or {}
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed frame: {e}")
            return
        if event == "error":
            logger.error(f"Realtime error from server: {data.get('message')}")
        self.emit_local(event, data)
