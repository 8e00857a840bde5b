from collections import defaultdict
from threading import RLock
from typing import Any, Callable, Dict, List, Tuple

from typerace.realtime.events import NAMESPACE

Handler = Callable[[str, Dict[str, Any]], None]


class SocketIOBroadcaster:
    """Relays events to the Socket.IO room named after the channel."""

    def __init__(self, socketio, namespace: str = NAMESPACE) -> None:
        self.socketio = socketio
        self.namespace = namespace

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        # Use socketio.emit since this may be called from a background task
        self.socketio.emit(event, payload, to=channel, namespace=self.namespace)


class InMemoryBroadcaster:
    """In-process pub/sub: records every publish and fans out to subscribers."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)
        self.published: List[Tuple[str, str, Dict[str, Any]]] = []

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.published.append((channel, event, payload))
            handlers = list(self._subscribers.get(channel, ()))
        for handler in handlers:
            handler(event, payload)

    def subscribe(self, channel: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._subscribers[channel].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._subscribers.get(channel, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def events(self, channel: str = None, event: str = None) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return [
                (name, payload)
                for ch, name, payload in self.published
                if (channel is None or ch == channel) and (event is None or name == event)
            ]

    def clear(self) -> None:
        with self._lock:
            self.published.clear()
