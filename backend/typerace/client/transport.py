"""Socket.IO subscription that feeds room events into a ``RoomSession``."""
import logging
from typing import Optional

import socketio

from typerace.realtime.events import ALL_EVENTS, NAMESPACE

logger = logging.getLogger(__name__)


class RoomSubscription:
    def __init__(self, url: str, session, *, client: Optional[socketio.Client] = None,
                 namespace: str = NAMESPACE) -> None:
        self.url = url
        self.session = session
        self.namespace = namespace
        self.client = client or socketio.Client(reconnection=True)
        self._register()

    def _register(self) -> None:
        self.client.on('connect', self._on_connect, namespace=self.namespace)
        self.client.on('disconnect', self._on_disconnect, namespace=self.namespace)
        for event in ALL_EVENTS:
            self.client.on(event, self._forward(event), namespace=self.namespace)

    def _forward(self, event: str):
        def handler(payload=None):
            self.session.apply(event, payload or {})
        return handler

    def _on_connect(self):
        # Runs again after every reconnect; the refetch covers anything missed
        self.client.emit('subscribe', {
            'roomId': self.session.room_id,
            'playerId': self.session.player_id,
        }, namespace=self.namespace)
        self.session.refresh()
        logger.info('[subscribe] room=%s player=%s', self.session.room_id, self.session.player_id)

    def _on_disconnect(self, *args):
        logger.info('[subscribe-lost] room=%s', self.session.room_id)

    def open(self) -> None:
        self.client.connect(self.url, namespaces=[self.namespace])

    def close(self) -> None:
        if self.client.connected:
            self.client.emit('unsubscribe', {'roomId': self.session.room_id}, namespace=self.namespace)
            self.client.disconnect()
