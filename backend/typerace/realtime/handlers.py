from typing import Dict, Set

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from typerace import socketio
from typerace.realtime.events import NAMESPACE, player_channel, room_channel

# Channels each socket subscribed to, for logging on disconnect
_sid_channels: Dict[str, Set[str]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    # Membership is released only by an explicit leave command, never here
    channels = _sid_channels.pop(_get_sid(), set())
    if channels:
        current_app.logger.info(f"[socket-disconnect] sid={_get_sid()} channels={sorted(channels)}")


def handle_subscribe(data):
    room_id = ((data or {}).get('roomId') or '').upper()
    if not room_id:
        emit('error', {'message': 'roomId is required'})
        return
    channel = room_channel(room_id)
    join_room(channel)
    joined = _sid_channels.setdefault(_get_sid(), set())
    joined.add(channel)

    player_id = (data or {}).get('playerId')
    if player_id:
        join_room(player_channel(player_id))
        joined.add(player_channel(player_id))
    emit('subscribed', {'channel': channel, 'roomId': room_id})


def handle_unsubscribe(data):
    room_id = ((data or {}).get('roomId') or '').upper()
    if not room_id:
        emit('error', {'message': 'roomId is required'})
        return
    channel = room_channel(room_id)
    leave_room(channel)
    _sid_channels.get(_get_sid(), set()).discard(channel)
    emit('unsubscribed', {'channel': channel, 'roomId': room_id})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE] + (['/'] if testing else [])
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe', handle_subscribe, namespace=namespace)
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
