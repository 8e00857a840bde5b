import math

from flask import Blueprint, jsonify, request

from typerace.errors import InvalidRequest
from typerace.services.race import get_race_service


rooms = Blueprint('rooms', __name__)


def _payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _require(data, *fields):
    missing = [f for f in fields if not isinstance(data.get(f), str) or not data.get(f).strip()]
    if missing:
        raise InvalidRequest(f"{' and '.join(fields)} {'is' if len(fields) == 1 else 'are'} required")
    return [data[f].strip() for f in fields]


def _number(data, field):
    value = data.get(field)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidRequest(f'{field} must be a number')
    return value


@rooms.route('/create', methods=['POST'])
def create_room():
    data = _payload()
    player_id, player_name = _require(data, 'playerId', 'playerName')
    room = get_race_service().create_room(player_id, player_name)
    return jsonify({'roomId': room.id, 'text': room.text, 'room': room.to_dict()}), 201


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    room = get_race_service().get_room(room_id)
    return jsonify({'room': room.to_dict()})


@rooms.route('/<string:room_id>/join', methods=['POST'])
def join_room(room_id):
    data = _payload()
    player_id, player_name = _require(data, 'playerId', 'playerName')
    room, player, joined = get_race_service().join_room(room_id, player_id, player_name)
    return jsonify({
        'room': room.to_dict(),
        'players': [p.to_dict() for p in room.players],
        'player': player.to_dict(),
        'joined': joined,
    })


@rooms.route('/<string:room_id>/leave', methods=['POST'])
def leave_room(room_id):
    data = _payload()
    player_id, = _require(data, 'playerId')
    room = get_race_service().leave_room(room_id, player_id)
    return jsonify({'success': True, 'roomStatus': room.status})


@rooms.route('/<string:room_id>/start', methods=['POST'])
def start_game(room_id):
    data = _payload()
    player_id, = _require(data, 'playerId')
    room = get_race_service().start_game(room_id, player_id)
    # Accepted: the race itself begins when the countdown ends
    return jsonify({'room': room.to_dict()}), 202


@rooms.route('/<string:room_id>/progress', methods=['POST'])
def report_progress(room_id):
    data = _payload()
    player_id, = _require(data, 'playerId')
    result = get_race_service().report_progress(
        room_id,
        player_id,
        progress=_number(data, 'progress'),
        wpm=_number(data, 'wpm'),
        accuracy=_number(data, 'accuracy'),
    )
    if result is None:
        return jsonify({'ignored': True})
    player, performance = result
    return jsonify({'player': player.to_dict(), 'performance': performance.to_dict()})


@rooms.route('/<string:room_id>/complete', methods=['POST'])
def complete_game(room_id):
    data = _payload()
    player_id, = _require(data, 'playerId')
    room = get_race_service().complete_game(
        room_id,
        player_id,
        wpm=_number(data, 'wpm'),
        accuracy=_number(data, 'accuracy'),
    )
    return jsonify({'success': True, 'roomStatus': room.status})


@rooms.route('/<string:room_id>/finish', methods=['POST'])
def complete_room(room_id):
    data = _payload()
    player_id, = _require(data, 'playerId')
    room = get_race_service().complete_room(room_id, player_id)
    return jsonify({'success': True, 'roomStatus': room.status})


@rooms.route('/<string:room_id>/new-game', methods=['POST'])
def new_game(room_id):
    data = _payload()
    player_id, = _require(data, 'playerId')
    new_room = get_race_service().new_game(room_id, player_id)
    return jsonify({'newRoomId': new_room.id}), 201


@rooms.route('/<string:room_id>', methods=['DELETE'])
def delete_room(room_id):
    data = _payload()
    player_id, = _require(data, 'playerId')
    room = get_race_service().delete_room(room_id, player_id)
    return jsonify({'success': True, 'roomStatus': room.status})
