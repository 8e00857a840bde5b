from flask import Blueprint, jsonify, request

from typerace.errors import InvalidRequest
from typerace.services.race import get_race_service

practice = Blueprint('practice', __name__)


@practice.route('/results', methods=['POST'])
def save_result():
    data = request.get_json(silent=True) or {}
    text = data.get('text')
    if not isinstance(text, str) or not text:
        raise InvalidRequest('text is required')
    try:
        wpm = float(data['wpm'])
        accuracy = float(data['accuracy'])
        time_taken = float(data.get('timeTaken', 0))
    except (KeyError, TypeError, ValueError):
        raise InvalidRequest('wpm and accuracy must be numbers')

    result = get_race_service().save_practice_result(
        wpm=wpm,
        accuracy=accuracy,
        time_taken=time_taken,
        text=text,
        player_id=data.get('playerId'),
    )
    return jsonify(result.to_dict()), 201
