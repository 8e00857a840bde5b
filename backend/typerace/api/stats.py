from flask import Blueprint, jsonify, request

from typerace.services.race import get_race_service

stats = Blueprint('stats', __name__)


@stats.route('/stats', methods=['GET'])
def get_stats():
    player_id = request.headers.get('X-Player-Id') or request.args.get('playerId')
    return jsonify(get_race_service().get_stats(player_id))
