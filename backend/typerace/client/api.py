"""HTTP command client for the race server.

Error responses are turned back into the same typed errors the server raised
(``NotFound``, ``Forbidden``, ``Conflict``, ``FailedPrecondition``). Nothing is
retried; the caller decides.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from typerace.errors import error_from_response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Tuple[float, float] = (3.0, 10.0)  # connect, read


class RaceApiClient:
    def __init__(self, base_url: str, *, session: Optional[requests.Session] = None,
                 timeout: Tuple[float, float] = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/api{path}"
        response = self.session.request(method, url, json=json, headers=headers, timeout=self.timeout)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            logger.info('[command-failed] %s %s status=%s body=%s', method, path, response.status_code, body)
            raise error_from_response(response.status_code, body)
        return body

    # ---- commands ----

    def create_room(self, player_id: str, player_name: str) -> Dict[str, Any]:
        return self._request('POST', '/rooms/create', {'playerId': player_id, 'playerName': player_name})

    def join_room(self, room_id: str, player_id: str, player_name: str) -> Dict[str, Any]:
        return self._request('POST', f'/rooms/{room_id}/join', {'playerId': player_id, 'playerName': player_name})

    def leave_room(self, room_id: str, player_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/rooms/{room_id}/leave', {'playerId': player_id})

    def start_game(self, room_id: str, player_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/rooms/{room_id}/start', {'playerId': player_id})

    def report_progress(self, room_id: str, player_id: str, progress: float, wpm: int,
                        accuracy: float) -> Dict[str, Any]:
        return self._request('POST', f'/rooms/{room_id}/progress', {
            'playerId': player_id,
            'progress': progress,
            'wpm': wpm,
            'accuracy': accuracy,
        })

    def complete_game(self, room_id: str, player_id: str, wpm: int, accuracy: float) -> Dict[str, Any]:
        return self._request('POST', f'/rooms/{room_id}/complete', {
            'playerId': player_id,
            'wpm': wpm,
            'accuracy': accuracy,
        })

    def complete_room(self, room_id: str, player_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/rooms/{room_id}/finish', {'playerId': player_id})

    def new_game(self, room_id: str, player_id: str) -> str:
        return self._request('POST', f'/rooms/{room_id}/new-game', {'playerId': player_id})['newRoomId']

    def delete_room(self, room_id: str, player_id: str) -> Dict[str, Any]:
        return self._request('DELETE', f'/rooms/{room_id}', {'playerId': player_id})

    # ---- queries ----

    def get_room(self, room_id: str) -> Dict[str, Any]:
        return self._request('GET', f'/rooms/{room_id}')['room']

    def get_stats(self, player_id: Optional[str] = None) -> Dict[str, Any]:
        headers = {'X-Player-Id': player_id} if player_id else None
        return self._request('GET', '/stats', headers=headers)

    def save_practice_result(self, wpm: int, accuracy: float, time_taken: float, text: str,
                             player_id: Optional[str] = None) -> Dict[str, Any]:
        return self._request('POST', '/practice/results', {
            'playerId': player_id,
            'wpm': wpm,
            'accuracy': accuracy,
            'timeTaken': time_taken,
            'text': text,
        })
