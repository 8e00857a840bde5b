import uuid
from threading import RLock
from typing import Callable, Dict, Tuple


class CountdownScheduler:
    """Delayed pre-race continuations, at most one per room.

    - Each scheduled countdown gets a token; cancelling a room drops the token
      so a sleeping worker discards itself when it wakes up
    - Runs inline in TESTING mode unless COUNTDOWN_DEFERRED_IN_TESTS is set,
      in which case the countdown stays pending until ``fire`` is called
    """

    def __init__(self, socketio) -> None:
        self.socketio = socketio
        self._lock = RLock()
        self._pending: Dict[str, Tuple[str, Callable[[], None]]] = {}

    def is_pending(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._pending

    def schedule(self, app, room_id: str, delay: float, callback: Callable[[], None]) -> bool:
        with self._lock:
            if room_id in self._pending:
                app.logger.info(f"[countdown-skip] room={room_id} already scheduled")
                return False
            token = uuid.uuid4().hex
            self._pending[room_id] = (token, callback)

        app.logger.info(f"[countdown-set] room={room_id} delay={delay}s token={token}")

        if app.config.get('TESTING'):
            if not app.config.get('COUNTDOWN_DEFERRED_IN_TESTS'):
                self._fire(app, room_id, token)
            return True

        self.socketio.start_background_task(self._worker, app, room_id, token, delay)
        return True

    def cancel(self, app, room_id: str) -> bool:
        with self._lock:
            entry = self._pending.pop(room_id, None)
        if entry is not None:
            app.logger.info(f"[countdown-cancel] room={room_id} token={entry[0]}")
        return entry is not None

    def fire(self, app, room_id: str) -> bool:
        """Run a pending countdown now, skipping the remaining delay."""
        with self._lock:
            entry = self._pending.get(room_id)
        if entry is None:
            return False
        return self._fire(app, room_id, entry[0])

    def _worker(self, app, room_id: str, token: str, delay: float) -> None:
        self.socketio.sleep(delay)
        try:
            self._fire(app, room_id, token)
        except Exception:
            app.logger.exception(f"[countdown-error] room={room_id} token={token}")

    def _fire(self, app, room_id: str, token: str) -> bool:
        with self._lock:
            entry = self._pending.get(room_id)
            if entry is None or entry[0] != token:
                app.logger.info(f"[countdown-abort] room={room_id} token={token} cancelled")
                return False
            del self._pending[room_id]

        app.logger.info(f"[countdown-fire] room={room_id} token={token}")
        with app.app_context():
            entry[1]()
        return True
