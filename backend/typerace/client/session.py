"""Client-side view of one room.

``RoomSession`` keeps a local copy of the room (players, performances, the
input buffer and the countdown/race timers) and reconciles it with the events
broadcast on the room channel. Commands go to the server through a command
client (see ``typerace.client.api``) and are fire-and-forget from the
caller's point of view: typing never waits on a round trip.

Reconciliation rules:

- events carry a per-room ``seq``; anything at or below the last applied
  ``seq`` is a duplicate or arrived late and is dropped, and a gap triggers
  a refetch of the room snapshot
- players and performances are merged by id, last writer wins per field
- the local 3-2-1 countdown runs off the local clock and makes input live at
  zero; ``game-start`` resets the race whenever it lands
- completion has a single path: finishing the text or the race timer running
  out sends ``complete`` exactly once, and the server only records it
"""
import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from threading import RLock
from typing import Any, Callable, Dict, Optional

from typerace.errors import RaceError
from typerace.realtime import events
from typerace.services import metrics

logger = logging.getLogger(__name__)


class Phase:
    WAITING = 'waiting'
    COUNTDOWN = 'countdown'
    RACING = 'racing'
    FINISHED = 'finished'
    CLOSED = 'closed'


class RoomSession:
    def __init__(self, api, room_id: str, player_id: str, *,
                 clock: Callable[[], float] = time.monotonic,
                 dispatch: Optional[Callable[..., Any]] = None,
                 countdown_sec: float = 3, time_limit: int = 60) -> None:
        self.api = api
        self.room_id = room_id.upper()
        self.player_id = player_id
        self.clock = clock
        self._executor = None
        if dispatch is None:
            # One worker keeps this session's commands in the order they were issued
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='room-session')
            dispatch = self._executor.submit
        self._dispatch = dispatch
        self._lock = RLock()

        self.room: Optional[Dict[str, Any]] = None
        self.players: Dict[str, Dict[str, Any]] = {}
        self.performances: Dict[str, Dict[str, Any]] = {}
        self.phase = Phase.WAITING
        self.message: Optional[str] = None
        self.next_room_id: Optional[str] = None
        self.last_seq = 0

        self.input = ''
        self.keystrokes = 0
        self.mistakes = 0
        self.countdown_sec = countdown_sec
        self.time_limit = time_limit
        self.countdown_started_at: Optional[float] = None
        self.race_started_at: Optional[float] = None
        self.typing_started_at: Optional[float] = None
        self._completion_sent = False

        self._handlers = {
            events.PLAYER_JOINED: self._on_player_joined,
            events.PLAYER_LEFT: self._on_player_left,
            events.COUNTDOWN_START: self._on_countdown_start,
            events.GAME_START: self._on_game_start,
            events.TYPING_UPDATE: self._on_typing_update,
            events.GAME_COMPLETE: self._on_game_complete,
            events.NEW_GAME_CREATED: self._on_new_game_created,
        }

    # ---- server snapshot ----

    def load(self) -> Dict[str, Any]:
        """Fetch the room and adopt it; blocks, unlike every other command."""
        snapshot = self.api.get_room(self.room_id)
        self.adopt(snapshot)
        return snapshot

    def refresh(self) -> None:
        self._submit(self.load)

    def adopt(self, snapshot: Dict[str, Any]) -> bool:
        with self._lock:
            seq = snapshot.get('eventSeq') or 0
            if seq < self.last_seq:
                # Older than events already applied
                return False
            self.last_seq = seq
            self.room = dict(snapshot)
            self.players = {p['id']: dict(p) for p in snapshot.get('players', [])}
            self.performances = {
                perf['playerId']: dict(perf) for perf in snapshot.get('performances', [])
            }
            status = snapshot.get('status')
            if status == 'DELETED':
                self.phase = Phase.CLOSED
            elif status == 'COMPLETED' and self.phase != Phase.CLOSED:
                self.phase = Phase.FINISHED
            elif status == 'IN_PROGRESS' and self.phase in (Phase.WAITING, Phase.COUNTDOWN):
                # Missed game-start (late subscribe or reconnect)
                self._begin_race(self.clock())
            return True

    # ---- events ----

    def apply(self, event: str, payload: Dict[str, Any]) -> bool:
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug('[session-skip] room=%s unknown event=%s', self.room_id, event)
            return False
        refetch = False
        with self._lock:
            seq = payload.get('seq')
            if seq is not None:
                if seq <= self.last_seq:
                    logger.debug('[session-drop] room=%s event=%s seq=%s last=%s',
                                 self.room_id, event, seq, self.last_seq)
                    return False
                if seq > self.last_seq + 1 and self.room is not None:
                    refetch = True
                self.last_seq = seq
            refetch = bool(handler(payload)) or refetch
        if refetch:
            self.refresh()
        return True

    def _on_player_joined(self, payload) -> bool:
        player = payload.get('player') or {}
        if player.get('id'):
            self.players[player['id']] = {**self.players.get(player['id'], {}), **player}
        return True

    def _on_player_left(self, payload) -> bool:
        self.message = payload.get('message')
        status = payload.get('roomStatus')
        if self.room is not None and status:
            self.room['status'] = status
        if payload.get('shouldRedirect'):
            self._stop()
            self.phase = Phase.CLOSED
            return False
        self.players.pop(payload.get('playerId'), None)
        self.performances.pop(payload.get('playerId'), None)
        if status == 'COMPLETED' and self.phase != Phase.CLOSED:
            self.phase = Phase.FINISHED
        return True

    def _on_countdown_start(self, payload) -> bool:
        if self.phase != Phase.WAITING:
            return False
        self.countdown_sec = payload.get('seconds', self.countdown_sec)
        self.countdown_started_at = self.clock()
        self.phase = Phase.COUNTDOWN
        return False

    def _on_game_start(self, payload) -> bool:
        if self.phase == Phase.CLOSED:
            # A start that raced our leave must not revive the timer
            return False
        if self.room is not None:
            self.room['status'] = payload.get('status', 'IN_PROGRESS')
            self.room['startedAt'] = payload.get('startedAt')
        self.players = {p['id']: dict(p) for p in payload.get('players', [])}
        self.performances = {perf['playerId']: dict(perf) for perf in payload.get('performances', [])}
        self.time_limit = payload.get('timeLimit', self.time_limit)
        self._begin_race(self.clock())
        return False

    def _on_typing_update(self, payload) -> bool:
        player_id = payload.get('playerId')
        if not player_id or self.phase == Phase.CLOSED:
            return False
        current = self.players.setdefault(player_id, {'id': player_id})
        for field in ('progress', 'wpm', 'accuracy'):
            if field in payload:
                current[field] = payload[field]
        performance = payload.get('performance')
        if performance:
            self.performances[player_id] = {**self.performances.get(player_id, {}), **performance}
        return False

    def _on_game_complete(self, payload) -> bool:
        if self.phase == Phase.CLOSED:
            return False
        player_id = payload.get('playerId')
        if player_id:
            current = self.players.setdefault(player_id, {'id': player_id})
            current['completed'] = True
            for field in ('wpm', 'accuracy'):
                if payload.get(field) is not None:
                    current[field] = payload[field]
        status = payload.get('roomStatus')
        if self.room is not None and status:
            self.room['status'] = status
        if player_id == self.player_id or status == 'COMPLETED':
            self.phase = Phase.FINISHED
        return True

    def _on_new_game_created(self, payload) -> bool:
        self.next_room_id = payload.get('newRoomId')
        return False

    # ---- local input ----

    def type(self, value: str) -> bool:
        """Apply a new input value. Returns False when the value is refused."""
        with self._lock:
            if self.phase != Phase.RACING or self.room is None:
                return False
            text = self.room.get('text') or ''
            if not metrics.accept_input(value, text):
                return False

            if len(value) > len(self.input):
                index = len(value) - 1
                if index >= len(text) or value[index] != text[index]:
                    self.mistakes += 1
                self.keystrokes += 1
            self.input = value

            now = self.clock()
            if self.typing_started_at is None:
                self.typing_started_at = now
            stats = self._stats(now)
            me = self.players.setdefault(self.player_id, {'id': self.player_id})
            me.update(progress=stats['progress'], wpm=stats['wpm'], accuracy=stats['accuracy'])
            finished = value == text

        self._submit(self.api.report_progress, self.room_id, self.player_id,
                     stats['progress'], stats['wpm'], stats['accuracy'])
        if finished:
            self.complete()
        return True

    def complete(self) -> bool:
        """Send the final result once, whichever of finish-text or timeout comes first."""
        with self._lock:
            if self._completion_sent or self.phase not in (Phase.RACING, Phase.FINISHED):
                return False
            self._completion_sent = True
            stats = self._stats(self.clock())
            me = self.players.setdefault(self.player_id, {'id': self.player_id})
            me['completed'] = True
            self.phase = Phase.FINISHED
        self._submit(self.api.complete_game, self.room_id, self.player_id,
                     stats['wpm'], stats['accuracy'])
        return True

    def tick(self) -> None:
        """Advance local timers; call periodically from the UI loop."""
        with self._lock:
            if self.phase == Phase.COUNTDOWN and self.countdown_remaining() == 0:
                # Input goes live locally; a later game-start resets the race
                self._begin_race(self.countdown_started_at + self.countdown_sec)
                return
            if self.phase != Phase.RACING or self.race_started_at is None:
                return
            expired = self.time_remaining() == 0
        if expired:
            self.complete()

    # ---- commands ----

    def start(self) -> None:
        self._submit(self.api.start_game, self.room_id, self.player_id)

    def request_new_game(self) -> None:
        self._submit(self.api.new_game, self.room_id, self.player_id)

    def leave(self) -> None:
        with self._lock:
            self._stop()
            self.phase = Phase.CLOSED
        self._submit(self.api.leave_room, self.room_id, self.player_id)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    # ---- derived state ----

    def countdown_remaining(self) -> Optional[int]:
        with self._lock:
            if self.phase != Phase.COUNTDOWN or self.countdown_started_at is None:
                return None
            elapsed = self.clock() - self.countdown_started_at
            return max(0, math.ceil(self.countdown_sec - elapsed))

    def time_remaining(self) -> Optional[int]:
        with self._lock:
            if self.race_started_at is None:
                return None
            elapsed = math.floor(self.clock() - self.race_started_at)
            return max(0, self.time_limit - elapsed)

    @property
    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return self._stats(self.clock())

    def _stats(self, now: float) -> Dict[str, Any]:
        text = (self.room or {}).get('text') or ''
        return {
            'progress': metrics.progress(len(self.input), len(text)),
            'wpm': metrics.elapsed_wpm(len(self.input), self.typing_started_at, now),
            'accuracy': metrics.typed_accuracy(self.input, text),
            'errors': self.mistakes,
            'keystrokes': self.keystrokes,
        }

    # ---- internals ----

    def _begin_race(self, now: float) -> None:
        self.input = ''
        self.keystrokes = 0
        self.mistakes = 0
        self.typing_started_at = None
        self._completion_sent = False
        self.countdown_started_at = None
        self.race_started_at = now
        self.phase = Phase.RACING

    def _stop(self) -> None:
        self.countdown_started_at = None
        self.race_started_at = None

    def _submit(self, fn: Callable[..., Any], *args) -> None:
        self._dispatch(self._run_command, fn, *args)

    def _run_command(self, fn: Callable[..., Any], *args) -> Any:
        try:
            return fn(*args)
        except RaceError as exc:
            logger.warning('[session-command] room=%s command=%s error=%s',
                           self.room_id, getattr(fn, '__name__', fn), exc.message)
        except Exception:
            logger.exception('[session-command] room=%s command=%s failed',
                             self.room_id, getattr(fn, '__name__', fn))
        return None
