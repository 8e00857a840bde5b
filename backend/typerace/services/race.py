"""Room lifecycle: create, join, countdown/start, progress, completion, leave
and rematch.

Every command validates against the store, mutates it, commits, and only then
publishes a single event on the room channel. Publishing is best effort: a
failed publish is logged and the committed state stays authoritative.
"""
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Optional, Tuple

from flask import current_app

from typerace import db
from typerace.errors import Conflict, FailedPrecondition, Forbidden, NotFound
from typerace.models import Performance, Player, Room, RoomStatus
from typerace.realtime import events
from typerace.services.store import RoomStore


def _clamp(value, low, high):
    return max(low, min(high, value))


class RaceService:
    def __init__(self, store: RoomStore, broadcaster, passages, countdown, app) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.passages = passages
        self.countdown = countdown
        self.app = app
        self.logger = app.logger
        cfg = app.config
        self.capacity = int(cfg.get('ROOM_CAPACITY', 2))
        self.min_players = int(cfg.get('MIN_PLAYERS', 2))
        self.countdown_sec = float(cfg.get('COUNTDOWN_SEC', 3))
        self.time_limit = int(cfg.get('RACE_TIME_LIMIT_SEC', 60))
        self.recent_limit = int(cfg.get('STATS_RECENT_LIMIT', 5))

    # ---- helpers ----

    def _publish(self, room_id: str, event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        seq = self.store.next_event_seq(room_id)
        self.store.commit()
        message = dict(payload, seq=seq)
        try:
            self.broadcaster.publish(events.room_channel(room_id), event, message)
        except Exception as exc:
            self.logger.warning(f"[publish-failed] room={room_id} event={event} seq={seq} error={exc}")
        return message

    def _member(self, room_id: str, player_id: str) -> Tuple[Room, Player]:
        room = self.store.get_room(room_id)
        player = self.store.get_player(player_id)
        if player.room_id != room.id:
            raise NotFound('Player is not in this room')
        return room, player

    def _leave_previous(self, player_id: str, room_id: Optional[str] = None) -> None:
        # A player is in at most one room; moving on is an explicit leave of the old one
        player = self.store.find_player(player_id)
        if player is not None and player.room_id and player.room_id != room_id:
            self.leave_room(player.room_id, player_id)

    # ---- commands ----

    def create_room(self, creator_id: str, creator_name: str) -> Room:
        passage = self.passages.fetch()
        self._leave_previous(creator_id)
        room = self.store.create_room(passage.content, creator_id, author=passage.author)
        player = self.store.upsert_player(creator_id, creator_name)
        self.store.connect(player, room)
        self.logger.info(f"[room-create] room={room.id} creator={creator_id}")
        self._publish(room.id, events.PLAYER_JOINED, {'player': player.to_dict()})
        return room

    def join_room(self, room_id: str, player_id: str, player_name: str) -> Tuple[Room, Player, bool]:
        """Join a room. Returns (room, player, joined); joined is False for a
        member that was already in the room."""
        room = self.store.get_room(room_id)
        if room.has_member(player_id):
            return room, self.store.get_player(player_id), False
        if room.status == RoomStatus.IN_PROGRESS:
            raise Conflict('Game in progress')
        if room.status != RoomStatus.WAITING:
            raise Conflict('Room is closed')
        if len(room.players) >= self.capacity:
            raise Conflict('Room is full')

        self._leave_previous(player_id, room.id)
        player = self.store.upsert_player(player_id, player_name)
        self.store.connect(player, room)
        self.logger.info(f"[room-join] room={room.id} player={player_id} members={len(room.players)}")
        self._publish(room.id, events.PLAYER_JOINED, {'player': player.to_dict()})
        return room, player, True

    def start_game(self, room_id: str, requester_id: str) -> Room:
        room = self.store.get_room(room_id)
        if room.created_by != requester_id:
            raise Forbidden('Only the room creator can start the game')
        if room.status == RoomStatus.IN_PROGRESS:
            raise Conflict('Game in progress')
        if room.status != RoomStatus.WAITING:
            raise Conflict('Room is closed')
        if self.countdown.is_pending(room.id):
            # Countdown already running; a repeated start is a no-op
            return room
        if len(room.players) < self.min_players:
            raise FailedPrecondition(f'Need at least {self.min_players} players to start the game')

        self._publish(room.id, events.COUNTDOWN_START, {
            'roomId': room.id,
            'seconds': self.countdown_sec,
        })
        self.countdown.schedule(self.app, room.id, self.countdown_sec, partial(_begin_race, room.id))
        # The countdown may already have committed the race in another session
        self.store.session.expire_all()
        return room

    def begin_race(self, room_id: str) -> Optional[Room]:
        """Commit the end of a countdown: the race becomes IN_PROGRESS.

        Re-validates the room first; a room that went away or lost players
        while the countdown ran is left alone.
        """
        room = self.store.session.get(Room, room_id)
        if room is None:
            self.logger.info(f"[race-discard] room={room_id} reason=missing")
            return None
        if room.status != RoomStatus.WAITING:
            self.logger.info(f"[race-discard] room={room_id} reason=status:{room.status}")
            return None
        if len(room.players) < self.min_players:
            self.logger.info(f"[race-discard] room={room_id} reason=members:{len(room.players)}")
            return None

        self.store.set_status(room, RoomStatus.IN_PROGRESS)
        room.started_at = datetime.now(timezone.utc)
        self.store.reset_players(room)
        self.store.delete_performances(room)
        self.logger.info(f"[race-start] room={room_id} players={len(room.players)}")
        self._publish(room.id, events.GAME_START, {
            'roomId': room.id,
            'status': room.status,
            'players': [p.to_dict() for p in room.players],
            'performances': [perf.to_dict() for perf in room.performances],
            'startedAt': room.started_at.isoformat(),
            'timeLimit': self.time_limit,
        })
        return room

    def report_progress(self, room_id: str, player_id: str, progress: float, wpm: int,
                        accuracy: float) -> Optional[Tuple[Player, Performance]]:
        room, player = self._member(room_id, player_id)
        if room.status != RoomStatus.IN_PROGRESS:
            # Late or early ticks outside a race are dropped
            return None
        existing = self.store.get_performance(player.id, room.id)
        if player.completed or (existing is not None and existing.completed):
            # The final result was already recorded by complete
            return None

        progress = _clamp(float(progress), 0.0, 100.0)
        wpm = max(0, int(round(wpm)))
        accuracy = _clamp(float(accuracy), 0.0, 100.0)
        self.store.update_metrics(player, progress=progress, wpm=wpm, accuracy=accuracy)
        performance = self.store.upsert_performance(player.id, room.id, wpm=wpm, accuracy=accuracy)
        self._publish(room.id, events.TYPING_UPDATE, {
            'playerId': player.id,
            'progress': progress,
            'wpm': wpm,
            'accuracy': accuracy,
            'performance': performance.to_dict(),
        })
        return player, performance

    def complete_game(self, room_id: str, player_id: str, wpm: int, accuracy: float) -> Room:
        room, player = self._member(room_id, player_id)
        if room.status == RoomStatus.WAITING:
            raise FailedPrecondition('Race has not started')
        existing = self.store.get_performance(player.id, room.id)
        if player.completed and existing is not None and existing.completed:
            return room

        wpm = max(0, int(round(wpm)))
        accuracy = _clamp(float(accuracy), 0.0, 100.0)
        self.store.update_metrics(player, completed=True, wpm=wpm, accuracy=accuracy)
        self.store.upsert_performance(player.id, room.id, wpm=wpm, accuracy=accuracy, completed=True)

        members = self.store.members(room.id)
        if room.status == RoomStatus.IN_PROGRESS and all(p.completed for p in members):
            self.store.set_status(room, RoomStatus.COMPLETED)
            self.logger.info(f"[race-finish] room={room.id} all players completed")
        self.logger.info(f"[player-complete] room={room.id} player={player.id} wpm={wpm} accuracy={accuracy:.1f}")
        self._publish(room.id, events.GAME_COMPLETE, {
            'playerId': player.id,
            'wpm': wpm,
            'accuracy': accuracy,
            'roomStatus': room.status,
        })
        return room

    def complete_room(self, room_id: str, requester_id: str) -> Room:
        room = self.store.get_room(room_id)
        if room.created_by != requester_id and not room.has_member(requester_id):
            raise Forbidden('Only players in this room can finish it')
        if room.status == RoomStatus.COMPLETED:
            return room
        if room.status == RoomStatus.DELETED:
            raise Conflict('Room is closed')

        self.countdown.cancel(self.app, room.id)
        self.store.set_status(room, RoomStatus.COMPLETED)
        self.logger.info(f"[race-finish] room={room.id} by={requester_id}")
        self._publish(room.id, events.GAME_COMPLETE, {
            'playerId': None,
            'wpm': None,
            'accuracy': None,
            'roomStatus': room.status,
        })
        return room

    def leave_room(self, room_id: str, player_id: str) -> Room:
        room, player = self._member(room_id, player_id)
        self.countdown.cancel(self.app, room.id)

        # Snapshot the leaver's last metrics before the membership goes away
        self.store.upsert_performance(
            player.id, room.id, wpm=player.wpm, accuracy=player.accuracy, completed=False
        )

        if room.created_by == player.id:
            self.store.delete_performances(room)
            self.store.disconnect_all(room)
            self.store.set_status(room, RoomStatus.COMPLETED)
            self.logger.info(f"[room-close] room={room.id} creator={player.id} left")
            self._publish(room.id, events.PLAYER_LEFT, {
                'playerId': player.id,
                'roomStatus': room.status,
                'isAdmin': True,
                'message': 'Room owner left. Room closed.',
                'shouldRedirect': True,
            })
            return room

        self.store.delete_performances(room, player_id=player.id)
        self.store.disconnect(player)
        if room.status == RoomStatus.IN_PROGRESS:
            self.store.set_status(room, RoomStatus.COMPLETED)
        self.logger.info(f"[room-leave] room={room.id} player={player.id} status={room.status}")
        self._publish(room.id, events.PLAYER_LEFT, {
            'playerId': player.id,
            'roomStatus': room.status,
            'isAdmin': False,
            'message': 'Player left the room',
            'shouldRedirect': False,
        })
        return room

    def new_game(self, room_id: str, requester_id: str) -> Room:
        room = self.store.get_room(room_id)

        existing = self.store.find_rematch(room.id)
        if existing is not None and (existing.created_by == requester_id or existing.has_member(requester_id)):
            # Someone already asked; point everyone at the same rematch again
            self._publish(room.id, events.NEW_GAME_CREATED, {'newRoomId': existing.id})
            return existing

        if room.created_by != requester_id and not room.has_member(requester_id):
            raise Forbidden('Only players in this room can start a new game')
        if room.status == RoomStatus.IN_PROGRESS:
            raise Conflict('Game in progress')
        if room.status == RoomStatus.DELETED:
            raise Conflict('Room is closed')

        passage = self.passages.fetch()
        new_room = self.store.create_room(
            passage.content, room.created_by, author=passage.author, parent_room_id=room.id
        )
        for member in list(room.players):
            member.reset_metrics()
            self.store.connect(member, new_room)
        self.store.session.expire(room, ['players'])
        self.logger.info(f"[rematch] from={room.id} to={new_room.id} by={requester_id}")
        self._publish(room.id, events.NEW_GAME_CREATED, {'newRoomId': new_room.id})
        return new_room

    def delete_room(self, room_id: str, requester_id: str) -> Room:
        room = self.store.get_room(room_id)
        if room.created_by != requester_id:
            raise Forbidden('Only the room creator can delete the room')
        if room.status == RoomStatus.DELETED:
            return room
        if any(p.id != requester_id for p in room.players):
            raise FailedPrecondition('Room still has other players')

        self.countdown.cancel(self.app, room.id)
        self.store.delete_performances(room)
        requester = self.store.find_player(requester_id)
        if requester is not None and requester.room_id == room.id:
            self.store.disconnect(requester)
        self.store.set_status(room, RoomStatus.DELETED)
        self.logger.info(f"[room-delete] room={room.id} by={requester_id}")
        self._publish(room.id, events.PLAYER_LEFT, {
            'playerId': requester_id,
            'roomStatus': room.status,
            'isAdmin': True,
            'message': 'Room deleted',
            'shouldRedirect': True,
        })
        return room

    # ---- queries ----

    def get_room(self, room_id: str) -> Room:
        return self.store.get_room(room_id)

    def get_stats(self, player_id: Optional[str] = None) -> Dict[str, Any]:
        best_wpm = None
        recent_average = None
        if player_id:
            best_wpm = self.store.best_wpm(player_id)
            recent = self.store.recent_performances(player_id, self.recent_limit)
            if recent:
                recent_average = sum(p.wpm for p in recent) / len(recent)
        return {
            'onlinePlayers': self.store.count_online_players(),
            'activeRaces': self.store.count_rooms(RoomStatus.IN_PROGRESS),
            'bestWpm': best_wpm,
            'recentAverage': recent_average,
        }

    def save_practice_result(self, wpm: int, accuracy: float, time_taken: float, text: str,
                             player_id: Optional[str] = None):
        if player_id and self.store.find_player(player_id) is None:
            player_id = None
        result = self.store.add_practice_result(
            wpm=max(0, int(round(wpm))),
            accuracy=_clamp(float(accuracy), 0.0, 100.0),
            time_taken=max(0.0, float(time_taken)),
            text=text,
            player_id=player_id,
        )
        self.store.commit()
        return result


def get_race_service(app=None) -> RaceService:
    app = app or current_app._get_current_object()
    ext = app.extensions['typerace']
    return RaceService(
        RoomStore(db.session),
        ext['broadcaster'],
        ext['passages'],
        ext['countdown'],
        app,
    )


def _begin_race(room_id: str) -> None:
    get_race_service().begin_race(room_id)
