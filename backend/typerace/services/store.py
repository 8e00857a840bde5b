from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from typerace.errors import NotFound
from typerace.models import (
    DEFAULT_METRICS,
    Performance,
    Player,
    PracticeResult,
    Room,
    RoomStatus,
)


class RoomStore:
    """Room, player and performance records behind one SQLAlchemy session.

    Each method mutates a single entity (or one bulk statement). Sequencing
    of multi-entity changes is left to the caller, which commits once per
    command.
    """

    def __init__(self, session):
        self.session = session

    # ---- lookups ----

    def get_room(self, room_id: str) -> Room:
        room = self.session.get(Room, (room_id or '').upper())
        if room is None:
            raise NotFound('Room not found')
        return room

    def get_player(self, player_id: str) -> Player:
        player = self.session.get(Player, player_id)
        if player is None:
            raise NotFound('Player not found')
        return player

    def find_player(self, player_id: str) -> Optional[Player]:
        return self.session.get(Player, player_id)

    def members(self, room_id: str) -> List[Player]:
        return Player.query.filter_by(room_id=room_id).order_by(Player.created_at, Player.id).all()

    def get_performance(self, player_id: str, room_id: str) -> Optional[Performance]:
        return Performance.query.filter_by(player_id=player_id, room_id=room_id).first()

    def performances(self, room_id: str) -> List[Performance]:
        return Performance.query.filter_by(room_id=room_id).order_by(Performance.id).all()

    # ---- mutations ----

    def create_room(self, text: str, creator_id: str, author: Optional[str] = None,
                    parent_room_id: Optional[str] = None) -> Room:
        room = Room(
            text=text,
            author=author,
            created_by=creator_id,
            status=RoomStatus.WAITING,
            parent_room_id=parent_room_id,
        )
        self.session.add(room)
        self.session.flush()
        return room

    def upsert_player(self, player_id: str, name: str) -> Player:
        player = self.find_player(player_id)
        if player is None:
            player = Player(id=player_id, name=name, **DEFAULT_METRICS)
            self.session.add(player)
        else:
            player.name = name
        self.session.flush()
        return player

    def connect(self, player: Player, room: Room) -> None:
        player.room_id = room.id
        self.session.add(player)
        self.session.flush()
        self.session.expire(room, ['players'])

    def disconnect(self, player: Player) -> None:
        room_id = player.room_id
        player.room_id = None
        self.session.add(player)
        self.session.flush()
        if room_id:
            room = self.session.get(Room, room_id)
            if room is not None:
                self.session.expire(room, ['players'])

    def disconnect_all(self, room: Room) -> int:
        count = Player.query.filter_by(room_id=room.id).update(
            {Player.room_id: None}, synchronize_session='fetch'
        )
        self.session.expire(room, ['players'])
        return count

    def update_metrics(self, player: Player, **fields) -> Player:
        for key, value in fields.items():
            setattr(player, key, value)
        self.session.add(player)
        self.session.flush()
        return player

    def upsert_performance(self, player_id: str, room_id: str, **fields) -> Performance:
        performance = self.get_performance(player_id, room_id)
        if performance is None:
            values = {'wpm': 0, 'accuracy': 100.0, 'completed': False}
            values.update(fields)
            try:
                with self.session.begin_nested():
                    performance = Performance(player_id=player_id, room_id=room_id, **values)
                    self.session.add(performance)
                return performance
            except IntegrityError:
                # Lost the insert race on (player_id, room_id); update the winner's row
                performance = self.get_performance(player_id, room_id)
        for key, value in fields.items():
            setattr(performance, key, value)
        self.session.flush()
        return performance

    def find_rematch(self, room_id: str) -> Optional[Room]:
        return (
            Room.query
            .filter_by(parent_room_id=room_id, status=RoomStatus.WAITING)
            .order_by(Room.created_at.desc())
            .first()
        )

    def reset_players(self, room: Room) -> int:
        count = Player.query.filter_by(room_id=room.id).update(
            {getattr(Player, k): v for k, v in DEFAULT_METRICS.items()},
            synchronize_session='fetch',
        )
        self.session.expire(room, ['players'])
        return count

    def delete_performances(self, room: Room, player_id: Optional[str] = None) -> int:
        query = Performance.query.filter_by(room_id=room.id)
        if player_id is not None:
            query = query.filter_by(player_id=player_id)
        count = query.delete(synchronize_session='fetch')
        self.session.expire(room, ['performances'])
        return count

    def set_status(self, room: Room, status: str) -> Room:
        room.status = status
        self.session.add(room)
        self.session.flush()
        return room

    def next_event_seq(self, room_id: str) -> int:
        # Single UPDATE so concurrent commands never hand out the same number
        updated = Room.query.filter_by(id=room_id).update(
            {Room.event_seq: Room.event_seq + 1}, synchronize_session=False
        )
        if not updated:
            raise NotFound('Room not found')
        seq = self.session.query(Room.event_seq).filter_by(id=room_id).scalar()
        room = self.session.get(Room, room_id)
        if room is not None:
            self.session.expire(room, ['event_seq'])
        return seq

    def add_practice_result(self, wpm: int, accuracy: float, time_taken: float, text: str,
                            player_id: Optional[str] = None) -> PracticeResult:
        result = PracticeResult(
            player_id=player_id,
            wpm=wpm,
            accuracy=accuracy,
            time_taken=time_taken,
            text=text,
        )
        self.session.add(result)
        self.session.flush()
        return result

    # ---- aggregates ----

    def count_online_players(self) -> int:
        return Player.query.filter(Player.room_id.isnot(None)).count()

    def count_rooms(self, status: str) -> int:
        return Room.query.filter_by(status=status).count()

    def best_wpm(self, player_id: str) -> Optional[int]:
        return (
            self.session.query(func.max(Performance.wpm))
            .filter(Performance.player_id == player_id, Performance.completed.is_(True))
            .scalar()
        )

    def recent_performances(self, player_id: str, limit: int = 5) -> List[Performance]:
        return (
            Performance.query
            .filter_by(player_id=player_id, completed=True)
            .order_by(Performance.created_at.desc(), Performance.id.desc())
            .limit(limit)
            .all()
        )

    # ---- transaction ----

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
