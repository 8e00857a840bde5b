from datetime import datetime, timezone
import string
import random

from typerace import db


class RoomStatus:
    WAITING = 'WAITING'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    DELETED = 'DELETED'

    ALL = (WAITING, IN_PROGRESS, COMPLETED, DELETED)


DEFAULT_METRICS = {
    'progress': 0.0,
    'wpm': 0,
    'accuracy': 100.0,
    'completed': False,
}


def _utcnow():
    return datetime.now(timezone.utc)


def _isoformat(value):
    return value.isoformat() if value else None


def generate_room_code(length=6):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not db.session.get(Room, code):
            return code


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    room_id = db.Column(db.String(8), db.ForeignKey('room.id', name='fk_player_room_id'), nullable=True, index=True)
    progress = db.Column(db.Float, default=0.0, nullable=False)
    wpm = db.Column(db.Integer, default=0, nullable=False)
    accuracy = db.Column(db.Float, default=100.0, nullable=False)
    completed = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    room = db.relationship('Room', back_populates='players')

    def reset_metrics(self):
        for field, value in DEFAULT_METRICS.items():
            setattr(self, field, value)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'roomId': self.room_id,
            'progress': self.progress,
            'wpm': self.wpm,
            'accuracy': self.accuracy,
            'completed': self.completed,
        }


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(8), primary_key=True)
    status = db.Column(db.String(16), default=RoomStatus.WAITING, nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    author = db.Column(db.String(128), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)
    # Rematches chain rooms together; the new room points at the one it came from
    parent_room_id = db.Column(db.String(8), db.ForeignKey('room.id', name='fk_room_parent_room_id'), nullable=True)
    event_seq = db.Column(db.Integer, default=0, nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    players = db.relationship('Player', back_populates='room')
    performances = db.relationship('Performance', back_populates='room', cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super(Room, self).__init__(**kwargs)
        if not self.id:
            self.id = generate_room_code()
        if self.status is None:
            self.status = RoomStatus.WAITING
        if self.event_seq is None:
            self.event_seq = 0

    def has_member(self, player_id):
        return any(p.id == player_id for p in self.players)

    def to_dict(self, include_performances=True):
        payload = {
            'id': self.id,
            'status': self.status,
            'text': self.text,
            'author': self.author,
            'createdBy': self.created_by,
            'parentRoomId': self.parent_room_id,
            'eventSeq': self.event_seq,
            'startedAt': _isoformat(self.started_at),
            'createdAt': _isoformat(self.created_at),
            'players': [p.to_dict() for p in self.players],
        }
        if include_performances:
            payload['performances'] = [perf.to_dict() for perf in self.performances]
        return payload


class Performance(db.Model):
    __tablename__ = 'performance'
    __table_args__ = (
        db.UniqueConstraint('player_id', 'room_id', name='uq_performance_player_room'),
    )
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(64), db.ForeignKey('player.id'), nullable=False, index=True)
    room_id = db.Column(db.String(8), db.ForeignKey('room.id'), nullable=False, index=True)
    wpm = db.Column(db.Integer, default=0, nullable=False)
    accuracy = db.Column(db.Float, default=100.0, nullable=False)
    completed = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    player = db.relationship('Player')
    room = db.relationship('Room', back_populates='performances')

    def to_dict(self):
        return {
            'id': self.id,
            'playerId': self.player_id,
            'roomId': self.room_id,
            'wpm': self.wpm,
            'accuracy': self.accuracy,
            'completed': self.completed,
            'createdAt': _isoformat(self.created_at),
            'player': self.player.to_dict() if self.player else None,
        }


class PracticeResult(db.Model):
    __tablename__ = 'practice_result'
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(64), db.ForeignKey('player.id'), nullable=True, index=True)
    wpm = db.Column(db.Integer, nullable=False)
    accuracy = db.Column(db.Float, nullable=False)
    time_taken = db.Column(db.Float, nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'playerId': self.player_id,
            'wpm': self.wpm,
            'accuracy': self.accuracy,
            'timeTaken': self.time_taken,
            'text': self.text,
            'createdAt': _isoformat(self.created_at),
        }
