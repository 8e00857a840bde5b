"""create player, room, performance and practice_result tables

Revision ID: 1c7d2e9a4b10
Revises:
Create Date: 2026-09-14 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1c7d2e9a4b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('author', sa.String(length=128), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_room_status', 'room', ['status'])

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('room_id', sa.String(length=8), nullable=True),
        sa.Column('progress', sa.Float(), nullable=False),
        sa.Column('wpm', sa.Integer(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['room.id'], name='fk_player_room_id'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_player_room_id', 'player', ['room_id'])

    op.create_table(
        'performance',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.String(length=64), nullable=False),
        sa.Column('room_id', sa.String(length=8), nullable=False),
        sa.Column('wpm', sa.Integer(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.ForeignKeyConstraint(['room_id'], ['room.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('player_id', 'room_id', name='uq_performance_player_room'),
    )
    op.create_index('ix_performance_player_id', 'performance', ['player_id'])
    op.create_index('ix_performance_room_id', 'performance', ['room_id'])

    op.create_table(
        'practice_result',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.String(length=64), nullable=True),
        sa.Column('wpm', sa.Integer(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=False),
        sa.Column('time_taken', sa.Float(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_practice_result_player_id', 'practice_result', ['player_id'])


def downgrade():
    op.drop_index('ix_practice_result_player_id', table_name='practice_result')
    op.drop_table('practice_result')
    op.drop_index('ix_performance_room_id', table_name='performance')
    op.drop_index('ix_performance_player_id', table_name='performance')
    op.drop_table('performance')
    op.drop_index('ix_player_room_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_room_status', table_name='room')
    op.drop_table('room')
