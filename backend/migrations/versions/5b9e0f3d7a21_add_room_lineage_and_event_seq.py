"""add parent_room_id and event_seq to room

Revision ID: 5b9e0f3d7a21
Revises: 1c7d2e9a4b10
Create Date: 2026-09-28 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b9e0f3d7a21'
down_revision = '1c7d2e9a4b10'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('room')}
    with op.batch_alter_table('room') as batch_op:
        if 'parent_room_id' not in cols:
            batch_op.add_column(sa.Column('parent_room_id', sa.String(length=8), nullable=True))
            batch_op.create_foreign_key('fk_room_parent_room_id', 'room', ['parent_room_id'], ['id'])
        if 'event_seq' not in cols:
            batch_op.add_column(sa.Column('event_seq', sa.Integer(), nullable=False, server_default='0'))


def downgrade():
    with op.batch_alter_table('room') as batch_op:
        batch_op.drop_column('event_seq')
        batch_op.drop_constraint('fk_room_parent_room_id', type_='foreignkey')
        batch_op.drop_column('parent_room_id')
