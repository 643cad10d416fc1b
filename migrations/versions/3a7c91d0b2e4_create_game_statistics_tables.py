"""create game_record and client_game_data tables

Revision ID: 3a7c91d0b2e4
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c91d0b2e4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing = set(sa.inspect(bind).get_table_names())
    if 'game_record' not in existing:
        op.create_table(
            'game_record',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('room_id', sa.String(length=64), nullable=False),
            sa.Column('winner', sa.String(length=16), nullable=True),
            sa.Column('player1_score', sa.Integer(), nullable=False),
            sa.Column('player2_score', sa.Integer(), nullable=False),
            sa.Column('duration_ms', sa.Integer(), nullable=False),
            sa.Column('total_hits', sa.Integer(), nullable=False),
            sa.Column('players', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_game_record_room_id', 'game_record', ['room_id'])
    if 'client_game_data' not in existing:
        op.create_table(
            'client_game_data',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('type', sa.String(length=64), nullable=False),
            sa.Column('payload', sa.Text(), nullable=False),
            sa.Column('received_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_client_game_data_type', 'client_game_data', ['type'])


def downgrade():
    op.drop_index('ix_client_game_data_type', table_name='client_game_data')
    op.drop_table('client_game_data')
    op.drop_index('ix_game_record_room_id', table_name='game_record')
    op.drop_table('game_record')
