"""Create kitchen tickets table

Revision ID: 001_create_kitchen_tickets
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_kitchen_tickets'
down_revision = None
branch_labels = None
depends_on = None

TICKET_STATUSES = ('PENDING', 'HOLD', 'FIRED', 'READY', 'SERVED')


def upgrade():
    op.create_table(
        'kitchen_tickets',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('restaurant_id', sa.String(length=64), nullable=False),
        sa.Column('reservation_id', sa.String(length=64), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*TICKET_STATUSES, name='kitchen_ticket_status'),
            nullable=False,
        ),
        sa.Column('estimated_prep_minutes', sa.Integer(), nullable=False),
        sa.Column('prep_minutes_override', sa.Integer(), nullable=True),
        sa.Column('reservation_start_at', sa.DateTime(), nullable=False),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('target_fire_time', sa.DateTime(), nullable=False),
        sa.Column('fired_at', sa.DateTime(), nullable=True),
        sa.Column('ready_at', sa.DateTime(), nullable=True),
        sa.Column('served_at', sa.DateTime(), nullable=True),
        sa.Column('items_snapshot', sa.JSON(), nullable=False),
        sa.Column('last_broadcast_pacing_status', sa.String(length=16), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_index('ix_kitchen_tickets_restaurant_id', 'kitchen_tickets', ['restaurant_id'])
    op.create_index('ix_kitchen_tickets_reservation_id', 'kitchen_tickets', ['reservation_id'])
    op.create_index('ix_kitchen_tickets_status', 'kitchen_tickets', ['status'])
    op.create_index('ix_kitchen_tickets_target_fire_time', 'kitchen_tickets', ['target_fire_time'])
    op.create_index(
        'idx_kitchen_ticket_restaurant_status', 'kitchen_tickets', ['restaurant_id', 'status']
    )

    # At most one non-served ticket per reservation
    op.create_index(
        'uq_kitchen_ticket_active_reservation',
        'kitchen_tickets',
        ['reservation_id'],
        unique=True,
        postgresql_where=sa.text("status != 'SERVED'"),
        sqlite_where=sa.text("status != 'SERVED'"),
    )


def downgrade():
    op.drop_index('uq_kitchen_ticket_active_reservation', table_name='kitchen_tickets')
    op.drop_index('idx_kitchen_ticket_restaurant_status', table_name='kitchen_tickets')
    op.drop_index('ix_kitchen_tickets_target_fire_time', table_name='kitchen_tickets')
    op.drop_index('ix_kitchen_tickets_status', table_name='kitchen_tickets')
    op.drop_index('ix_kitchen_tickets_reservation_id', table_name='kitchen_tickets')
    op.drop_index('ix_kitchen_tickets_restaurant_id', table_name='kitchen_tickets')
    op.drop_table('kitchen_tickets')
    sa.Enum(name='kitchen_ticket_status').drop(op.get_bind(), checkfirst=True)
