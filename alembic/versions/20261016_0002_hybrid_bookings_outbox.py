"""hybrid bookings with active-slot uniqueness and notification outbox

Revision ID: 20261016_0002
Revises: 20261016_0001
Create Date: 2026-10-16 00:02:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261016_0002'
down_revision = '20261016_0001'
branch_labels = None
depends_on = None


ACTIVE_ONLY = sa.text("status != 'cancelled'")


def upgrade() -> None:
    op.create_table(
        'hybrid_bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('lesson_id', sa.Integer(), sa.ForeignKey('lessons.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('parents.id'), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.String(length=5), nullable=False),
        sa.Column('end_time', sa.String(length=5), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='confirmed'),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_hybrid_bookings_id', 'hybrid_bookings', ['id'])
    for column in ('school_id', 'lesson_id', 'student_id', 'parent_id', 'week_number', 'scheduled_date', 'status'):
        op.create_index(f'ix_hybrid_bookings_{column}', 'hybrid_bookings', [column])
    op.create_index('ix_hybrid_bookings_school_date', 'hybrid_bookings', ['school_id', 'scheduled_date'])
    op.create_index(
        'uq_hybrid_bookings_active_slot',
        'hybrid_bookings',
        ['lesson_id', 'week_number', 'scheduled_date', 'start_time'],
        unique=True,
        sqlite_where=ACTIVE_ONLY,
        postgresql_where=ACTIVE_ONLY,
    )
    op.create_index(
        'uq_hybrid_bookings_active_student_week',
        'hybrid_bookings',
        ['lesson_id', 'student_id', 'week_number'],
        unique=True,
        sqlite_where=ACTIVE_ONLY,
        postgresql_where=ACTIVE_ONLY,
    )

    op.create_table(
        'notification_outbox',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('kind', sa.String(length=60), nullable=False),
        sa.Column('payload_json', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='queued'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_notification_outbox_id', 'notification_outbox', ['id'])
    for column in ('school_id', 'kind', 'status', 'created_at'):
        op.create_index(f'ix_notification_outbox_{column}', 'notification_outbox', [column])
    op.create_index('ix_notification_outbox_status_created', 'notification_outbox', ['status', 'created_at'])


def downgrade() -> None:
    op.drop_table('notification_outbox')
    op.drop_index('uq_hybrid_bookings_active_student_week', table_name='hybrid_bookings')
    op.drop_index('uq_hybrid_bookings_active_slot', table_name='hybrid_bookings')
    op.drop_table('hybrid_bookings')
