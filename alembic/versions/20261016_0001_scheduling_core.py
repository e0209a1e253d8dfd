"""scheduling core tables

Revision ID: 20261016_0001
Revises: 
Create Date: 2026-10-16 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261016_0001'
down_revision = None
branch_labels = None
depends_on = None


def _school_column() -> sa.Column:
    return sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'schools',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=180), nullable=False, server_default='default-school'),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('timezone', sa.String(length=60), nullable=False, server_default='Australia/Sydney'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('slug', name='uq_schools_slug'),
    )
    op.create_index('ix_schools_id', 'schools', ['id'])
    op.create_index('ix_schools_created_at', 'schools', ['created_at'])

    op.create_table(
        'terms',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_terms_id', 'terms', ['id'])
    op.create_index('ix_terms_school_id', 'terms', ['school_id'])
    op.create_index('ix_terms_school_dates', 'terms', ['school_id', 'start_date', 'end_date'])

    op.create_table(
        'teachers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('first_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_teachers_id', 'teachers', ['id'])
    op.create_index('ix_teachers_school_id', 'teachers', ['school_id'])
    op.create_index('ix_teachers_is_active', 'teachers', ['is_active'])

    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('location_name', sa.String(length=180), nullable=False, server_default=''),
    )
    op.create_index('ix_rooms_id', 'rooms', ['id'])
    op.create_index('ix_rooms_school_id', 'rooms', ['school_id'])

    op.create_table(
        'lessons',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('term_id', sa.Integer(), sa.ForeignKey('terms.id'), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teachers.id'), nullable=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('rooms.id'), nullable=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('instrument', sa.String(length=80), nullable=False, server_default=''),
        sa.Column('lesson_type', sa.String(length=20), nullable=False, server_default='group'),
        sa.Column('weekday', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.String(length=5), nullable=False),
        sa.Column('end_time', sa.String(length=5), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_lessons_id', 'lessons', ['id'])
    for column in ('school_id', 'term_id', 'teacher_id', 'room_id', 'lesson_type', 'is_active'):
        op.create_index(f'ix_lessons_{column}', 'lessons', [column])
    op.create_index('ix_lessons_school_term_active', 'lessons', ['school_id', 'term_id', 'is_active'])
    op.create_index('ix_lessons_school_teacher', 'lessons', ['school_id', 'teacher_id'])

    op.create_table(
        'hybrid_patterns',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('lesson_id', sa.Integer(), sa.ForeignKey('lessons.id'), nullable=False),
        sa.Column('group_weeks', sa.JSON(), nullable=False),
        sa.Column('individual_weeks', sa.JSON(), nullable=False),
        sa.Column('individual_slot_duration', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('bookings_open', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('lesson_id', name='uq_hybrid_patterns_lesson_id'),
    )
    op.create_index('ix_hybrid_patterns_id', 'hybrid_patterns', ['id'])
    op.create_index('ix_hybrid_patterns_school_id', 'hybrid_patterns', ['school_id'])
    op.create_index('ix_hybrid_patterns_lesson_id', 'hybrid_patterns', ['lesson_id'])

    op.create_table(
        'families',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('name', sa.String(length=160), nullable=False, server_default=''),
    )
    op.create_index('ix_families_id', 'families', ['id'])
    op.create_index('ix_families_school_id', 'families', ['school_id'])

    op.create_table(
        'parents',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('family_id', sa.Integer(), sa.ForeignKey('families.id'), nullable=True),
        sa.Column('first_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
    )
    op.create_index('ix_parents_id', 'parents', ['id'])
    op.create_index('ix_parents_school_id', 'parents', ['school_id'])
    op.create_index('ix_parents_family_id', 'parents', ['family_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('family_id', sa.Integer(), sa.ForeignKey('families.id'), nullable=True),
        sa.Column('first_name', sa.String(length=120), nullable=False),
        sa.Column('last_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_students_id', 'students', ['id'])
    op.create_index('ix_students_school_id', 'students', ['school_id'])
    op.create_index('ix_students_family_id', 'students', ['family_id'])
    op.create_index('ix_students_is_active', 'students', ['is_active'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Integer(), primary_key=True),
        _school_column(),
        sa.Column('lesson_id', sa.Integer(), sa.ForeignKey('lessons.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('enrolled_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('lesson_id', 'student_id', name='uq_enrollments_lesson_student'),
    )
    op.create_index('ix_enrollments_id', 'enrollments', ['id'])
    for column in ('school_id', 'lesson_id', 'student_id', 'is_active'):
        op.create_index(f'ix_enrollments_{column}', 'enrollments', [column])


def downgrade() -> None:
    for table in (
        'enrollments',
        'students',
        'parents',
        'families',
        'hybrid_patterns',
        'lessons',
        'rooms',
        'teachers',
        'terms',
        'schools',
    ):
        op.drop_table(table)
