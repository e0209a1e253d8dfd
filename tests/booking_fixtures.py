"""Shared SQLite fixtures for the booking tests.

The default scenario: a term starting Monday 2025-01-06, a Monday hybrid
lesson 09:00-09:45 with 15 minute slots, group weeks 1 and 3, individual
weeks 2 and 4. Week 2 falls on 2025-01-13.
"""
from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.time_provider import APP_ZONEINFO, TimeProvider
from app.db import Base
from app.models import (
    Enrollment,
    Family,
    HybridPattern,
    Lesson,
    LessonType,
    Parent,
    Room,
    School,
    Student,
    Teacher,
    Term,
)


TERM_START = date(2025, 1, 6)
TERM_END = date(2025, 3, 30)
WEEK_2_DATE = date(2025, 1, 13)


class FixedTimeProvider(TimeProvider):
    def __init__(self, now: datetime):
        self._now = now if now.tzinfo else now.replace(tzinfo=APP_ZONEINFO)

    def now(self) -> datetime:
        return self._now


def local_time(*args) -> FixedTimeProvider:
    return FixedTimeProvider(datetime(*args, tzinfo=APP_ZONEINFO))


class RecordingDispatcher:
    def __init__(self):
        self.calls: list[tuple[str, int, dict]] = []

    def notify(self, kind, school_id, payload):
        self.calls.append((kind, school_id, payload))


class FailingDispatcher:
    def notify(self, kind, school_id, payload):
        raise RuntimeError('outbox unavailable')


def make_sqlite(tmpdir: str, name: str):
    db_path = Path(tmpdir) / name
    engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine, session_factory


def new_tmpdir() -> tempfile.TemporaryDirectory:
    return tempfile.TemporaryDirectory()


def reset_tables(db) -> None:
    for table in reversed(Base.metadata.sorted_tables):
        db.execute(table.delete())
    db.commit()


@dataclass
class SchoolWorld:
    school_id: int
    term_id: int
    teacher_id: int
    lesson_id: int
    parent_id: int
    other_parent_id: int
    student_ids: list[int] = field(default_factory=list)
    other_student_id: int = 0


def seed_school(
    db,
    *,
    slug: str = 'riverside',
    bookings_open: bool = True,
    individual_weeks: list[int] | None = None,
    group_weeks: list[int] | None = None,
    term_start: date = TERM_START,
    term_end: date = TERM_END,
    weekday: int = 0,
) -> SchoolWorld:
    school = School(name=slug.title(), slug=slug, timezone='Australia/Sydney')
    db.add(school)
    db.commit()
    db.refresh(school)
    sid = int(school.id)

    term = Term(school_id=sid, name='Term 1', start_date=term_start, end_date=term_end)
    teacher = Teacher(school_id=sid, first_name='Jo', last_name='March')
    room = Room(school_id=sid, name='Studio 1', location_name='North Campus')
    db.add_all([term, teacher, room])
    db.flush()

    lesson = Lesson(
        school_id=sid,
        term_id=term.id,
        teacher_id=teacher.id,
        room_id=room.id,
        name='Guitar Hybrid',
        instrument='Guitar',
        lesson_type=LessonType.HYBRID.value,
        weekday=weekday,
        start_time='09:00',
        end_time='09:45',
        max_participants=6,
    )
    db.add(lesson)
    db.flush()
    db.add(
        HybridPattern(
            school_id=sid,
            lesson_id=lesson.id,
            group_weeks=group_weeks if group_weeks is not None else [1, 3],
            individual_weeks=individual_weeks if individual_weeks is not None else [2, 4],
            individual_slot_duration=15,
            bookings_open=bookings_open,
        )
    )

    family = Family(school_id=sid, name='Lee')
    other_family = Family(school_id=sid, name='Park')
    db.add_all([family, other_family])
    db.flush()

    parent = Parent(school_id=sid, family_id=family.id, first_name='Dana', last_name='Lee', email='dana@example.com')
    other_parent = Parent(
        school_id=sid, family_id=other_family.id, first_name='Kim', last_name='Park', email='kim@example.com'
    )
    students = [
        Student(school_id=sid, family_id=family.id, first_name='Ava', last_name='Lee'),
        Student(school_id=sid, family_id=family.id, first_name='Ben', last_name='Lee'),
    ]
    other_student = Student(school_id=sid, family_id=other_family.id, first_name='Cho', last_name='Park')
    db.add_all([parent, other_parent, *students, other_student])
    db.flush()

    for student in [*students, other_student]:
        db.add(Enrollment(school_id=sid, lesson_id=lesson.id, student_id=student.id))
    db.commit()

    return SchoolWorld(
        school_id=sid,
        term_id=int(term.id),
        teacher_id=int(teacher.id),
        lesson_id=int(lesson.id),
        parent_id=int(parent.id),
        other_parent_id=int(other_parent.id),
        student_ids=[int(row.id) for row in students],
        other_student_id=int(other_student.id),
    )
