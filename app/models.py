from datetime import date, datetime
from enum import Enum
from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class Role(str, Enum):
    ADMIN = 'admin'
    TEACHER = 'teacher'
    PARENT = 'parent'


class LessonType(str, Enum):
    INDIVIDUAL = 'individual'
    GROUP = 'group'
    BAND = 'band'
    HYBRID = 'hybrid'


class BookingStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


class NotificationKind(str, Enum):
    BOOKING_CREATED = 'booking.created'
    BOOKING_RESCHEDULED = 'booking.rescheduled'
    BOOKINGS_OPENED = 'bookings.opened'


ACTIVE_BOOKING_CLAUSE = text("status != 'cancelled'")


class School(Base):
    __tablename__ = 'schools'
    __table_args__ = (
        UniqueConstraint('slug', name='uq_schools_slug'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180), default='default-school')
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    timezone: Mapped[str] = mapped_column(String(60), default='Australia/Sydney')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


class Term(Base):
    __tablename__ = 'terms'
    __table_args__ = (
        Index('ix_terms_school_dates', 'school_id', 'start_date', 'end_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    name: Mapped[str] = mapped_column(String(120), default='')
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    lessons: Mapped[list['Lesson']] = relationship('Lesson', back_populates='term')


class Teacher(Base):
    __tablename__ = 'teachers'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    first_name: Mapped[str] = mapped_column(String(120), default='')
    last_name: Mapped[str] = mapped_column(String(120), default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    lessons: Mapped[list['Lesson']] = relationship('Lesson', back_populates='teacher')


class Room(Base):
    __tablename__ = 'rooms'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    name: Mapped[str] = mapped_column(String(120))
    location_name: Mapped[str] = mapped_column(String(180), default='')

    lessons: Mapped[list['Lesson']] = relationship('Lesson', back_populates='room')


class Lesson(Base):
    __tablename__ = 'lessons'
    __table_args__ = (
        Index('ix_lessons_school_term_active', 'school_id', 'term_id', 'is_active'),
        Index('ix_lessons_school_teacher', 'school_id', 'teacher_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    term_id: Mapped[int] = mapped_column(ForeignKey('terms.id'), index=True)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey('teachers.id'), nullable=True, index=True)
    room_id: Mapped[int | None] = mapped_column(ForeignKey('rooms.id'), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(160))
    instrument: Mapped[str] = mapped_column(String(80), default='')
    lesson_type: Mapped[str] = mapped_column(String(20), default=LessonType.GROUP.value, index=True)
    weekday: Mapped[int] = mapped_column(Integer)
    start_time: Mapped[str] = mapped_column(String(5))
    end_time: Mapped[str] = mapped_column(String(5))
    max_participants: Mapped[int] = mapped_column(Integer, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    term: Mapped['Term'] = relationship('Term', back_populates='lessons')
    teacher: Mapped['Teacher | None'] = relationship('Teacher', back_populates='lessons')
    room: Mapped['Room | None'] = relationship('Room', back_populates='lessons')
    hybrid_pattern: Mapped['HybridPattern | None'] = relationship(
        'HybridPattern',
        back_populates='lesson',
        uselist=False,
        cascade='all, delete-orphan',
    )
    enrollments: Mapped[list['Enrollment']] = relationship('Enrollment', back_populates='lesson')
    bookings: Mapped[list['HybridBooking']] = relationship('HybridBooking', back_populates='lesson')


class HybridPattern(Base):
    __tablename__ = 'hybrid_patterns'
    __table_args__ = (
        UniqueConstraint('lesson_id', name='uq_hybrid_patterns_lesson_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    lesson_id: Mapped[int] = mapped_column(ForeignKey('lessons.id'), index=True)
    group_weeks: Mapped[list[int]] = mapped_column(JSON, default=list)
    individual_weeks: Mapped[list[int]] = mapped_column(JSON, default=list)
    individual_slot_duration: Mapped[int] = mapped_column(Integer, default=30)
    bookings_open: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lesson: Mapped['Lesson'] = relationship('Lesson', back_populates='hybrid_pattern')


class Family(Base):
    __tablename__ = 'families'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    name: Mapped[str] = mapped_column(String(160), default='')

    parents: Mapped[list['Parent']] = relationship('Parent', back_populates='family', order_by='Parent.id')
    students: Mapped[list['Student']] = relationship('Student', back_populates='family', order_by='Student.id')


class Parent(Base):
    __tablename__ = 'parents'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    family_id: Mapped[int | None] = mapped_column(ForeignKey('families.id'), nullable=True, index=True)
    first_name: Mapped[str] = mapped_column(String(120), default='')
    last_name: Mapped[str] = mapped_column(String(120), default='')
    email: Mapped[str] = mapped_column(String(255), default='')

    family: Mapped['Family | None'] = relationship('Family', back_populates='parents')


class Student(Base):
    __tablename__ = 'students'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    family_id: Mapped[int | None] = mapped_column(ForeignKey('families.id'), nullable=True, index=True)
    first_name: Mapped[str] = mapped_column(String(120))
    last_name: Mapped[str] = mapped_column(String(120), default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    family: Mapped['Family | None'] = relationship('Family', back_populates='students')
    enrollments: Mapped[list['Enrollment']] = relationship('Enrollment', back_populates='student')


class Enrollment(Base):
    __tablename__ = 'enrollments'
    __table_args__ = (
        UniqueConstraint('lesson_id', 'student_id', name='uq_enrollments_lesson_student'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    lesson_id: Mapped[int] = mapped_column(ForeignKey('lessons.id'), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id'), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    lesson: Mapped['Lesson'] = relationship('Lesson', back_populates='enrollments')
    student: Mapped['Student'] = relationship('Student', back_populates='enrollments')


class HybridBooking(Base):
    __tablename__ = 'hybrid_bookings'
    __table_args__ = (
        Index(
            'uq_hybrid_bookings_active_slot',
            'lesson_id',
            'week_number',
            'scheduled_date',
            'start_time',
            unique=True,
            sqlite_where=ACTIVE_BOOKING_CLAUSE,
            postgresql_where=ACTIVE_BOOKING_CLAUSE,
        ),
        Index(
            'uq_hybrid_bookings_active_student_week',
            'lesson_id',
            'student_id',
            'week_number',
            unique=True,
            sqlite_where=ACTIVE_BOOKING_CLAUSE,
            postgresql_where=ACTIVE_BOOKING_CLAUSE,
        ),
        Index('ix_hybrid_bookings_school_date', 'school_id', 'scheduled_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    lesson_id: Mapped[int] = mapped_column(ForeignKey('lessons.id'), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id'), index=True)
    parent_id: Mapped[int] = mapped_column(ForeignKey('parents.id'), index=True)
    week_number: Mapped[int] = mapped_column(Integer, index=True)
    scheduled_date: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[str] = mapped_column(String(5))
    end_time: Mapped[str] = mapped_column(String(5))
    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.CONFIRMED.value, index=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lesson: Mapped['Lesson'] = relationship('Lesson', back_populates='bookings')
    student: Mapped['Student'] = relationship('Student')
    parent: Mapped['Parent'] = relationship('Parent')


class NotificationOutbox(Base):
    __tablename__ = 'notification_outbox'
    __table_args__ = (
        Index('ix_notification_outbox_status_created', 'status', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey('schools.id'), index=True)
    kind: Mapped[str] = mapped_column(String(60), index=True)
    payload_json: Mapped[str] = mapped_column(Text, default='{}')
    status: Mapped[str] = mapped_column(String(20), default='queued', index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


TENANT_MODELS = (
    Term,
    Teacher,
    Room,
    Lesson,
    HybridPattern,
    Family,
    Parent,
    Student,
    Enrollment,
    HybridBooking,
    NotificationOutbox,
)
