from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
import math
from typing import Any

from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.core.time_provider import TimeProvider, default_time_provider
from app.core.week_math import combine_local, date_for_week, week_start
from app.models import BookingStatus, HybridBooking, Lesson, LessonType
from app.services.roster_service import active_enrollment_counts, family_enrolled_lesson_ids, family_student_ids
from app.services.school_scope_service import SchoolScope


@dataclass(frozen=True)
class LessonSnapshot:
    id: int
    name: str
    lesson_type: str
    weekday: int
    start_time: str
    end_time: str
    term_start: date
    term_end: date
    teacher_name: str = ''
    room_name: str = ''
    location_name: str = ''
    max_participants: int = 0
    enrolled_count: int = 0
    has_pattern: bool = False
    group_weeks: frozenset[int] = frozenset()
    individual_weeks: frozenset[int] = frozenset()
    bookings_open: bool = False


@dataclass(frozen=True)
class BookingSnapshot:
    id: int
    lesson_id: int
    lesson_name: str
    week_number: int
    scheduled_date: date
    start_time: str
    end_time: str
    student_id: int
    student_name: str
    teacher_name: str = ''
    room_name: str = ''
    location_name: str = ''


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: datetime
    end: datetime
    kind: str
    lesson_id: int
    week_number: int
    student_id: int | None = None
    student_name: str | None = None
    booking_id: int | None = None
    teacher_name: str = ''
    room_name: str = ''
    location_name: str = ''
    enrolled_count: int | None = None
    max_participants: int | None = None
    bookings_open: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload['start'] = self.start.isoformat()
        payload['end'] = self.end.isoformat()
        return payload


def _occurrence_event(lesson: LessonSnapshot, day: date, week_number: int) -> CalendarEvent | None:
    base = {
        'start': combine_local(day, lesson.start_time),
        'end': combine_local(day, lesson.end_time),
        'lesson_id': lesson.id,
        'week_number': week_number,
        'teacher_name': lesson.teacher_name,
        'room_name': lesson.room_name,
        'location_name': lesson.location_name,
        'enrolled_count': lesson.enrolled_count,
        'max_participants': lesson.max_participants,
    }
    if lesson.lesson_type == LessonType.HYBRID.value and lesson.has_pattern:
        if week_number in lesson.group_weeks:
            return CalendarEvent(
                id=f'{lesson.id}-week-{week_number}',
                title=f'{lesson.name} (Group)',
                kind='hybrid_group',
                **base,
            )
        if week_number in lesson.individual_weeks:
            return CalendarEvent(
                id=f'{lesson.id}-week-{week_number}-placeholder',
                title=f'{lesson.name} (Individual Booking Week)',
                kind='hybrid_placeholder',
                bookings_open=lesson.bookings_open,
                **base,
            )
        return None
    return CalendarEvent(
        id=f'{lesson.id}-week-{week_number}',
        title=lesson.name,
        kind=lesson.lesson_type,
        **base,
    )


def lesson_occurrence_events(lesson: LessonSnapshot, start_date: date, end_date: date) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    week_number = 1
    while True:
        current_week_start = week_start(lesson.term_start, week_number)
        if current_week_start > lesson.term_end or current_week_start > end_date:
            break
        day = date_for_week(lesson.term_start, week_number, lesson.weekday)
        if start_date <= day <= end_date and lesson.term_start <= day <= lesson.term_end:
            event = _occurrence_event(lesson, day, week_number)
            if event is not None:
                events.append(event)
        week_number += 1
    return events


def booking_event(booking: BookingSnapshot) -> CalendarEvent:
    return CalendarEvent(
        id=f'booking-{booking.id}',
        title=f'{booking.lesson_name} - {booking.student_name}',
        start=combine_local(booking.scheduled_date, booking.start_time),
        end=combine_local(booking.scheduled_date, booking.end_time),
        kind='hybrid_individual',
        lesson_id=booking.lesson_id,
        week_number=booking.week_number,
        student_id=booking.student_id,
        student_name=booking.student_name,
        booking_id=booking.id,
        teacher_name=booking.teacher_name,
        room_name=booking.room_name,
        location_name=booking.location_name,
    )


def build_calendar_events(
    lessons: list[LessonSnapshot],
    bookings: list[BookingSnapshot],
    start_date: date,
    end_date: date,
) -> list[CalendarEvent]:
    """Merge recurring occurrences and concrete bookings into one sorted feed.

    Pure: the result depends only on the snapshots and the date range.
    Bookings are taken as given; callers filter them to the range.
    """
    events: list[CalendarEvent] = []
    for lesson in lessons:
        events.extend(lesson_occurrence_events(lesson, start_date, end_date))
    events.extend(booking_event(row) for row in bookings)
    events.sort(key=lambda row: (row.start, row.id))
    return events


def paginate_events(events: list[CalendarEvent], page: int, limit: int) -> dict[str, Any]:
    clean_page = max(1, int(page or 1))
    clean_limit = max(1, int(limit or 1))
    total = len(events)
    total_pages = math.ceil(total / clean_limit)
    offset = (clean_page - 1) * clean_limit
    return {
        'events': [row.to_dict() for row in events[offset:offset + clean_limit]],
        'pagination': {
            'page': clean_page,
            'limit': clean_limit,
            'total': total,
            'total_pages': total_pages,
            'has_more': clean_page < total_pages,
        },
    }


def _person_name(row) -> str:
    if row is None:
        return ''
    return f'{row.first_name} {row.last_name}'.strip()


def _lesson_snapshot(lesson: Lesson, enrolled_count: int) -> LessonSnapshot:
    pattern = lesson.hybrid_pattern
    return LessonSnapshot(
        id=int(lesson.id),
        name=lesson.name,
        lesson_type=lesson.lesson_type,
        weekday=int(lesson.weekday),
        start_time=lesson.start_time,
        end_time=lesson.end_time,
        term_start=lesson.term.start_date,
        term_end=lesson.term.end_date,
        teacher_name=_person_name(lesson.teacher),
        room_name=lesson.room.name if lesson.room else '',
        location_name=lesson.room.location_name if lesson.room else '',
        max_participants=int(lesson.max_participants or 0),
        enrolled_count=int(enrolled_count),
        has_pattern=pattern is not None,
        group_weeks=frozenset(int(week) for week in (pattern.group_weeks or [])) if pattern else frozenset(),
        individual_weeks=frozenset(int(week) for week in (pattern.individual_weeks or [])) if pattern else frozenset(),
        bookings_open=bool(pattern.bookings_open) if pattern else False,
    )


def _booking_snapshot(booking: HybridBooking) -> BookingSnapshot:
    lesson = booking.lesson
    return BookingSnapshot(
        id=int(booking.id),
        lesson_id=int(booking.lesson_id),
        lesson_name=lesson.name,
        week_number=int(booking.week_number),
        scheduled_date=booking.scheduled_date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        student_id=int(booking.student_id),
        student_name=_person_name(booking.student),
        teacher_name=_person_name(lesson.teacher),
        room_name=lesson.room.name if lesson.room else '',
        location_name=lesson.room.location_name if lesson.room else '',
    )


def resolve_date_range(
    start_date: date | None,
    end_date: date | None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> tuple[date, date]:
    clean_start = start_date or time_provider.today()
    clean_end = end_date or clean_start + timedelta(days=int(settings.calendar_default_window_days))
    if clean_end < clean_start:
        raise ValueError('end_date must be greater than or equal to start_date')
    return clean_start, clean_end


def _lesson_query(scope: SchoolScope):
    return scope.query(Lesson).options(
        selectinload(Lesson.term),
        selectinload(Lesson.teacher),
        selectinload(Lesson.room),
        selectinload(Lesson.hybrid_pattern),
    ).filter(Lesson.is_active.is_(True))


def _booking_query(scope: SchoolScope, start_date: date, end_date: date):
    return (
        scope.query(HybridBooking)
        .join(Lesson, Lesson.id == HybridBooking.lesson_id)
        .options(
            selectinload(HybridBooking.lesson).selectinload(Lesson.teacher),
            selectinload(HybridBooking.lesson).selectinload(Lesson.room),
            selectinload(HybridBooking.student),
        )
        .filter(
            HybridBooking.status != BookingStatus.CANCELLED.value,
            HybridBooking.scheduled_date >= start_date,
            HybridBooking.scheduled_date <= end_date,
        )
    )


def get_calendar_events(
    db: Session,
    school_id: int,
    *,
    term_id: int | None = None,
    teacher_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    limit: int | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict[str, Any]:
    clean_start, clean_end = resolve_date_range(start_date, end_date, time_provider=time_provider)
    clean_limit = min(int(limit or settings.calendar_default_page_size), int(settings.calendar_max_page_size))
    scope = SchoolScope(db, school_id)

    lesson_query = _lesson_query(scope)
    booking_query = _booking_query(scope, clean_start, clean_end)
    if term_id:
        lesson_query = lesson_query.filter(Lesson.term_id == int(term_id))
        booking_query = booking_query.filter(Lesson.term_id == int(term_id))
    if teacher_id:
        lesson_query = lesson_query.filter(Lesson.teacher_id == int(teacher_id))
        booking_query = booking_query.filter(Lesson.teacher_id == int(teacher_id))

    lessons = lesson_query.order_by(Lesson.id.asc()).all()
    counts = active_enrollment_counts(db, school_id, [row.id for row in lessons])
    lesson_rows = [_lesson_snapshot(row, counts.get(int(row.id), 0)) for row in lessons]
    booking_rows = [_booking_snapshot(row) for row in booking_query.order_by(HybridBooking.id.asc()).all()]

    events = build_calendar_events(lesson_rows, booking_rows, clean_start, clean_end)
    return paginate_events(events, page, clean_limit)


def get_parent_calendar_events(
    db: Session,
    school_id: int,
    parent_id: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> list[dict[str, Any]]:
    clean_start, clean_end = resolve_date_range(start_date, end_date, time_provider=time_provider)
    lesson_ids = sorted(family_enrolled_lesson_ids(db, school_id, parent_id))
    if not lesson_ids:
        return []
    student_ids = sorted(family_student_ids(db, school_id, parent_id))
    scope = SchoolScope(db, school_id)

    lessons = _lesson_query(scope).filter(Lesson.id.in_(lesson_ids)).order_by(Lesson.id.asc()).all()
    counts = active_enrollment_counts(db, school_id, [row.id for row in lessons])
    lesson_rows = [_lesson_snapshot(row, counts.get(int(row.id), 0)) for row in lessons]
    bookings = (
        _booking_query(scope, clean_start, clean_end)
        .filter(HybridBooking.student_id.in_(student_ids))
        .order_by(HybridBooking.id.asc())
        .all()
    )
    booking_rows = [_booking_snapshot(row) for row in bookings]
    return [row.to_dict() for row in build_calendar_events(lesson_rows, booking_rows, clean_start, clean_end)]
