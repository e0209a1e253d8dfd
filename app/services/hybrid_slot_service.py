from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

from sqlalchemy.orm import Session, selectinload

from app.core.booking_errors import BookingNotFoundError, BookingStateError
from app.core.week_math import date_for_week, format_minutes, ranges_overlap, to_minutes
from app.models import BookingStatus, HybridBooking, HybridPattern, Lesson, LessonType
from app.services.school_scope_service import SchoolScope


@dataclass(frozen=True)
class TimeSlot:
    date: date
    start_time: str
    end_time: str
    week_number: int
    is_available: bool

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload['date'] = self.date.isoformat()
        return payload


def slot_windows(start_time: str, end_time: str, duration_minutes: int) -> list[tuple[str, str]]:
    """Tile ``[start_time, end_time)`` with fixed windows, dropping a trailing partial one."""
    duration = int(duration_minutes)
    if duration <= 0:
        raise ValueError('slot duration must be positive')
    begin = to_minutes(start_time)
    finish = to_minutes(end_time)
    windows: list[tuple[str, str]] = []
    cursor = begin
    while cursor + duration <= finish:
        windows.append((format_minutes(cursor), format_minutes(cursor + duration)))
        cursor += duration
    return windows


def mark_availability(
    windows: list[tuple[str, str]],
    taken: list[tuple[str, str]],
    *,
    slot_date: date,
    week_number: int,
) -> list[TimeSlot]:
    slots: list[TimeSlot] = []
    for start, end in windows:
        busy = any(ranges_overlap(start, end, taken_start, taken_end) for taken_start, taken_end in taken)
        slots.append(
            TimeSlot(
                date=slot_date,
                start_time=start,
                end_time=end,
                week_number=int(week_number),
                is_available=not busy,
            )
        )
    return slots


def load_hybrid_lesson(scope: SchoolScope, lesson_id: int, *, for_update: bool = False) -> tuple[Lesson, HybridPattern]:
    lesson = (
        scope.query(Lesson)
        .options(selectinload(Lesson.term), selectinload(Lesson.hybrid_pattern))
        .filter(Lesson.id == int(lesson_id), Lesson.is_active.is_(True))
        .first()
    )
    if not lesson:
        raise BookingNotFoundError('Lesson not found.')
    if lesson.lesson_type != LessonType.HYBRID.value or lesson.hybrid_pattern is None:
        raise BookingStateError('This lesson is not a hybrid lesson.')
    pattern = lesson.hybrid_pattern
    if for_update:
        pattern = (
            scope.query(HybridPattern)
            .filter(HybridPattern.id == pattern.id)
            .with_for_update()
            .populate_existing()
            .first()
        )
    return lesson, pattern


def require_individual_week(pattern: HybridPattern, week_number: int) -> None:
    if int(week_number) not in {int(week) for week in (pattern.individual_weeks or [])}:
        raise BookingStateError(f'Week {int(week_number)} is not an individual booking week.')


def require_bookings_open(pattern: HybridPattern) -> None:
    if not pattern.bookings_open:
        raise BookingStateError('Bookings are not currently open for this lesson.')


def occurrence_date(lesson: Lesson, week_number: int) -> date:
    return date_for_week(lesson.term.start_date, int(week_number), int(lesson.weekday))


def is_valid_slot(lesson: Lesson, pattern: HybridPattern, week_number: int, slot_date: date, start_time: str, end_time: str) -> bool:
    if slot_date != occurrence_date(lesson, week_number):
        return False
    windows = slot_windows(lesson.start_time, lesson.end_time, pattern.individual_slot_duration)
    return (start_time, end_time) in windows


def get_available_slots(db: Session, school_id: int, lesson_id: int, week_number: int) -> list[TimeSlot]:
    scope = SchoolScope(db, school_id)
    lesson, pattern = load_hybrid_lesson(scope, lesson_id)
    require_individual_week(pattern, week_number)
    require_bookings_open(pattern)

    slot_date = occurrence_date(lesson, week_number)
    taken = (
        scope.query(HybridBooking)
        .with_entities(HybridBooking.start_time, HybridBooking.end_time)
        .filter(
            HybridBooking.lesson_id == lesson.id,
            HybridBooking.week_number == int(week_number),
            HybridBooking.status != BookingStatus.CANCELLED.value,
        )
        .all()
    )
    windows = slot_windows(lesson.start_time, lesson.end_time, pattern.individual_slot_duration)
    return mark_availability(
        windows,
        [(row.start_time, row.end_time) for row in taken],
        slot_date=slot_date,
        week_number=week_number,
    )
