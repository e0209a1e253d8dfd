from __future__ import annotations

from datetime import date, timedelta, timezone
import logging
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.core.booking_errors import (
    BookingConflictError,
    BookingError,
    BookingForbiddenError,
    BookingNotFoundError,
    BookingStateError,
    NoticeViolationError,
)
from app.core.time_provider import APP_ZONEINFO, TimeProvider, default_time_provider, ensure_aware
from app.core.week_math import combine_local
from app.models import BookingStatus, Enrollment, HybridBooking, HybridPattern, Lesson, NotificationKind, Student
from app.services.booking_notification_service import emit_notification
from app.services.hybrid_slot_service import (
    is_valid_slot,
    load_hybrid_lesson,
    require_bookings_open,
    require_individual_week,
)
from app.services.roster_service import (
    active_enrolled_student_ids,
    family_student_ids,
    is_enrolled,
    parent_can_act_for_student,
)
from app.services.school_scope_service import SchoolScope


logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = 'This time slot is already booked.'
STUDENT_WEEK_TAKEN_MESSAGE = 'This student already has a booking for this week.'


def _conflict_message_for(exc: IntegrityError) -> str:
    # SQLite reports the columns, PostgreSQL the index name.
    text = str(getattr(exc, 'orig', exc) or '')
    if 'uq_hybrid_bookings_active_student_week' in text or 'hybrid_bookings.student_id' in text:
        return STUDENT_WEEK_TAKEN_MESSAGE
    return SLOT_TAKEN_MESSAGE


def has_minimum_notice(
    slot_date: date,
    start_time: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> bool:
    # Notice is elapsed time; compare UTC instants.
    starts_at = combine_local(slot_date, start_time, APP_ZONEINFO).astimezone(timezone.utc)
    now = ensure_aware(time_provider.now()).astimezone(timezone.utc)
    return starts_at - now >= timedelta(hours=int(settings.booking_notice_hours))


def _active_bookings(scope: SchoolScope):
    return scope.query(HybridBooking).filter(HybridBooking.status != BookingStatus.CANCELLED.value)


def _parent_owns_booking(db: Session, school_id: int, parent_id: int, booking: HybridBooking) -> bool:
    if int(booking.parent_id) == int(parent_id or 0):
        return True
    return int(booking.student_id) in family_student_ids(db, school_id, parent_id)


def _load_owned_booking(
    db: Session,
    school_id: int,
    parent_id: int,
    booking_id: int,
    *,
    for_update: bool = False,
) -> HybridBooking:
    query = SchoolScope(db, school_id).query(HybridBooking).filter(HybridBooking.id == int(booking_id or 0))
    if for_update:
        query = query.with_for_update().populate_existing()
    booking = query.first()
    if not booking or not _parent_owns_booking(db, school_id, parent_id, booking):
        raise BookingNotFoundError('Booking not found.')
    return booking


def _require_open_status(booking: HybridBooking, action: str) -> None:
    if booking.status == BookingStatus.CANCELLED.value:
        if action == 'cancel':
            raise BookingStateError('Booking is already cancelled.')
        raise BookingStateError(f'Cannot {action} a cancelled booking.')
    if booking.status == BookingStatus.COMPLETED.value:
        raise BookingStateError(f'Cannot {action} a completed booking.')


def _booking_payload(booking: HybridBooking) -> dict[str, Any]:
    return {
        'booking_id': int(booking.id),
        'lesson_id': int(booking.lesson_id),
        'student_id': int(booking.student_id),
        'parent_id': int(booking.parent_id),
        'week_number': int(booking.week_number),
        'scheduled_date': booking.scheduled_date.isoformat(),
        'start_time': booking.start_time,
        'end_time': booking.end_time,
    }


def create_booking(
    db: Session,
    school_id: int,
    parent_id: int,
    *,
    lesson_id: int,
    student_id: int,
    week_number: int,
    scheduled_date: date,
    start_time: str,
    end_time: str,
    time_provider: TimeProvider = default_time_provider,
    dispatcher=None,
) -> HybridBooking:
    scope = SchoolScope(db, school_id)
    lesson, pattern = load_hybrid_lesson(scope, lesson_id)
    require_bookings_open(pattern)

    if not parent_can_act_for_student(db, school_id, parent_id, student_id):
        raise BookingForbiddenError('You can only book for your own children.')

    if not is_enrolled(db, school_id, lesson.id, student_id):
        raise BookingStateError('Student is not enrolled in this lesson.')

    require_individual_week(pattern, week_number)
    if not is_valid_slot(lesson, pattern, week_number, scheduled_date, start_time, end_time):
        raise BookingStateError('Requested time is not a bookable slot for this week.')

    if not has_minimum_notice(scheduled_date, start_time, time_provider=time_provider):
        raise NoticeViolationError(
            f'Bookings must be made at least {int(settings.booking_notice_hours)} hours in advance.'
        )

    try:
        _, locked_pattern = load_hybrid_lesson(scope, lesson.id, for_update=True)
        require_bookings_open(locked_pattern)

        student_booking = (
            _active_bookings(scope)
            .filter(
                HybridBooking.lesson_id == lesson.id,
                HybridBooking.student_id == int(student_id),
                HybridBooking.week_number == int(week_number),
            )
            .first()
        )
        if student_booking:
            raise BookingConflictError(STUDENT_WEEK_TAKEN_MESSAGE)

        slot_booking = (
            _active_bookings(scope)
            .filter(
                HybridBooking.lesson_id == lesson.id,
                HybridBooking.week_number == int(week_number),
                HybridBooking.scheduled_date == scheduled_date,
                HybridBooking.start_time == start_time,
            )
            .first()
        )
        if slot_booking:
            raise BookingConflictError(SLOT_TAKEN_MESSAGE)

        booking = HybridBooking(
            lesson_id=lesson.id,
            student_id=int(student_id),
            parent_id=int(parent_id),
            week_number=int(week_number),
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            status=BookingStatus.CONFIRMED.value,
            confirmed_at=time_provider.utcnow(),
        )
        scope.add(booking)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info(
            'hybrid_booking_conflict_on_insert',
            extra={'school_id': int(school_id), 'lesson_id': int(lesson_id), 'week_number': int(week_number)},
        )
        raise BookingConflictError(_conflict_message_for(exc)) from exc
    except BookingError:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(
        'hybrid_booking_created',
        extra={'school_id': int(school_id), 'booking_id': int(booking.id), 'lesson_id': int(booking.lesson_id)},
    )
    emit_notification(
        db,
        NotificationKind.BOOKING_CREATED.value,
        school_id,
        _booking_payload(booking),
        dispatcher=dispatcher,
    )
    return booking


def reschedule_booking(
    db: Session,
    school_id: int,
    parent_id: int,
    booking_id: int,
    *,
    scheduled_date: date,
    start_time: str,
    end_time: str,
    time_provider: TimeProvider = default_time_provider,
    dispatcher=None,
) -> HybridBooking:
    booking = _load_owned_booking(db, school_id, parent_id, booking_id)
    _require_open_status(booking, 'reschedule')

    if not has_minimum_notice(booking.scheduled_date, booking.start_time, time_provider=time_provider):
        raise NoticeViolationError(
            f'Cannot reschedule bookings within {int(settings.booking_notice_hours)} hours of the scheduled time.'
        )
    if not has_minimum_notice(scheduled_date, start_time, time_provider=time_provider):
        raise NoticeViolationError(
            f'New booking time must be at least {int(settings.booking_notice_hours)} hours in advance.'
        )

    scope = SchoolScope(db, school_id)
    lesson, pattern = load_hybrid_lesson(scope, booking.lesson_id)
    require_bookings_open(pattern)
    if not is_valid_slot(lesson, pattern, booking.week_number, scheduled_date, start_time, end_time):
        raise BookingStateError('Requested time is not a bookable slot for this week.')

    old_slot = {
        'old_scheduled_date': booking.scheduled_date.isoformat(),
        'old_start_time': booking.start_time,
        'old_end_time': booking.end_time,
    }
    try:
        _, locked_pattern = load_hybrid_lesson(scope, lesson.id, for_update=True)
        require_bookings_open(locked_pattern)

        slot_booking = (
            _active_bookings(scope)
            .filter(
                HybridBooking.id != booking.id,
                HybridBooking.lesson_id == booking.lesson_id,
                HybridBooking.week_number == booking.week_number,
                HybridBooking.scheduled_date == scheduled_date,
                HybridBooking.start_time == start_time,
            )
            .first()
        )
        if slot_booking:
            raise BookingConflictError(SLOT_TAKEN_MESSAGE)

        booking.scheduled_date = scheduled_date
        booking.start_time = start_time
        booking.end_time = end_time
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise BookingConflictError(_conflict_message_for(exc)) from exc
    except BookingError:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(
        'hybrid_booking_rescheduled',
        extra={'school_id': int(school_id), 'booking_id': int(booking.id)},
    )
    emit_notification(
        db,
        NotificationKind.BOOKING_RESCHEDULED.value,
        school_id,
        {**_booking_payload(booking), **old_slot},
        dispatcher=dispatcher,
    )
    return booking


def cancel_booking(
    db: Session,
    school_id: int,
    parent_id: int,
    booking_id: int,
    reason: str | None = None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> HybridBooking:
    try:
        booking = _load_owned_booking(db, school_id, parent_id, booking_id, for_update=True)
        _require_open_status(booking, 'cancel')
    except BookingError:
        db.rollback()
        raise

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = time_provider.utcnow()
    booking.cancellation_reason = (reason or '').strip() or None
    db.commit()
    db.refresh(booking)
    logger.info(
        'hybrid_booking_cancelled',
        extra={'school_id': int(school_id), 'booking_id': int(booking.id)},
    )
    return booking


def get_booking(db: Session, school_id: int, booking_id: int, *, parent_id: int | None = None) -> HybridBooking:
    scope = SchoolScope(db, school_id)
    booking = scope.get(HybridBooking, booking_id)
    if not booking:
        raise BookingNotFoundError('Booking not found.')
    if parent_id is not None and not _parent_owns_booking(db, school_id, parent_id, booking):
        raise BookingNotFoundError('Booking not found.')
    return booking


def list_bookings(
    db: Session,
    school_id: int,
    *,
    parent_id: int | None = None,
    lesson_id: int | None = None,
    week_number: int | None = None,
    status: str | None = None,
) -> list[HybridBooking]:
    if (parent_id is None) == (lesson_id is None):
        raise ValueError('exactly one of parent_id or lesson_id is required')

    scope = SchoolScope(db, school_id)
    query = scope.query(HybridBooking).options(
        selectinload(HybridBooking.lesson),
        selectinload(HybridBooking.student),
    )
    if parent_id is not None:
        student_ids = sorted(family_student_ids(db, school_id, parent_id))
        ownership = HybridBooking.parent_id == int(parent_id)
        if student_ids:
            ownership = or_(ownership, HybridBooking.student_id.in_(student_ids))
        query = query.filter(ownership)
        order = (HybridBooking.scheduled_date.asc(), HybridBooking.start_time.asc(), HybridBooking.id.asc())
    else:
        if not scope.get(Lesson, lesson_id):
            raise BookingNotFoundError('Lesson not found.')
        query = query.filter(HybridBooking.lesson_id == int(lesson_id))
        order = (
            HybridBooking.week_number.asc(),
            HybridBooking.scheduled_date.asc(),
            HybridBooking.start_time.asc(),
            HybridBooking.id.asc(),
        )

    if week_number is not None:
        query = query.filter(HybridBooking.week_number == int(week_number))
    if status:
        query = query.filter(HybridBooking.status == str(status).strip().lower())
    return query.order_by(*order).all()


def _load_lesson_with_pattern(scope: SchoolScope, lesson_id: int) -> tuple[Lesson, HybridPattern]:
    lesson = (
        scope.query(Lesson)
        .options(selectinload(Lesson.hybrid_pattern))
        .filter(Lesson.id == int(lesson_id))
        .first()
    )
    if not lesson:
        raise BookingNotFoundError('Lesson not found.')
    if lesson.hybrid_pattern is None:
        raise BookingStateError('This lesson is not a hybrid lesson.')
    return lesson, lesson.hybrid_pattern


def get_booking_stats(db: Session, school_id: int, lesson_id: int, week_number: int | None = None) -> dict[str, Any]:
    scope = SchoolScope(db, school_id)
    lesson, _ = _load_lesson_with_pattern(scope, lesson_id)
    total_students = len(active_enrolled_student_ids(db, school_id, lesson.id))

    query = (
        _active_bookings(scope)
        .with_entities(HybridBooking.status, func.count(HybridBooking.id))
        .filter(HybridBooking.lesson_id == lesson.id)
    )
    if week_number is not None:
        query = query.filter(HybridBooking.week_number == int(week_number))
    counts = {str(status): int(count) for status, count in query.group_by(HybridBooking.status).all()}

    pending = counts.get(BookingStatus.PENDING.value, 0)
    confirmed = counts.get(BookingStatus.CONFIRMED.value, 0)
    completed = counts.get(BookingStatus.COMPLETED.value, 0)
    booked = pending + confirmed + completed
    completion_rate = (booked / total_students) * 100 if total_students > 0 else 0.0
    return {
        'total_students': total_students,
        'booked_count': booked,
        'unbooked_count': max(total_students - booked, 0),
        'completion_rate': round(completion_rate, 2),
        'pending_bookings': pending,
        'confirmed_bookings': confirmed,
    }


def list_students_without_bookings(db: Session, school_id: int, lesson_id: int, week_number: int) -> list[dict[str, Any]]:
    scope = SchoolScope(db, school_id)
    lesson, _ = _load_lesson_with_pattern(scope, lesson_id)

    booked_ids = {
        int(row.student_id)
        for row in _active_bookings(scope)
        .with_entities(HybridBooking.student_id)
        .filter(HybridBooking.lesson_id == lesson.id, HybridBooking.week_number == int(week_number))
        .all()
    }
    enrollments = (
        scope.query(Enrollment)
        .options(selectinload(Enrollment.student).selectinload(Student.family))
        .filter(Enrollment.lesson_id == lesson.id, Enrollment.is_active.is_(True))
        .order_by(Enrollment.student_id.asc())
        .all()
    )
    rows: list[dict[str, Any]] = []
    for enrollment in enrollments:
        if int(enrollment.student_id) in booked_ids:
            continue
        student = enrollment.student
        family = student.family if student else None
        if not family or not family.parents:
            continue
        rows.append({'student': student, 'parent': family.parents[0]})
    return rows


def toggle_bookings_open(
    db: Session,
    school_id: int,
    lesson_id: int,
    open_bookings: bool,
    *,
    dispatcher=None,
) -> HybridPattern:
    scope = SchoolScope(db, school_id)
    lesson, pattern = _load_lesson_with_pattern(scope, lesson_id)
    locked = (
        scope.query(HybridPattern)
        .filter(HybridPattern.id == pattern.id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    locked.bookings_open = bool(open_bookings)
    db.commit()
    db.refresh(locked)
    logger.info(
        'hybrid_bookings_toggled',
        extra={'school_id': int(school_id), 'lesson_id': int(lesson.id), 'bookings_open': bool(open_bookings)},
    )

    if open_bookings:
        emit_notification(
            db,
            NotificationKind.BOOKINGS_OPENED.value,
            school_id,
            {
                'lesson_id': int(lesson.id),
                'student_ids': active_enrolled_student_ids(db, school_id, lesson.id),
            },
            dispatcher=dispatcher,
        )
    return locked


def _clean_weeks(values: list[int] | None, label: str) -> list[int]:
    weeks = sorted({int(value) for value in (values or [])})
    if any(week < 1 for week in weeks):
        raise BookingStateError(f'{label} must contain week numbers >= 1.')
    return weeks


def update_hybrid_pattern(
    db: Session,
    school_id: int,
    lesson_id: int,
    *,
    group_weeks: list[int] | None = None,
    individual_weeks: list[int] | None = None,
    individual_slot_duration: int | None = None,
) -> HybridPattern:
    scope = SchoolScope(db, school_id)
    _, pattern = _load_lesson_with_pattern(scope, lesson_id)

    next_group = _clean_weeks(group_weeks if group_weeks is not None else pattern.group_weeks, 'group_weeks')
    next_individual = _clean_weeks(
        individual_weeks if individual_weeks is not None else pattern.individual_weeks,
        'individual_weeks',
    )
    overlap = set(next_group) & set(next_individual)
    if overlap:
        raise BookingStateError(f'Weeks cannot be both group and individual: {sorted(overlap)}.')

    duration = int(individual_slot_duration if individual_slot_duration is not None else pattern.individual_slot_duration)
    if duration <= 0:
        raise BookingStateError('individual_slot_duration must be positive.')

    pattern.group_weeks = next_group
    pattern.individual_weeks = next_individual
    pattern.individual_slot_duration = duration
    db.commit()
    db.refresh(pattern)
    logger.info('hybrid_pattern_updated', extra={'school_id': int(school_id), 'lesson_id': int(lesson_id)})
    return pattern
