from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.router_guard import require_auth_user, require_parent_id, require_role
from app.core.time_provider import TimeProvider, get_time_provider
from app.db import get_db
from app.route_logging import EndpointNameRoute
from app.models import HybridBooking, HybridPattern
from app.schemas import (
    BookingCancelRequest,
    BookingCreateRequest,
    BookingRescheduleRequest,
    BookingStatusFilter,
    HybridPatternUpdateRequest,
)
from app.services.hybrid_booking_service import (
    cancel_booking,
    create_booking,
    get_booking,
    get_booking_stats,
    list_bookings,
    list_students_without_bookings,
    reschedule_booking,
    toggle_bookings_open,
    update_hybrid_pattern,
)
from app.services.hybrid_slot_service import get_available_slots


router = APIRouter(prefix='/hybrid-bookings', tags=['Hybrid Bookings'], route_class=EndpointNameRoute)

PARENT_OR_ABOVE = {'parent', 'teacher', 'admin'}
TEACHER_OR_ADMIN = {'teacher', 'admin'}


def _booking_dict(row: HybridBooking) -> dict:
    student = row.student
    return {
        'id': row.id,
        'lesson_id': row.lesson_id,
        'lesson_name': row.lesson.name if row.lesson else None,
        'student_id': row.student_id,
        'student_name': f'{student.first_name} {student.last_name}'.strip() if student else None,
        'parent_id': row.parent_id,
        'week_number': row.week_number,
        'scheduled_date': row.scheduled_date.isoformat(),
        'start_time': row.start_time,
        'end_time': row.end_time,
        'status': row.status,
        'confirmed_at': row.confirmed_at,
        'cancelled_at': row.cancelled_at,
        'cancellation_reason': row.cancellation_reason,
    }


def _pattern_dict(row: HybridPattern) -> dict:
    return {
        'lesson_id': row.lesson_id,
        'group_weeks': list(row.group_weeks or []),
        'individual_weeks': list(row.individual_weeks or []),
        'individual_slot_duration': row.individual_slot_duration,
        'bookings_open': row.bookings_open,
    }


@router.get('/available-slots')
def available_slots(
    request: Request,
    lesson_id: int = Query(gt=0),
    week_number: int = Query(ge=1),
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    require_role(user, PARENT_OR_ABOVE)
    slots = get_available_slots(db, user['school_id'], lesson_id, week_number)
    return {'status': 'success', 'data': [slot.to_dict() for slot in slots]}


@router.post('', status_code=201)
def create(
    payload: BookingCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    time_provider: TimeProvider = Depends(get_time_provider),
):
    user = require_auth_user(request)
    require_role(user, PARENT_OR_ABOVE)
    parent_id = require_parent_id(user)
    row = create_booking(
        db,
        user['school_id'],
        parent_id,
        lesson_id=payload.lesson_id,
        student_id=payload.student_id,
        week_number=payload.week_number,
        scheduled_date=payload.scheduled_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        time_provider=time_provider,
    )
    return {'status': 'success', 'data': _booking_dict(row)}


@router.get('/my-bookings')
def my_bookings(
    request: Request,
    lesson_id: int | None = Query(default=None, gt=0),
    week_number: int | None = Query(default=None, ge=1),
    status: BookingStatusFilter | None = None,
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    require_role(user, PARENT_OR_ABOVE)
    parent_id = require_parent_id(user)
    rows = list_bookings(db, user['school_id'], parent_id=parent_id, week_number=week_number, status=status)
    if lesson_id:
        rows = [row for row in rows if row.lesson_id == lesson_id]
    return {'status': 'success', 'data': [_booking_dict(row) for row in rows]}


@router.get('/lessons/{lesson_id}/bookings')
def lesson_bookings(
    lesson_id: int,
    request: Request,
    week_number: int | None = Query(default=None, ge=1),
    status: BookingStatusFilter | None = None,
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    require_role(user, TEACHER_OR_ADMIN)
    rows = list_bookings(db, user['school_id'], lesson_id=lesson_id, week_number=week_number, status=status)
    return {'status': 'success', 'data': [_booking_dict(row) for row in rows]}


@router.get('/lessons/{lesson_id}/stats')
def lesson_stats(
    lesson_id: int,
    request: Request,
    week_number: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    require_role(user, TEACHER_OR_ADMIN)
    return {'status': 'success', 'data': get_booking_stats(db, user['school_id'], lesson_id, week_number)}


@router.get('/lessons/{lesson_id}/unbooked')
def lesson_unbooked(
    lesson_id: int,
    request: Request,
    week_number: int = Query(ge=1),
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    require_role(user, TEACHER_OR_ADMIN)
    rows = list_students_without_bookings(db, user['school_id'], lesson_id, week_number)
    return {
        'status': 'success',
        'data': [
            {
                'student_id': row['student'].id,
                'student_name': f"{row['student'].first_name} {row['student'].last_name}".strip(),
                'parent_id': row['parent'].id,
                'parent_email': row['parent'].email,
            }
            for row in rows
        ],
    }


@router.patch('/lessons/{lesson_id}/open-bookings')
def open_bookings(lesson_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {'admin'})
    pattern = toggle_bookings_open(db, user['school_id'], lesson_id, True)
    return {'status': 'success', 'data': _pattern_dict(pattern), 'message': 'Bookings opened'}


@router.patch('/lessons/{lesson_id}/close-bookings')
def close_bookings(lesson_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {'admin'})
    pattern = toggle_bookings_open(db, user['school_id'], lesson_id, False)
    return {'status': 'success', 'data': _pattern_dict(pattern), 'message': 'Bookings closed'}


@router.put('/lessons/{lesson_id}/pattern')
def edit_pattern(lesson_id: int, payload: HybridPatternUpdateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {'admin'})
    pattern = update_hybrid_pattern(
        db,
        user['school_id'],
        lesson_id,
        group_weeks=payload.group_weeks,
        individual_weeks=payload.individual_weeks,
        individual_slot_duration=payload.individual_slot_duration,
    )
    return {'status': 'success', 'data': _pattern_dict(pattern)}


@router.get('/{booking_id}')
def get_one(booking_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, PARENT_OR_ABOVE)
    parent_id = require_parent_id(user) if user['role'] == 'parent' else None
    row = get_booking(db, user['school_id'], booking_id, parent_id=parent_id)
    return {'status': 'success', 'data': _booking_dict(row)}


@router.patch('/{booking_id}')
def reschedule(
    booking_id: int,
    payload: BookingRescheduleRequest,
    request: Request,
    db: Session = Depends(get_db),
    time_provider: TimeProvider = Depends(get_time_provider),
):
    user = require_auth_user(request)
    require_role(user, PARENT_OR_ABOVE)
    parent_id = require_parent_id(user)
    row = reschedule_booking(
        db,
        user['school_id'],
        parent_id,
        booking_id,
        scheduled_date=payload.scheduled_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        time_provider=time_provider,
    )
    return {'status': 'success', 'data': _booking_dict(row)}


@router.delete('/{booking_id}')
def cancel(
    booking_id: int,
    request: Request,
    payload: BookingCancelRequest | None = None,
    db: Session = Depends(get_db),
    time_provider: TimeProvider = Depends(get_time_provider),
):
    user = require_auth_user(request)
    require_role(user, PARENT_OR_ABOVE)
    parent_id = require_parent_id(user)
    cancel_booking(
        db,
        user['school_id'],
        parent_id,
        booking_id,
        payload.reason if payload else None,
        time_provider=time_provider,
    )
    return {'status': 'success', 'message': 'Booking cancelled'}
