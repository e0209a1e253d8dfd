from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.config import settings
from app.core.router_guard import require_auth_user, require_parent_id, require_role
from app.core.time_provider import TimeProvider, get_time_provider
from app.db import get_db
from app.route_logging import EndpointNameRoute
from app.services.calendar_feed_service import get_calendar_events, get_parent_calendar_events


router = APIRouter(prefix='/calendar', tags=['Calendar'], route_class=EndpointNameRoute)


@router.get('/events')
def events(
    request: Request,
    term_id: int | None = Query(default=None, gt=0),
    teacher_id: int | None = Query(default=None, gt=0),
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.calendar_default_page_size, ge=1, le=settings.calendar_max_page_size),
    db: Session = Depends(get_db),
    time_provider: TimeProvider = Depends(get_time_provider),
):
    user = require_auth_user(request)
    require_role(user, {'admin', 'teacher'})
    try:
        result = get_calendar_events(
            db,
            user['school_id'],
            term_id=term_id,
            teacher_id=teacher_id,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
            time_provider=time_provider,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {'status': 'success', 'data': result['events'], 'pagination': result['pagination']}


@router.get('/my-events')
def my_events(
    request: Request,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
    time_provider: TimeProvider = Depends(get_time_provider),
):
    user = require_auth_user(request)
    require_role(user, {'parent', 'teacher', 'admin'})
    parent_id = require_parent_id(user)
    try:
        rows = get_parent_calendar_events(
            db,
            user['school_id'],
            parent_id,
            start_date=start_date,
            end_date=end_date,
            time_provider=time_provider,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {'status': 'success', 'data': rows}
