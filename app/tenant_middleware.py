from __future__ import annotations

import ipaddress
import logging
from collections.abc import Callable

from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.config import settings
from app.db import SessionLocal
from app.models import School
from app.services.school_scope_service import school_context

logger = logging.getLogger(__name__)

SCHOOL_HEADER = 'x-school-id'


def get_request_school_id(request: Request) -> int | None:
    value = int(getattr(request.state, 'school_id', 0) or 0)
    return value if value > 0 else None


def _extract_subdomain(host_header: str) -> str:
    host = (host_header or '').strip().lower()
    if not host:
        return ''
    host_without_port = host
    if host_without_port.startswith('['):
        bracket_end = host_without_port.find(']')
        if bracket_end != -1:
            host_without_port = host_without_port[1:bracket_end]
    else:
        host_without_port = host_without_port.split(':', 1)[0]
    try:
        ipaddress.ip_address(host_without_port.strip('[]'))
        return ''
    except ValueError:
        pass
    labels = [label for label in host_without_port.split('.') if label]
    if not labels:
        return ''
    if labels[-1] == 'localhost':
        return labels[0] if len(labels) >= 2 else ''
    tenant_base_domain = (settings.tenant_base_domain or '').strip().lower().lstrip('.')
    if tenant_base_domain and host_without_port.endswith(f'.{tenant_base_domain}'):
        return labels[0]
    if settings.app_env.lower() in {'local', 'dev', 'development', 'test'}:
        return ''
    if len(labels) < 3:
        return ''
    return labels[0]


def _header_school_id(request: Request) -> int | None:
    raw = (request.headers.get(SCHOOL_HEADER) or '').strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        return 0
    return value if value > 0 else 0


def _get_or_create_default_school(db: Session) -> School:
    row = db.query(School).filter(School.slug == settings.dev_default_school_slug).first()
    if row:
        return row
    row = School(
        name=settings.dev_default_school_slug,
        slug=settings.dev_default_school_slug,
        timezone=settings.app_timezone or 'Australia/Sydney',
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


class TenantResolutionMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, session_factory: sessionmaker | Callable[[], Session] | None = None):
        super().__init__(app)
        self._session_factory = session_factory or SessionLocal

    async def dispatch(self, request: Request, call_next):
        host = request.headers.get('host', '')
        slug = _extract_subdomain(host)
        header_school_id = _header_school_id(request)
        if header_school_id == 0:
            return JSONResponse(status_code=400, content={'detail': 'Invalid school header'})

        db: Session = self._session_factory()
        try:
            school = None
            if slug:
                school = db.query(School).filter(School.slug == slug).first()
                if not school:
                    return JSONResponse(status_code=404, content={'detail': 'School not found'})
                if header_school_id and header_school_id != int(school.id):
                    return JSONResponse(status_code=403, content={'detail': 'School mismatch'})
            elif header_school_id:
                school = db.query(School).filter(School.id == header_school_id).first()
                if not school:
                    return JSONResponse(status_code=404, content={'detail': 'School not found'})
            else:
                school = _get_or_create_default_school(db)
                logger.info(
                    'tenant_resolution_fallback_default_school host=%s slug=%s school_id=%s',
                    host,
                    settings.dev_default_school_slug,
                    school.id,
                )
            request.state.school_id = int(school.id)
            request.state.school_slug = str(school.slug)
        finally:
            db.close()

        with school_context(int(request.state.school_id)):
            return await call_next(request)
