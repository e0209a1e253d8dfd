from __future__ import annotations

from typing import Iterable

from fastapi import HTTPException, Request

from app.tenant_middleware import get_request_school_id


VALID_ROLES = {'admin', 'teacher', 'parent'}


def _header_int(request: Request, name: str) -> int:
    raw = (request.headers.get(name) or '').strip()
    if not raw:
        return 0
    try:
        return max(0, int(raw))
    except ValueError:
        raise HTTPException(status_code=401, detail='Unauthorized') from None


def require_auth_user(request: Request) -> dict:
    """Principal forwarded by the authenticating gateway."""
    school_id = int(get_request_school_id(request) or 0)
    role = (request.headers.get('x-user-role') or '').strip().lower()
    user_id = _header_int(request, 'x-user-id')
    if school_id <= 0 or user_id <= 0 or role not in VALID_ROLES:
        raise HTTPException(status_code=401, detail='Unauthorized')
    return {
        'user_id': user_id,
        'role': role,
        'school_id': school_id,
        'parent_id': _header_int(request, 'x-parent-id'),
    }


def require_role(user: dict, allowed_roles: set[str] | Iterable[str]) -> None:
    normalized = {str(role).strip().lower() for role in allowed_roles}
    if str(user.get('role') or '').strip().lower() not in normalized:
        raise HTTPException(status_code=403, detail='Forbidden')


def require_parent_id(user: dict) -> int:
    parent_id = int(user.get('parent_id') or 0)
    if parent_id <= 0:
        raise HTTPException(status_code=404, detail='Parent profile not found.')
    return parent_id
