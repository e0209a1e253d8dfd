from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import TypeVar

from sqlalchemy.orm import Query, Session


ModelT = TypeVar('ModelT')

_current_school_id: ContextVar[int | None] = ContextVar('current_school_id', default=None)


def set_current_school_id(school_id: int | None) -> Token:
    clean = int(school_id or 0)
    return _current_school_id.set(clean if clean > 0 else None)


def reset_current_school_id(token: Token) -> None:
    _current_school_id.reset(token)


def get_current_school_id() -> int | None:
    value = _current_school_id.get()
    clean = int(value or 0)
    return clean if clean > 0 else None


@contextmanager
def school_context(school_id: int | None):
    token = set_current_school_id(school_id)
    try:
        yield
    finally:
        reset_current_school_id(token)


class SchoolScope:
    """Tenant-bound accessor over a session.

    Every query issued through the scope is filtered by ``school_id``; models
    without that column are refused outright. A row that exists under another
    school is returned as ``None``, exactly like a missing id.
    """

    def __init__(self, db: Session, school_id: int):
        clean = int(school_id or 0)
        if clean <= 0:
            raise ValueError('school_id is required')
        self.db = db
        self.school_id = clean

    def query(self, model: type[ModelT]) -> Query:
        column = getattr(model, 'school_id', None)
        if column is None:
            raise TypeError(f'{model.__name__} is not school-scoped')
        return self.db.query(model).filter(column == self.school_id)

    def get(self, model: type[ModelT], row_id: int | None) -> ModelT | None:
        if not row_id:
            return None
        return self.query(model).filter(model.id == int(row_id)).first()

    def add(self, row: ModelT) -> ModelT:
        current = int(getattr(row, 'school_id', 0) or 0)
        if current and current != self.school_id:
            raise ValueError('row belongs to another school')
        row.school_id = self.school_id
        self.db.add(row)
        return row
