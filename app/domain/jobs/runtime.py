from __future__ import annotations

import logging
import time

from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.models import School
from app.services.school_scope_service import school_context


logger = logging.getLogger(__name__)


def with_db(task, *, job_label: str, session_factory=SessionLocal) -> None:
    db: Session = session_factory()
    try:
        school_rows = db.query(School.id).order_by(School.id.asc()).all()
        school_ids = [int(school_id) for (school_id,) in school_rows if int(school_id or 0) > 0]
        for school_id in school_ids:
            with school_context(school_id):
                try:
                    task(db, school_id)
                except Exception:
                    db.rollback()
                    logger.exception('job_school_failure school_id=%s job=%s', school_id, job_label)
    finally:
        db.close()


def run_job(label: str, task, *, session_factory=SessionLocal) -> None:
    started = time.perf_counter()
    with_db(task, job_label=label, session_factory=session_factory)
    logger.info('job_finished job=%s duration_ms=%.2f', label, (time.perf_counter() - started) * 1000.0)
