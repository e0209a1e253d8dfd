from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from app.config import settings
from app.models import NotificationOutbox


logger = logging.getLogger(__name__)


class OutboxNotificationDispatcher:
    """Queues notification requests in the outbox table.

    Each row is written and committed in its own session on the caller's
    engine, so the caller's session is never flushed, committed or rolled
    back here. Rows are picked up by the dispatch job in
    ``app.domain.jobs.booking_notifications``; nothing is delivered inline.
    """

    def __init__(self, db: Session):
        self.bind = db.get_bind()

    def notify(self, kind: str, school_id: int, payload: dict[str, Any]) -> None:
        row = NotificationOutbox(
            school_id=int(school_id),
            kind=str(kind),
            payload_json=json.dumps(payload, default=str, sort_keys=True),
            status='queued',
        )
        with Session(bind=self.bind) as session:
            session.add(row)
            session.commit()


def emit_notification(
    db: Session,
    kind: str,
    school_id: int,
    payload: dict[str, Any],
    *,
    dispatcher=None,
) -> bool:
    if not settings.enable_booking_notifications:
        return False
    target = dispatcher or OutboxNotificationDispatcher(db)
    try:
        target.notify(kind, int(school_id), payload)
    except Exception:
        logger.exception(
            'booking_notification_enqueue_failed',
            extra={'kind': kind, 'school_id': int(school_id)},
        )
        return False
    logger.info('booking_notification_enqueued', extra={'kind': kind, 'school_id': int(school_id)})
    return True
