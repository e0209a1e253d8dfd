from __future__ import annotations

import json
import logging

from sqlalchemy.orm import Session

from app.communication.client_factory import get_notification_client
from app.communication.communication_event import BookingNotificationEvent
from app.config import settings
from app.core.time_provider import TimeProvider, default_time_provider
from app.db import SessionLocal
from app.domain.jobs.runtime import run_job
from app.models import NotificationOutbox
from app.services.school_scope_service import SchoolScope


logger = logging.getLogger(__name__)


def dispatch_queued_notifications(
    db: Session,
    school_id: int,
    *,
    client=None,
    batch_size: int | None = None,
    max_attempts: int | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict[str, int]:
    target = client or get_notification_client()
    limit = max(1, int(batch_size or settings.notification_batch_size))
    attempts_cap = max(1, int(max_attempts or settings.notification_max_attempts))
    scope = SchoolScope(db, school_id)

    rows = (
        scope.query(NotificationOutbox)
        .filter(NotificationOutbox.status == 'queued')
        .order_by(NotificationOutbox.id.asc())
        .limit(limit)
        .all()
    )
    summary = {'sent': 0, 'retry': 0, 'failed': 0}
    for row in rows:
        row.attempts = int(row.attempts or 0) + 1
        try:
            event = BookingNotificationEvent(
                outbox_id=int(row.id),
                kind=row.kind,
                school_id=int(row.school_id),
                payload=json.loads(row.payload_json or '{}'),
                attempt=row.attempts,
            )
            target.emit_event(event)
        except Exception as exc:
            row.last_error = str(exc)[:500]
            if row.attempts >= attempts_cap:
                row.status = 'failed'
                summary['failed'] += 1
            else:
                summary['retry'] += 1
            logger.warning(
                'booking_notification_dispatch_failed',
                extra={'outbox_id': int(row.id), 'kind': row.kind, 'attempts': row.attempts},
            )
        else:
            row.status = 'sent'
            row.sent_at = time_provider.utcnow()
            row.last_error = ''
            summary['sent'] += 1
        db.commit()
    return summary


def execute(*, session_factory=SessionLocal) -> None:
    run_job(
        'booking_notifications',
        lambda db, school_id: dispatch_queued_notifications(db, school_id),
        session_factory=session_factory,
    )
