from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.models import NotificationKind


class BookingNotificationEvent(BaseModel):
    outbox_id: int
    kind: NotificationKind
    school_id: int
    payload: dict[str, Any] = Field(default_factory=dict)
    attempt: int = 1
