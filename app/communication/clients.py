from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from app.communication.communication_event import BookingNotificationEvent


logger = logging.getLogger(__name__)


class BaseNotificationClient:
    def emit_event(self, event: BookingNotificationEvent) -> dict[str, Any]:
        try:
            asyncio.get_running_loop()
            logger.warning("notification_emit_called_in_running_loop", extra={"kind": event.kind})
            return {"queued": False, "error": "running_event_loop"}
        except RuntimeError:
            return asyncio.run(self.emit_event_async(event))

    async def emit_event_async(self, event: BookingNotificationEvent) -> dict[str, Any]:
        raise NotImplementedError


class LoggingNotificationClient(BaseNotificationClient):
    async def emit_event_async(self, event: BookingNotificationEvent) -> dict[str, Any]:
        logger.info(
            "notification_logged",
            extra={"kind": event.kind, "school_id": event.school_id, "outbox_id": event.outbox_id},
        )
        return {"queued": True, "mode": "log"}


class RemoteNotificationClient(BaseNotificationClient):
    def __init__(self, base_url: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def emit_event_async(self, event: BookingNotificationEvent) -> dict[str, Any]:
        body = event.model_dump(mode="json")
        async with httpx.AsyncClient(base_url=self.base_url, timeout=10, transport=self._transport) as client:
            response = await client.post("/events/emit", json=body)
            response.raise_for_status()
            data = response.json()
            if isinstance(data, dict):
                return {**data, "mode": "remote"}
            return {"queued": True, "mode": "remote"}
