from __future__ import annotations

import logging
from functools import lru_cache

from app.communication.clients import LoggingNotificationClient, RemoteNotificationClient
from app.config import settings


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_notification_client():
    service_url = (settings.communication_service_url or "").strip()
    logger.info("notification_client_selected", extra={"service_url": service_url or None})
    if not service_url:
        return LoggingNotificationClient()
    return RemoteNotificationClient(service_url)
