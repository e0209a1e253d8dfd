from app.communication.communication_event import BookingNotificationEvent
from app.communication.client_factory import get_notification_client

__all__ = ["BookingNotificationEvent", "get_notification_client"]
