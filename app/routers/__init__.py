from app.routers import calendar, hybrid_bookings

__all__ = [
    'calendar',
    'hybrid_bookings',
]
