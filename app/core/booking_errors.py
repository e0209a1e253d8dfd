from __future__ import annotations


class BookingError(ValueError):
    code = 'booking_error'
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BookingNotFoundError(BookingError):
    code = 'not_found'
    status_code = 404


class BookingForbiddenError(BookingError):
    code = 'forbidden'
    status_code = 403


class BookingStateError(BookingError):
    code = 'invalid_state'
    status_code = 400


class NoticeViolationError(BookingError):
    code = 'notice_violation'
    status_code = 400


class BookingConflictError(BookingError):
    code = 'conflict'
    status_code = 409
