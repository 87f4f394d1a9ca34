"""
Error taxonomy for booking operations.

Each error carries the HTTP status the API answers with.
"""


class BookingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookingError, LookupError):
    """A referenced class, booking, instructor or profile does not exist."""

    status_code = 404


class ExhaustedError(BookingError, OverflowError):
    """The class has no free slots left."""

    status_code = 409


class ConflictError(BookingError):
    """The store kept rejecting the transaction after every retry."""

    status_code = 409


class TransientError(BookingError):
    """The store is unavailable; the caller may try again."""

    status_code = 503


class InvalidTransitionError(BookingError):
    status_code = 409


class InvalidUpdateError(BookingError):
    status_code = 400


class TransactionError(RuntimeError):
    """A transaction body read a document after it had already written."""
