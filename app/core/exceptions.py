# app/core/exceptions.py

from fastapi import status


class LedgerError(Exception):
    """
    Base class for business-rule violations raised by the services.
    Each subclass carries the HTTP status the API answers with.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(LedgerError):
    """Malformed or out-of-range input."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(LedgerError):
    """Double use of a one-time promotion, re-processing, capacity or budget exceeded."""
    status_code = status.HTTP_409_CONFLICT


class InsufficientBalanceError(LedgerError):
    """The owner's balance cannot cover a spend, transfer or redemption."""
    status_code = status.HTTP_400_BAD_REQUEST
