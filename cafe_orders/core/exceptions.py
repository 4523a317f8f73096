"""
Error taxonomy for the ordering core.

None of these are fatal: validation problems block a single action until
the user corrects the input, transport problems are surfaced and the user
re-triggers the action.
"""

from typing import Optional


class CafeOrdersError(Exception):
    """Base class for every error raised by the ordering core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CafeOrdersError):
    """
    Input rejected locally.

    Covers missing required options, unavailable products, invalid or
    ineligible coupons and incomplete delivery addresses. No network call
    is made (or its result is discarded).
    """


class ZoneUnserved(ValidationError):
    """Delivery neighborhood is not served; pickup and dine-in remain open."""

    def __init__(self, message: str, neighborhood: str = ""):
        super().__init__(message)
        self.neighborhood = neighborhood


class TransportError(CafeOrdersError):
    """Network failure, non-success HTTP status or malformed JSON."""

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.action = action
        self.status_code = status_code


class StatusTransitionFailure(CafeOrdersError):
    """A kitchen status change was not confirmed by the store."""

    def __init__(self, message: str, order_id: str, status: str):
        super().__init__(message)
        self.order_id = order_id
        self.status = status
