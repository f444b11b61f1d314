"""
Error taxonomy for the booking engine.

Services raise these; main.py turns them into JSON responses carrying the
specific reason in ``detail``.
"""


class BookingEngineError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(BookingEngineError):
    """Missing required field, invalid date or price"""

    status_code = 400


class AuthenticationError(BookingEngineError):
    """No verified identity was forwarded with the request"""

    status_code = 401


class AuthorizationError(BookingEngineError):
    """Actor lacks the role or ownership required for the action"""

    status_code = 403


class NotFoundError(BookingEngineError):
    """Booking, package, product or payment is absent"""

    status_code = 404


class ConflictError(BookingEngineError):
    """Illegal state transition or unusable package"""

    status_code = 409


class PackageExhausted(ConflictError):
    def __init__(self, detail: str = "Package has no remaining credits"):
        super().__init__(detail)


class PackageExpired(ConflictError):
    def __init__(self, detail: str = "Package has expired"):
        super().__init__(detail)


class PackageInactive(ConflictError):
    def __init__(self, detail: str = "Package is inactive"):
        super().__init__(detail)


class PaymentProcessorError(BookingEngineError):
    """Payment processor unavailable or rejected the request"""

    status_code = 502
