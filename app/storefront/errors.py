"""Custom exceptions for the storefront API.

Every error raised by request handlers derives from StorefrontError and carries
the HTTP status it is reported with; main.py turns them into JSON responses.
"""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRequestError(StorefrontError):
    """Raised for malformed or missing input, including bad id formats."""

    status_code = 400


class InsufficientStockError(InvalidRequestError):
    """Raised when a product cannot cover the requested quantity."""

    def __init__(self, title: str, available: int, requested: int):
        self.title = title
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {title}. Available: {available}, Requested: {requested}"
        )


class UploadTooLargeError(InvalidRequestError):
    """Raised when an uploaded file exceeds the configured size limit."""

    status_code = 413

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"File too large. Maximum size is {limit} bytes")


class UnauthorizedError(StorefrontError):
    """Raised when the bearer credential is missing, invalid or expired."""

    status_code = 401


class InvalidCredentialsError(UnauthorizedError):
    """Raised on login with an unknown email or a wrong password."""

    def __init__(self):
        super().__init__("Invalid credentials")


class ForbiddenError(StorefrontError):
    """Raised when an authenticated caller is not allowed to act on a resource."""

    status_code = 403


class NotFoundError(StorefrontError):
    status_code = 404


class ConflictError(StorefrontError):
    status_code = 409


class InvalidStateError(StorefrontError):
    """Raised for an illegal order lifecycle transition."""

    status_code = 400


class InternalError(StorefrontError):
    status_code = 500
