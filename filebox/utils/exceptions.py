class FileboxException(Exception):
    """Base exception for the application.

    Every subclass carries a machine-readable ``kind`` and the HTTP status it
    maps to, so the API layer can render any of them the same way.
    """

    kind = "InternalError"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(FileboxException):
    """Malformed request or policy-violating input"""
    kind = "InvalidInput"
    status_code = 400
    default_message = "Invalid input"


class AuthenticationError(FileboxException):
    """Missing, malformed, revoked or expired credentials"""
    kind = "Unauthorized"
    status_code = 401
    default_message = "Could not validate credentials"


class AuthorizationError(FileboxException):
    """Authenticated identity may not act on the resource"""
    kind = "Forbidden"
    status_code = 403
    default_message = "Not allowed"


class NotFoundError(FileboxException):
    """Resource never existed"""
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


class GoneError(FileboxException):
    """Resource existed but can no longer be served"""
    kind = "Gone"
    status_code = 410
    default_message = "Share has expired or reached its download limit"


class ConflictError(FileboxException):
    """Uniqueness violation"""
    kind = "Conflict"
    status_code = 409
    default_message = "Resource already exists"


class CodeConflictError(ConflictError):
    """Requested share code is held by another active share"""
    kind = "CodeConflict"
    default_message = "Share code is already in use, try another one"


class RateLimitError(FileboxException):
    """Too many requests from one client"""
    kind = "RateLimited"
    status_code = 429
    default_message = "Too many requests, please try again later"

    def __init__(self, message: str = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class StoreUnavailableError(FileboxException):
    """Blob store or database I/O failure; safe to retry idempotent reads"""
    kind = "StoreUnavailable"
    status_code = 503
    default_message = "Storage is temporarily unavailable"


class ExhaustedNamespaceError(FileboxException):
    """No free share code could be generated"""
    kind = "ExhaustedNamespace"
    status_code = 503
    default_message = "Could not generate a unique share code, please try again later"
