from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    AUTHENTICATION_FAILED = "authentication_failed"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"


class ApiError(Exception):
    """Base class for every failure raised by the request gateway."""

    kind: ErrorKind
    status: Optional[int] = None


class AuthenticationFailed(ApiError):
    """The backend rejected the credential (HTTP 401). The credential is gone."""

    kind = ErrorKind.AUTHENTICATION_FAILED
    status = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class HttpError(ApiError):
    kind = ErrorKind.HTTP_ERROR

    def __init__(self, status: int):
        super().__init__(f"HTTP error! status: {status}")
        self.status = status


class TransportError(ApiError):
    """No usable response was obtained from the backend."""

    kind = ErrorKind.TRANSPORT_ERROR

    def __init__(self, message: str = "Network request failed"):
        super().__init__(message)
