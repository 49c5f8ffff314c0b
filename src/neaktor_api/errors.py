"""Error types raised by the Neaktor client."""

from enum import Enum


class ErrorKind(Enum):
    """Category of an error envelope returned by the service."""

    FORBIDDEN = "403 FORBIDDEN"
    NOT_FOUND = "404 NOT_FOUND"
    UNPROCESSABLE_ENTITY = "422 UNPROCESSABLE_ENTITY"
    TOO_MANY_REQUESTS = "429 TOO_MANY_REQUESTS"
    INTERNAL_SERVER_ERROR = "500 INTERNAL_SERVER_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class NeaktorError(Exception):
    """Base class for all client errors."""


class TransportError(NeaktorError):
    """The transport failed to deliver a request."""


class ServiceUnavailableError(NeaktorError):
    """The service answered with a 5xx status."""

    def __init__(self, status_code: int, context: str = "") -> None:
        self.status_code = status_code
        message = f"service unavailable, code: {status_code}"
        if context:
            message = f"{context}: {message}"
        super().__init__(message)


class DecodeError(NeaktorError):
    """A response body could not be decoded or has an unexpected shape."""


class ServiceError(NeaktorError):
    """An error envelope with a non-empty code."""

    def __init__(self, kind: ErrorKind, code: str, message: str = "") -> None:
        self.kind = kind
        self.code = code
        self.message = message
        super().__init__(f"{kind.value}: {message}" if message else kind.value)


class HTTPStatusError(ServiceError):
    """A non-2xx response, or an OAuth ``error`` body, without a wire error code.

    The kind is derived from the HTTP status where it is one of the known codes.
    """

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        kind = _KINDS_BY_NUMBER.get(str(status_code), ErrorKind.UNKNOWN)
        super().__init__(kind, str(status_code), message)

    def __str__(self) -> str:
        if self.message:
            return f"status {self.status_code}: {self.message}"
        return f"status {self.status_code}"


class AuthError(NeaktorError):
    """Token refresh succeeded on the wire but returned no access token."""


class NotFoundError(NeaktorError):
    """Base class for lookups that found nothing."""


class ModelNotFoundError(NotFoundError):
    pass


class StatusNotFoundError(NotFoundError):
    pass


class FieldNotFoundError(NotFoundError):
    pass


class TaskNotFoundError(NotFoundError):
    pass


class TaskFieldNotFoundError(NotFoundError):
    pass


class CustomFieldOptionNotFoundError(NotFoundError):
    pass


class CustomFieldValueNotFoundError(NotFoundError):
    pass


class AssigneeNotFoundError(NotFoundError):
    pass


_KINDS_BY_NUMBER = {kind.value.split(" ", 1)[0]: kind for kind in ErrorKind if kind is not ErrorKind.UNKNOWN}


def classify(code: str, message: str = "") -> ServiceError:
    """Map a wire error code to a typed error.

    Both the bare status number ("404") and the full label ("404 NOT_FOUND")
    are recognised, case-insensitively. Unrecognised codes map to
    ``ErrorKind.UNKNOWN``.

    Args:
        code: The ``code`` attribute of the error envelope
        message: The ``message`` attribute of the error envelope

    Returns:
        ServiceError carrying the matched kind
    """
    normalized = code.strip().upper()
    kind = _KINDS_BY_NUMBER.get(normalized)
    if kind is None:
        kind = next((k for k in ErrorKind if k.value == normalized), ErrorKind.UNKNOWN)
    return ServiceError(kind, code, message)
