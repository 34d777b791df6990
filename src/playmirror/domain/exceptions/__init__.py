"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - use a specific subclass so callers can catch
    # precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Input validation failed.

    HTTP Status: 422
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503
    """

    pass


class AuthenticationError(DomainException):
    """No usable credential for the remote catalog.

    Raised when there is no access token or the provider answers 401/403.
    The core never retries these - credential renewal happens elsewhere.

    HTTP Status: 401
    """

    pass


class ExternalServiceError(DomainException):
    """Remote provider call failed (network, HTTP status, transport timeout).

    Always recoverable locally by falling back to whatever is already stored.

    HTTP Status: 502
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.http_status = http_status


class ResponseParseError(ExternalServiceError):
    """Remote provider returned a malformed response.

    Treated exactly like any other ExternalServiceError.
    """

    pass


class RemoteTimeoutError(ExternalServiceError):
    """The completion callback never fired within the allowed wait.

    Hey future me - this is a failure even if the remote call would have succeeded a moment
    later! The late result is dropped on the floor (see remote_call.await_callback).

    HTTP Status: 504
    """

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} did not complete within {timeout:.1f}s")
        self.operation = operation
        self.timeout = timeout


class CatalogUnavailableError(DomainException):
    """Refresh failed and there is no local data to fall back on.

    HTTP Status: 503
    """

    def __init__(self, scope: str, reason: str | None = None) -> None:
        message = f"No local data for {scope} and refresh failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.scope = scope
        self.reason = reason


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "ValidationError",
    "ConfigurationError",
    "AuthenticationError",
    "ExternalServiceError",
    "ResponseParseError",
    "RemoteTimeoutError",
    "CatalogUnavailableError",
]
