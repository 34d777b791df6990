"""Custom exception handlers for the FastAPI application.

Domain exceptions are converted into HTTP responses here, in one place. Starlette
picks the handler of the most specific class, so RemoteTimeoutError (504) wins
over its parent ExternalServiceError (502).
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from playmirror.domain.exceptions import (
    AuthenticationError,
    CatalogUnavailableError,
    ConfigurationError,
    EntityNotFoundException,
    ExternalServiceError,
    RemoteTimeoutError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers that map domain exceptions to status codes.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(EntityNotFoundException)
    async def entity_not_found_exception_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        """Handle entity not found exceptions with 404 Not Found."""
        logger.info(
            "Entity not found at %s: %s %s",
            request.url.path,
            exc.entity_type,
            exc.entity_id,
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle domain validation exceptions with 422 Unprocessable Entity."""
        logger.warning("Validation error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.message},
        )

    @app.exception_handler(AuthenticationError)
    async def authentication_exception_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        """Handle missing/rejected credentials with 401 Unauthorized."""
        logger.warning("Authentication error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": exc.message},
        )

    @app.exception_handler(RemoteTimeoutError)
    async def remote_timeout_exception_handler(
        request: Request, exc: RemoteTimeoutError
    ) -> JSONResponse:
        """Handle remote calls that never completed with 504 Gateway Timeout."""
        logger.warning("Remote timeout at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"detail": exc.message, "operation": exc.operation},
        )

    @app.exception_handler(ExternalServiceError)
    async def external_service_exception_handler(
        request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        """Handle remote provider failures with 502 Bad Gateway."""
        logger.error("External service error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": exc.message, "service": exc.service},
        )

    @app.exception_handler(CatalogUnavailableError)
    async def catalog_unavailable_exception_handler(
        request: Request, exc: CatalogUnavailableError
    ) -> JSONResponse:
        """Handle 'refresh failed and nothing local' with 503 Service Unavailable."""
        logger.error("Catalog unavailable at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message, "scope": exc.scope},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        """Handle misconfiguration with 503 Service Unavailable."""
        logger.error("Configuration error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )
