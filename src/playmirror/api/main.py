"""FastAPI application factory."""

from fastapi import FastAPI

from playmirror import __version__
from playmirror.api.exception_handlers import register_exception_handlers
from playmirror.api.routers import api_router
from playmirror.config import Settings, get_settings
from playmirror.infrastructure.lifecycle import lifespan
from playmirror.infrastructure.observability.middleware import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to use; defaults to the cached environment settings

    Returns:
        Configured application. Services are attached to app.state by the lifespan.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app
