"""
SEOgen Receiver - FastAPI Application

Creates the FastAPI app, wires routers and the collaborator container.

Run with: uvicorn seogen_receiver.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from . import __version__
from .config import Settings, configure_logging, get_settings
from .container import ReceiverContainer, build_container
from .core.errors import setup_error_handlers
from .core.middleware import RequestLoggingMiddleware
from .db import close_pool
from .routers.admin import router as admin_router
from .routers.callbacks import router as callbacks_router
from .routers.health import router as health_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ReceiverContainer] = None,
) -> FastAPI:
    """
    Build the receiver application.

    Args:
        settings: Settings to use; defaults to get_settings()
        container: Pre-built collaborators (tests). When None, the lifespan
            handler builds them from settings and closes the pool on shutdown.
    """
    settings = settings or (container.settings if container else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owns_container = container is None
        app.state.container = build_container(settings) if owns_container else container

        # Fail-closed verification needs a secret to exist before callbacks arrive
        app.state.container.config.get_or_create_callback_secret()
        logger.info(f"Starting SEOgen Receiver v{__version__} ({settings.ENVIRONMENT})")

        yield

        logger.info("Shutting down SEOgen Receiver")
        if owns_container:
            close_pool(app.state.container.pool)

    app = FastAPI(
        title="SEOgen Receiver",
        version=__version__,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(RequestLoggingMiddleware)
    setup_error_handlers(app)

    namespace = "/" + settings.REST_NAMESPACE.strip("/")
    app.include_router(health_router)
    app.include_router(callbacks_router, prefix=namespace)
    app.include_router(admin_router)

    return app


def _create_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    return create_app(settings)


app = _create_default_app()
