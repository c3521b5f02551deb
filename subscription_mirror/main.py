"""Main module of the FastAPI application.

This module sets up the FastAPI application, the middleware to log incoming requests and
unhandled exceptions, and the subscription service shared by the endpoints.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from subscription_mirror.api.middleware import (
    add_request_id,
    exception_logging_middleware,
    external_service_exception_handler,
    log_requests,
    not_found_exception_handler,
    subscription_mirror_exception_handler,
    validation_exception_handler,
    webhook_verification_exception_handler,
)
from subscription_mirror.api.router import TrailingSlashRouter
from subscription_mirror.api.v1.api import api_router
from subscription_mirror.core.config import settings
from subscription_mirror.core.exceptions import (
    ExternalServiceError,
    NotFoundException,
    SubscriptionMirrorException,
    WebhookVerificationError,
)
from subscription_mirror.core.logging import logger
from subscription_mirror.core.subscription_service import SubscriptionService
from subscription_mirror.db.session import build_session_factory, create_engine_from_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events.

    Builds the subscription service from settings unless one was already installed on the
    application state, and disposes of the database engine on shutdown.
    """
    engine = None
    if getattr(app.state, "subscription_service", None) is None:
        engine = create_engine_from_settings()
        app.state.subscription_service = SubscriptionService.from_settings(
            settings, build_session_factory(engine)
        )
        logger.info(f"Subscription mirror started for table '{settings.MIRROR_TABLE}'")

    yield

    if engine is not None:
        await engine.dispose()


# Create FastAPI app with our custom router and disable FastAPI's built-in redirects
app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url="/openapi.json",
    lifespan=lifespan,
    router=TrailingSlashRouter(),
    redirect_slashes=False,
)

app.include_router(api_router)

# Register middleware directly
app.middleware("http")(add_request_id)
app.middleware("http")(log_requests)
app.middleware("http")(exception_logging_middleware)

# Register exception handlers
app.exception_handler(RequestValidationError)(validation_exception_handler)
app.exception_handler(ValidationError)(validation_exception_handler)
app.exception_handler(WebhookVerificationError)(webhook_verification_exception_handler)
app.exception_handler(NotFoundException)(not_found_exception_handler)
app.exception_handler(ExternalServiceError)(external_service_exception_handler)
app.exception_handler(SubscriptionMirrorException)(subscription_mirror_exception_handler)
