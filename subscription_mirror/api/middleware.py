"""Middleware for the FastAPI application.

This module contains middleware that process requests and responses, and the exception
handlers that map engine errors to HTTP status codes.
"""

import time
import traceback
import uuid
from typing import Union

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from subscription_mirror.core.config import settings
from subscription_mirror.core.exceptions import (
    ConfigInvalid,
    ExternalServiceError,
    NotFoundException,
    StoreError,
    SubscriptionMirrorException,
    WebhookVerificationError,
    unpack_validation_error,
)
from subscription_mirror.core.logging import logger


async def add_request_id(request: Request, call_next: callable) -> Response:
    """Middleware to generate and add a request ID to the request for tracing.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    request.state.request_id = str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


async def log_requests(request: Request, call_next: callable) -> Response:
    """Middleware to log incoming requests.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.info(
        f"Handled request {request.method} {request.url.path} in {duration:.2f} seconds. "
        f"Response code: {response.status_code}"
    )
    return response


async def exception_logging_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to log unhandled exceptions.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

        response_content = {"detail": f"Internal Server Error: {exc.__class__.__name__}: {exc}"}

        # Include stack trace only in development mode
        if settings.LOCAL_DEVELOPMENT or settings.DEBUG:
            response_content["trace"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=response_content)


# Exception handlers
async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """Exception handler for validation errors that occur during request processing.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (Union[RequestValidationError, ValidationError]): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 422 Unprocessable Entity status response that details the validation
            errors, keyed by the location of each error in the request.

    Example of JSON output:
        {
            "errors": [
                {"body.email": "Field required"},
                {"body.new_plan_id": "String should have at least 1 character"}
            ]
        }

    """
    error_messages = unpack_validation_error(exc)
    logger.error(f"Validation error: {error_messages}")
    return JSONResponse(status_code=422, content=error_messages)


async def webhook_verification_exception_handler(
    request: Request, exc: WebhookVerificationError
) -> JSONResponse:
    """Exception handler for rejected webhook events.

    Returns:
    -------
        JSONResponse: A 400 Bad Request status response; the event was not applied.

    """
    return JSONResponse(status_code=400, content={"received": False, "error": exc.message})


async def not_found_exception_handler(request: Request, exc: NotFoundException) -> JSONResponse:
    """Exception handler for NotFoundException.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (NotFoundException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 404 Not Found status response that details the error message.

    """
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def external_service_exception_handler(
    request: Request, exc: ExternalServiceError
) -> JSONResponse:
    """Exception handler for billing provider failures.

    Returns:
    -------
        JSONResponse: A 502 Bad Gateway status response naming the failing service.

    """
    logger.error(f"External service error: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


async def subscription_mirror_exception_handler(
    request: Request, exc: SubscriptionMirrorException
) -> JSONResponse:
    """Generic exception handler for all SubscriptionMirrorException types.

    Maps exception types to HTTP status codes based on which side failed.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (SubscriptionMirrorException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: HTTP response with appropriate status code and error details.
    """
    status_code_map = {
        # 500 Internal Server Error - the service is misconfigured
        ConfigInvalid: 500,
        # 503 Service Unavailable - the mirror store failed
        StoreError: 503,
    }

    # Anything else is a client error
    status_code = status_code_map.get(type(exc), 400)
    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc}")

    return JSONResponse(status_code=status_code, content={"detail": str(exc)})
