"""Custom exception handlers for FastAPI application"""

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Union
import traceback

from billing_resources.core.exceptions import (
    AuthenticationError,
    QuotaStorageError,
    QuotaValidationError,
    ResourceOverflowError,
)
from billing_resources.core.logging_config import get_logger


logger = get_logger(__name__)


async def authentication_exception_handler(
    request: Request,
    exc: AuthenticationError
) -> JSONResponse:
    """
    Handle AuthenticationError exceptions.

    Provides secure error responses for authentication failures.
    """
    logger.warning(
        "authentication_error_handled",
        request_path=request.url.path,
        request_method=request.method,
        error_code=exc.error_code,
        context=exc.context,
    )

    return JSONResponse(
        status_code=401,
        content={
            "detail": exc.message,
            "type": exc.error_code,
            "timestamp": exc.timestamp.isoformat()
        },
        headers={"WWW-Authenticate": "Bearer"}
    )


async def quota_validation_exception_handler(
    request: Request,
    exc: QuotaValidationError
) -> JSONResponse:
    """Rejected quota or server resource change, every message included"""
    logger.info(
        "quota_validation_error_handled",
        request_path=request.url.path,
        request_method=request.method,
        error_code=exc.error_code,
        errors=exc.errors,
    )

    return JSONResponse(status_code=400, content=exc.get_api_response())


async def resource_overflow_exception_handler(
    request: Request,
    exc: ResourceOverflowError
) -> JSONResponse:
    """User is over a limit and must reduce usage first"""
    logger.warning(
        "resource_overflow_handled",
        request_path=request.url.path,
        request_method=request.method,
        user_id=exc.user_id,
        overflow_details=exc.overflow_details,
    )

    return JSONResponse(status_code=403, content=exc.get_api_response())


async def quota_storage_exception_handler(
    request: Request,
    exc: QuotaStorageError
) -> JSONResponse:
    """Infrastructure failure in the quota store"""
    logger.error(
        "quota_storage_error_handled",
        request_path=request.url.path,
        request_method=request.method,
        **exc.to_dict()
    )

    return JSONResponse(status_code=500, content=exc.get_api_response())


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request body and parameter validation errors.

    One entry per offending field.
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in exc.errors()
    ]

    logger.warning(
        "validation_error_handled",
        request_path=request.url.path,
        request_method=request.method,
        errors=errors,
    )

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "type": "validation_error",
            "errors": errors
        }
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    """
    Handle HTTP exceptions with enhanced logging.

    Provides consistent error response format for HTTP exceptions.
    """
    logger.warning(
        "http_exception_handled",
        request_path=request.url.path,
        request_method=request.method,
        status_code=exc.status_code,
        detail=str(exc.detail),
    )

    content = {"detail": exc.detail}

    if exc.status_code == 400:
        content["type"] = "bad_request"
    elif exc.status_code == 401:
        content["type"] = "authentication_required"
    elif exc.status_code == 403:
        content["type"] = "permission_denied"
    elif exc.status_code == 404:
        content["type"] = "not_found"

    headers = getattr(exc, "headers", None)

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=headers
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions with secure error responses.

    Logs detailed error information but returns generic error messages
    to avoid exposing sensitive information.
    """
    logger.error(
        "unexpected_exception_handled",
        request_path=request.url.path,
        request_method=request.method,
        error_type=type(exc).__name__,
        error_message=str(exc),
        traceback=traceback.format_exc(),
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": "internal_server_error"
        }
    )


def register_exception_handlers(app):
    """
    Register all custom exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AuthenticationError, authentication_exception_handler)
    app.add_exception_handler(QuotaValidationError, quota_validation_exception_handler)
    app.add_exception_handler(ResourceOverflowError, resource_overflow_exception_handler)
    app.add_exception_handler(QuotaStorageError, quota_storage_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(Exception, general_exception_handler)

    logger.info(
        "exception_handlers_registered",
        handlers=[
            "AuthenticationError",
            "QuotaValidationError",
            "ResourceOverflowError",
            "QuotaStorageError",
            "RequestValidationError",
            "HTTPException",
            "StarletteHTTPException",
            "Exception"
        ]
    )
