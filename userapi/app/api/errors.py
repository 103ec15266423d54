"""Error envelope construction and exception handlers.

Every error leaving the application, whether raised by a route, rejected by
an admission guard or unexpected, is rendered through build_error_response()
so clients always see the same JSON shape.
"""

from http import HTTPStatus
from typing import Mapping, Optional, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from userapi.app.core.config import settings
from userapi.app.core.logging import get_log_context, get_logger
from userapi.app.core.utils import utc_timestamp
from userapi.app.exceptions import AppException
from userapi.app.schemas.error import ErrorResponse

logger = get_logger(__name__)


def build_error_response(
    status_code: int,
    message: Union[str, list[str]],
    path: str,
    method: str,
    error: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Render the standard error envelope.

    Args:
        status_code: HTTP status code
        message: Human readable message, or a list of them for validation errors
        path: Request path
        method: HTTP method
        error: Optional error phrase (e.g. "Not Found")
        headers: Optional extra response headers

    Returns:
        JSONResponse carrying an ErrorResponse body
    """
    body = ErrorResponse(
        status_code=status_code,
        message=message,
        timestamp=utc_timestamp(),
        path=path,
        method=method,
        error=error,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=dict(headers) if headers else None,
    )


def _status_phrase(status_code: int) -> Optional[str]:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return None


def _format_validation_errors(exc: RequestValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{location}: {err.get('msg', 'invalid value')}")
    return messages


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the application's exception handlers to ``app``."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle domain exceptions raised inside routes."""
        logger.warning(
            f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}",
            extra=get_log_context(
                request_id=getattr(request.state, "request_id", None),
                status_code=exc.status_code,
            ),
        )
        return build_error_response(
            exc.status_code,
            exc.message,
            request.url.path,
            request.method,
            error=exc.error,
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle framework HTTP errors (unknown route, wrong method, ...)."""
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return build_error_response(
            exc.status_code,
            message,
            request.url.path,
            request.method,
            error=_status_phrase(exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors and return HTTP 400."""
        return build_error_response(
            400,
            _format_validation_errors(exc),
            request.url.path,
            request.method,
            error="Bad Request",
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns the traceback to the client; it is logged server-side.
        Debug mode adds the exception message but still no stack trace.
        """
        request_id = getattr(request.state, "request_id", None)
        logger.exception(
            f"Unhandled exception: {request.method} {request.url.path}",
            extra=get_log_context(
                request_id=request_id,
                exception_type=type(exc).__name__,
            ),
        )

        message = "Internal server error"
        if settings.debug:
            message = f"{type(exc).__name__}: {exc}"

        return build_error_response(
            500,
            message,
            request.url.path,
            request.method,
            error="Internal Server Error",
        )
