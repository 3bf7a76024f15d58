"""FastAPI exception handlers for converting TicketingError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: malformed or unsellable carts, webhook authentication failures
- 500 Internal Server Error: deployment misconfiguration, gateway refusals

Usage:
    from ticketing_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from ticketing.models.errors import ErrorCode, TicketingError
from ticketing.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Client-correctable or tampered input -> 400
    ErrorCode.INVALID_PAYLOAD: HTTP_400_BAD_REQUEST,
    ErrorCode.UNKNOWN_SKU: HTTP_400_BAD_REQUEST,
    ErrorCode.NO_VALID_ITEMS: HTTP_400_BAD_REQUEST,
    # Authentication failure -> 400 so Stripe redelivers
    ErrorCode.BAD_SIGNATURE: HTTP_400_BAD_REQUEST,
    # Operator-fixable -> 500
    ErrorCode.CONFIGURATION_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.GATEWAY_REJECTED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.FORWARDING_FAILURE: HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode (defaults to 500)."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_500_INTERNAL_SERVER_ERROR)


async def ticketing_error_handler(request: Request, exc: TicketingError) -> JSONResponse:
    """Convert a TicketingError into an ErrorResponse body."""
    status_code = get_http_status_for_error(exc.code)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code.value)
    else:
        logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code.value)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for uncaught exceptions; never exposes internal details."""
    logger.exception("Unhandled exception: %s", exc)

    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "An unexpected error occurred",
            "error_code": "ERR_INTERNAL",
            "recovery": "Please try again later or contact support",
            "details": None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(TicketingError, ticketing_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
