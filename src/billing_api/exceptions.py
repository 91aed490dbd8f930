"""FastAPI exception handlers for converting errors to HTTP responses.

Every failure leaves the API in the same shape::

    {"error": {"code": "ERR_...", "message": "...", "recovery": "...", "details": {...}}}

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: validation, signature, not-found and Stripe rejections
- 500 Internal Server Error: webhook secret unavailable (Stripe should redeliver)
- 503 Service Unavailable: Stripe unreachable, safe to retry

Usage:
    from billing_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from billing.models.errors import BillingError, ErrorCode, ErrorResponse
from billing.services.stripe_service import (
    NotFoundError,
    StripeServiceError,
    TransientRemoteError,
)

logger = logging.getLogger(__name__)

# Codes not listed here map to 400
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.STRIPE_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.WEBHOOK_NOT_CONFIGURED: HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


def billing_error_from_stripe(
    error: StripeServiceError,
    default_code: ErrorCode = ErrorCode.STRIPE_API_ERROR,
    not_found_code: ErrorCode = ErrorCode.SESSION_NOT_FOUND,
) -> BillingError:
    """Translate a service-level Stripe error into a client-visible BillingError.

    Args:
        error: The StripeServiceError raised by a service
        default_code: Code used for Stripe rejections that are not retryable
        not_found_code: Code used when the referenced Stripe object does not exist

    Returns:
        BillingError carrying the Stripe message and error code.
    """
    details = {"stripe_error_code": error.stripe_error_code} if error.stripe_error_code else None
    if isinstance(error, TransientRemoteError):
        return BillingError(code=ErrorCode.STRIPE_UNAVAILABLE, details=details, message=str(error))
    if isinstance(error, NotFoundError):
        return BillingError(code=not_found_code, details=details, message=str(error))
    return BillingError(code=default_code, details=details, message=str(error))


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Handle BillingError exceptions and convert to JSON response."""
    return JSONResponse(
        status_code=get_http_status_for_error(exc.code),
        content=exc.to_response().model_dump(mode="json"),
    )


async def stripe_service_error_handler(request: Request, exc: StripeServiceError) -> JSONResponse:
    """Handle Stripe errors a route did not translate itself."""
    logger.warning("Untranslated Stripe error on %s: %s", request.url.path, exc)
    return await billing_error_handler(request, billing_error_from_stripe(exc))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report request validation failures as 400 before any remote call is made."""
    details: dict[str, str] = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details[location or "body"] = error.get("msg", "invalid value")

    response = ErrorResponse.from_code(ErrorCode.VALIDATION_FAILED, details=details)
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=response.model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(BillingError, billing_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StripeServiceError, stripe_service_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
