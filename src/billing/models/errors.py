"""Standard error codes for the billing backend.

Every failure surfaced over HTTP carries one of these codes together with a
human-readable message and a recovery hint for the calling client.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Request errors
    VALIDATION_FAILED = "ERR_001"
    SESSION_NOT_FOUND = "ERR_002"
    PAYMENT_INTENT_NOT_FOUND = "ERR_003"
    CHARGE_NOT_FOUND = "ERR_004"

    # Stripe/Payment error codes
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"
    STRIPE_API_ERROR = "ERR_STRIPE_002"
    MALFORMED_WEBHOOK_EVENT = "ERR_STRIPE_003"
    STRIPE_UNAVAILABLE = "ERR_STRIPE_004"
    CHECKOUT_FAILED = "ERR_STRIPE_005"
    REFUND_FAILED = "ERR_STRIPE_006"
    WEBHOOK_NOT_CONFIGURED = "ERR_STRIPE_007"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "Request validation failed",
    ErrorCode.SESSION_NOT_FOUND: "Checkout session not found",
    ErrorCode.PAYMENT_INTENT_NOT_FOUND: "No payment intent found for this session",
    ErrorCode.CHARGE_NOT_FOUND: "No charges found for this payment",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.STRIPE_API_ERROR: "Stripe API error occurred",
    ErrorCode.MALFORMED_WEBHOOK_EVENT: "Webhook payload is not a valid event",
    ErrorCode.STRIPE_UNAVAILABLE: "Stripe is temporarily unreachable",
    ErrorCode.CHECKOUT_FAILED: "Could not create checkout session",
    ErrorCode.REFUND_FAILED: "Could not create refund",
    ErrorCode.WEBHOOK_NOT_CONFIGURED: "Webhook signing secret is unavailable",
}

# Recovery suggestions for clients
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "Check the request parameters and try again",
    ErrorCode.SESSION_NOT_FOUND: "Verify the session_id returned after checkout",
    ErrorCode.PAYMENT_INTENT_NOT_FOUND: "Complete the checkout before requesting a refund",
    ErrorCode.CHARGE_NOT_FOUND: "Wait for the payment to settle and try again",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.STRIPE_API_ERROR: "Try again or contact support",
    ErrorCode.MALFORMED_WEBHOOK_EVENT: "Check the webhook endpoint configuration in Stripe",
    ErrorCode.STRIPE_UNAVAILABLE: "Retry the request after a short delay",
    ErrorCode.CHECKOUT_FAILED: "Try again or choose a different plan",
    ErrorCode.REFUND_FAILED: "Check the refund amount and try again",
    ErrorCode.WEBHOOK_NOT_CONFIGURED: "Configure the Stripe webhook signing secret",
}


class ErrorBody(BaseModel):
    """Error payload returned under the ``error`` key of failed responses."""

    model_config = ConfigDict(strict=True)

    code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None


class ErrorResponse(BaseModel):
    """Standard error response: ``{"error": {...}}``."""

    model_config = ConfigDict(strict=True)

    error: ErrorBody

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error
            message: Optional override for the default message

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error=ErrorBody(
                code=code,
                message=message or ERROR_MESSAGES[code],
                recovery=ERROR_RECOVERY[code],
                details=details,
            )
        )


class BillingError(Exception):
    """Exception raised by route handlers for client-visible failures.

    Converted to an ErrorResponse by the API exception handlers.
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse body."""
        return ErrorResponse.from_code(self.code, self.details, self.message)


# Stripe error codes that indicate the caller should retry
STRIPE_RETRYABLE_ERRORS: set[str] = {
    "processing_error",
    "rate_limit",
    "lock_timeout",
    "api_connection_error",
}


def is_stripe_error_retryable(stripe_error_code: Optional[str]) -> bool:
    """Check if a Stripe error is likely transient and retryable.

    Args:
        stripe_error_code: The Stripe error code.

    Returns:
        True if the error may be resolved by retrying.
    """
    return stripe_error_code in STRIPE_RETRYABLE_ERRORS if stripe_error_code else False
