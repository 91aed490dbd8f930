"""Pydantic models and record types for the GlowUp billing backend."""

from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    STRIPE_RETRYABLE_ERRORS,
    BillingError,
    ErrorBody,
    ErrorCode,
    ErrorResponse,
    is_stripe_error_retryable,
)
from .metadata import (
    CREDIT_GRANTED_KEY,
    PRODUCT_KEY,
    USER_ID_KEY,
    MetadataRecord,
    MetadataResolution,
    MetadataSource,
    as_metadata,
    build_payment_metadata,
)
from .refund import RefundReason, RefundSummary
from .webhook import (
    EventType,
    ProcessingResult,
    WebhookAcknowledgement,
    WebhookEvent,
)

__all__ = [
    # Errors
    "BillingError",
    "ErrorBody",
    "ErrorCode",
    "ErrorResponse",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "STRIPE_RETRYABLE_ERRORS",
    "is_stripe_error_retryable",
    # Metadata
    "CREDIT_GRANTED_KEY",
    "PRODUCT_KEY",
    "USER_ID_KEY",
    "MetadataRecord",
    "MetadataResolution",
    "MetadataSource",
    "as_metadata",
    "build_payment_metadata",
    # Refunds
    "RefundReason",
    "RefundSummary",
    # Webhooks
    "EventType",
    "ProcessingResult",
    "WebhookAcknowledgement",
    "WebhookEvent",
]
