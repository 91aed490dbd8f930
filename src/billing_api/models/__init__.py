"""Request and response models for the HTTP API."""

from billing.models.errors import ErrorResponse
from billing.models.webhook import WebhookAcknowledgement

from .checkout import CheckoutMetadata, CheckoutSessionRequest, CheckoutSessionResponse
from .refunds import RefundHistoryResponse, RefundRequest, RefundResponse
from .sessions import VerifySessionResponse

__all__ = [
    "CheckoutMetadata",
    "CheckoutSessionRequest",
    "CheckoutSessionResponse",
    "ErrorResponse",
    "RefundHistoryResponse",
    "RefundRequest",
    "RefundResponse",
    "VerifySessionResponse",
    "WebhookAcknowledgement",
]
