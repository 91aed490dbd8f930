"""Backend services for the GlowUp billing backend."""

from .metadata_resolver import ProviderStore, propagate_intent_metadata, resolve_metadata
from .refund_service import RefundHistory, RefundService, to_minor_units
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import (
    AuthenticationError,
    MalformedEventError,
    NotFoundError,
    StripeService,
    StripeServiceError,
    TransientRemoteError,
    get_stripe_service,
)
from .webhook_handler import WebhookHandler

__all__ = [
    "AuthenticationError",
    "MalformedEventError",
    "NotFoundError",
    "ProviderStore",
    "RefundHistory",
    "RefundService",
    "SSMService",
    "SSMServiceError",
    "StripeService",
    "StripeServiceError",
    "TransientRemoteError",
    "WebhookHandler",
    "get_ssm_service",
    "get_stripe_service",
    "propagate_intent_metadata",
    "resolve_metadata",
    "to_minor_units",
]
