"""Checkout session endpoint.

Creates a Stripe-hosted checkout page for GlowUp Premium. The client's
``userId`` / ``creditGranted`` are remapped to ``UserId`` / ``CreditGranted``
and attached to both the session and its payment intent.
"""

import os

from fastapi import APIRouter, Depends

from billing.models.errors import ErrorCode, ErrorResponse
from billing.models.metadata import build_payment_metadata
from billing.services.stripe_service import StripeService, StripeServiceError
from billing.utils.logging import get_logger
from billing_api.dependencies import get_stripe
from billing_api.exceptions import billing_error_from_stripe
from billing_api.models.checkout import CheckoutSessionRequest, CheckoutSessionResponse

logger = get_logger(__name__)

router = APIRouter(tags=["checkout"])

DEFAULT_APP_DOMAIN = "http://localhost:3000"


def _app_domain() -> str:
    return os.environ.get("APP_DOMAIN", DEFAULT_APP_DOMAIN).rstrip("/")


@router.post(
    "/create-checkout-session",
    summary="Create checkout session",
    description="""
Create a Stripe Checkout session and return its hosted page URL.

**Notes:**
- Price: `priceId` from the body, else `STRIPE_PRICE_ID`, else inline USD 79.00 pricing
- Locale: body `locale`, else `metadata.locale`, else `en`
- `metadata.userId` / `metadata.creditGranted` are validated before use
""",
    response_model=CheckoutSessionResponse,
    responses={
        400: {"description": "Invalid request or Stripe rejected the session", "model": ErrorResponse},
        503: {"description": "Stripe unreachable", "model": ErrorResponse},
    },
)
def create_checkout_session(
    body: CheckoutSessionRequest,
    stripe_service: StripeService = Depends(get_stripe),
) -> CheckoutSessionResponse:
    """Create a checkout session for a single purchase."""
    price_id = body.price_id or os.environ.get("STRIPE_PRICE_ID") or None
    metadata = build_payment_metadata(
        user_id=body.metadata.user_id if body.metadata else None,
        credit_granted=body.metadata.credit_granted if body.metadata else None,
    )
    domain = _app_domain()

    try:
        session = stripe_service.create_checkout_session(
            price_id=price_id,
            metadata=metadata,
            locale=body.resolved_locale(),
            success_url=f"{domain}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{domain}/cancel",
        )
    except StripeServiceError as e:
        logger.error("Error creating checkout session: %s", e)
        raise billing_error_from_stripe(
            e, ErrorCode.CHECKOUT_FAILED, not_found_code=ErrorCode.CHECKOUT_FAILED
        ) from e

    return CheckoutSessionResponse(url=session["checkout_url"])
