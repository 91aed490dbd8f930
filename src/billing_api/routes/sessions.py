"""Checkout session verification endpoint used by the success page."""

from fastapi import APIRouter, Depends, Query

from billing.models.errors import ErrorResponse
from billing.services.stripe_service import StripeService, StripeServiceError
from billing.utils.logging import get_logger
from billing_api.dependencies import get_stripe
from billing_api.exceptions import billing_error_from_stripe
from billing_api.models.sessions import VerifySessionResponse

logger = get_logger(__name__)

router = APIRouter(tags=["checkout"])


@router.get(
    "/verify-session",
    summary="Verify checkout session",
    response_model=VerifySessionResponse,
    responses={
        400: {"description": "Missing or unknown session ID", "model": ErrorResponse},
        503: {"description": "Stripe unreachable", "model": ErrorResponse},
    },
)
def verify_session(
    session_id: str = Query(..., min_length=1, description="Checkout session ID"),
    stripe_service: StripeService = Depends(get_stripe),
) -> VerifySessionResponse:
    """Return payment status and totals for a checkout session."""
    try:
        session = stripe_service.retrieve_checkout_session(session_id)
    except StripeServiceError as e:
        logger.error("Error retrieving session %s: %s", session_id, e)
        raise billing_error_from_stripe(e) from e

    return VerifySessionResponse(
        id=session["id"],
        payment_status=session.get("payment_status"),
        amount_total=session.get("amount_total"),
        currency=session.get("currency"),
        customer_email=session.get("customer_email"),
    )
