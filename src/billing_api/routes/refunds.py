"""Refund endpoints.

Provides:
- POST /refund: refund the first charge of a checkout session (full or partial)
- GET /refund: list every refund issued for a checkout session
"""

from fastapi import APIRouter, Depends, Query

from billing.models.errors import ErrorCode, ErrorResponse
from billing.services.refund_service import RefundService
from billing.services.stripe_service import StripeServiceError
from billing.utils.logging import get_logger
from billing_api.dependencies import get_refund_service
from billing_api.exceptions import billing_error_from_stripe
from billing_api.models.refunds import RefundHistoryResponse, RefundRequest, RefundResponse

logger = get_logger(__name__)

router = APIRouter(tags=["refunds"])

ERROR_RESPONSES = {
    400: {
        "description": "Missing session ID, unknown session, no charge, or Stripe rejection",
        "model": ErrorResponse,
    },
    503: {"description": "Stripe unreachable", "model": ErrorResponse},
}


@router.post(
    "/refund",
    summary="Refund a checkout session",
    description="""
Refund the payment made through a checkout session.

**Notes:**
- Omit `amount` for a full refund
- `amount` is in major units and converted to minor units (12.50 -> 1250)
- `reason` must be one of `duplicate`, `fraudulent`, `requested_by_customer`
""",
    response_model=RefundResponse,
    responses=ERROR_RESPONSES,
)
def create_refund(
    body: RefundRequest,
    refunds: RefundService = Depends(get_refund_service),
) -> RefundResponse:
    """Issue a refund for a checkout session."""
    try:
        refund = refunds.issue_refund(
            body.session_id,
            amount=body.amount,
            reason=body.reason.value if body.reason else None,
        )
    except StripeServiceError as e:
        logger.error("Error creating refund for session %s: %s", body.session_id, e)
        raise billing_error_from_stripe(e, ErrorCode.REFUND_FAILED) from e

    return RefundResponse(success=True, refund=refund)


@router.get(
    "/refund",
    summary="List refunds for a checkout session",
    response_model=RefundHistoryResponse,
    responses=ERROR_RESPONSES,
)
def list_refunds(
    session_id: str = Query(..., min_length=1, description="Checkout session ID"),
    refunds: RefundService = Depends(get_refund_service),
) -> RefundHistoryResponse:
    """List refunds across every charge of a checkout session."""
    try:
        history = refunds.list_refunds(session_id)
    except StripeServiceError as e:
        logger.error("Error retrieving refunds for session %s: %s", session_id, e)
        raise billing_error_from_stripe(e) from e

    return RefundHistoryResponse(
        session_id=history.session_id,
        payment_status=history.payment_status,
        refunds=history.refunds,
    )
