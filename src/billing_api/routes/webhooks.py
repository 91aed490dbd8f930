"""Webhook endpoint for Stripe event notifications.

This endpoint does NOT require authentication headers of its own; it
receives payloads signed with the Stripe webhook secret.
"""

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from billing.models.errors import BillingError, ErrorCode, ErrorResponse
from billing.models.webhook import WebhookAcknowledgement
from billing.services.stripe_service import (
    AuthenticationError,
    MalformedEventError,
    StripeServiceError,
)
from billing.services.webhook_handler import WebhookHandler
from billing.utils.logging import get_logger
from billing_api.dependencies import get_webhook_handler

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

SIGNATURE_HEADER = "Stripe-Signature"


@router.post(
    "/webhook",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events.

- `charge.succeeded`, `charge.refunded`, `refund.created`, `charge.dispute.created`:
  resolve `UserId` / `CreditGranted` through the payment intent and copy them onto the charge
- `payment_intent.created`: copy the intent's metadata onto an existing charge
- checkout session and other payment intent events: logged
- any other type: acknowledged without action

**No authentication required** - signature is verified using the Stripe webhook secret.

Every authenticated event is acknowledged with 200, even when metadata
resolution fails, so Stripe does not redeliver for problems a retry cannot fix.
""",
    response_model=WebhookAcknowledgement,
    responses={
        200: {"description": "Event received (processed, skipped or logged as error)"},
        400: {"description": "Invalid signature or malformed body", "model": ErrorResponse},
        500: {"description": "Webhook secret unavailable", "model": ErrorResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookAcknowledgement:
    """Handle incoming Stripe webhook events."""
    # Raw bytes: the signature covers the body exactly as sent
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        return await run_in_threadpool(handler.handle, payload, signature)
    except AuthenticationError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise BillingError(
            code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            details={"message": str(e)},
        ) from e
    except MalformedEventError as e:
        logger.warning("Malformed webhook event: %s", e)
        raise BillingError(
            code=ErrorCode.MALFORMED_WEBHOOK_EVENT,
            details={"message": str(e)},
        ) from e
    except StripeServiceError as e:
        logger.error("Webhook could not be verified: %s", e)
        raise BillingError(code=ErrorCode.WEBHOOK_NOT_CONFIGURED) from e
