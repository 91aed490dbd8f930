"""Refund issuance and history for checkout sessions.

A checkout session is resolved to its payment intent and charges before any
refund call is made:

    session -> payment intent -> first charge -> refund
    session -> payment intent -> every charge -> every refund
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from billing.models.errors import BillingError, ErrorCode
from billing.models.refund import RefundSummary
from billing.utils.logging import log_payment_operation

from .stripe_service import NotFoundError, StripeService, object_id

logger = logging.getLogger(__name__)

MINOR_UNITS_PER_MAJOR = 100


def to_minor_units(amount: float | Decimal) -> int:
    """Convert a major-unit amount (12.50) to minor units (1250), rounding half up.

    The value goes through its decimal string form so binary float error
    never shifts the result by a cent.
    """
    cents = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _checked_minor_units(amount: float | Decimal) -> int:
    try:
        minor = to_minor_units(amount)
    except InvalidOperation:
        minor = 0
    if minor < 1:
        raise BillingError(
            code=ErrorCode.VALIDATION_FAILED,
            message="Refund amount must be at least 0.01",
            details={"amount": str(amount)},
        )
    return minor


@dataclass
class RefundHistory:
    """All refunds for a checkout session."""

    session_id: str
    payment_status: str | None
    refunds: list[RefundSummary] = field(default_factory=list)


class RefundService:
    """Resolves checkout sessions to charges and issues or lists refunds."""

    def __init__(self, stripe_service: StripeService) -> None:
        self._stripe = stripe_service

    def _resolve_payment_intent(self, session_id: str) -> tuple[Any, str]:
        """Return (session, payment_intent_id) for a checkout session.

        Raises:
            BillingError: If the session does not exist or has no payment intent.
        """
        try:
            session = self._stripe.retrieve_checkout_session(
                session_id, expand=["payment_intent"]
            )
        except NotFoundError as e:
            raise BillingError(
                code=ErrorCode.SESSION_NOT_FOUND,
                details={"session_id": session_id},
            ) from e

        payment_intent_id = object_id(session.get("payment_intent"))
        if not payment_intent_id:
            raise BillingError(
                code=ErrorCode.PAYMENT_INTENT_NOT_FOUND,
                details={"session_id": session_id},
            )
        return session, payment_intent_id

    def issue_refund(
        self,
        session_id: str,
        *,
        amount: float | Decimal | None = None,
        reason: str | None = None,
    ) -> RefundSummary:
        """Refund the first charge of a checkout session.

        Args:
            session_id: Stripe checkout session ID (cs_xxx)
            amount: Amount to refund in major units. If None, full refund.
            reason: Stripe refund reason

        Returns:
            Summary of the created refund.

        Raises:
            BillingError: If the amount is below one minor unit, or the session,
                payment intent or charge cannot be found.
            StripeServiceError: If Stripe rejects or fails the refund.
        """
        amount_minor = _checked_minor_units(amount) if amount is not None else None
        _, payment_intent_id = self._resolve_payment_intent(session_id)

        charges = self._stripe.list_charges(payment_intent_id, limit=1)
        if not charges:
            raise BillingError(
                code=ErrorCode.CHARGE_NOT_FOUND,
                details={"payment_intent_id": payment_intent_id},
            )
        charge_id = charges[0]["id"]

        log_payment_operation(
            logger,
            "issue_refund",
            session_id=session_id,
            payment_intent_id=payment_intent_id,
            charge_id=charge_id,
            amount=amount_minor,
        )

        refund = self._stripe.create_refund(
            charge_id=charge_id,
            amount=amount_minor,
            reason=reason,
        )
        return RefundSummary.from_stripe(refund)

    def list_refunds(self, session_id: str) -> RefundHistory:
        """List every refund across every charge of a checkout session."""
        session, payment_intent_id = self._resolve_payment_intent(session_id)

        refunds: list[RefundSummary] = []
        for charge in self._stripe.list_charges(payment_intent_id):
            for refund in self._stripe.list_refunds(charge["id"]):
                refunds.append(RefundSummary.from_stripe(refund))

        return RefundHistory(
            session_id=session_id,
            payment_status=session.get("payment_status"),
            refunds=refunds,
        )
