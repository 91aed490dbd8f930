"""Refund records returned by the refund endpoints."""

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field


class RefundReason(str, Enum):
    """Refund reasons accepted by Stripe."""

    DUPLICATE = "duplicate"
    FRAUDULENT = "fraudulent"
    REQUESTED_BY_CUSTOMER = "requested_by_customer"


class RefundSummary(BaseModel):
    """Client-facing view of a Stripe refund."""

    id: str = Field(..., description="Stripe refund ID", examples=["re_3ABC123DEF456"])
    amount: int = Field(..., description="Refunded amount in minor currency units")
    currency: str = Field(..., examples=["usd"])
    status: str | None = Field(default=None, examples=["succeeded", "pending"])
    reason: str | None = Field(default=None, examples=["requested_by_customer"])
    created: int = Field(..., description="Unix timestamp of refund creation")

    @classmethod
    def from_stripe(cls, refund: Mapping[str, Any]) -> "RefundSummary":
        """Build a summary from a Stripe refund object or dict."""
        return cls(
            id=refund["id"],
            amount=refund["amount"],
            currency=refund["currency"],
            status=refund.get("status"),
            reason=refund.get("reason"),
            created=refund["created"],
        )
