"""Stripe webhook event envelope and acknowledgement models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Stripe event types the ingestion pipeline acts on."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    CHECKOUT_SESSION_EXPIRED = "checkout.session.expired"
    CHECKOUT_SESSION_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
    CHECKOUT_SESSION_ASYNC_FAILED = "checkout.session.async_payment_failed"
    PAYMENT_INTENT_CREATED = "payment_intent.created"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    CHARGE_SUCCEEDED = "charge.succeeded"
    CHARGE_REFUNDED = "charge.refunded"
    REFUND_CREATED = "refund.created"
    DISPUTE_CREATED = "charge.dispute.created"


class ProcessingResult(str, Enum):
    """Outcome of processing an authenticated event."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class EventData(BaseModel):
    """The ``data`` member of an event; ``object`` is the event's subject."""

    model_config = ConfigDict(extra="ignore")

    object: dict[str, Any]


class WebhookEvent(BaseModel):
    """Parsed Stripe event envelope.

    Only the fields the pipeline reads are modelled; everything else in the
    provider payload is ignored so new provider fields never break parsing.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(
        ...,
        min_length=1,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    type: str = Field(
        ...,
        min_length=1,
        description="Stripe event type",
        examples=["charge.succeeded", "refund.created"],
    )
    created: int | None = Field(
        default=None,
        description="Unix timestamp the event was created at",
    )
    data: EventData

    @property
    def subject(self) -> dict[str, Any]:
        """The object the event is about (session, intent, charge, refund, dispute)."""
        return self.data.object

    @property
    def subject_id(self) -> str | None:
        return self.data.object.get("id")


class WebhookAcknowledgement(BaseModel):
    """Acknowledgement returned for every authenticated event."""

    received: bool = True
    event_id: str | None = None
    event_type: str | None = None
    processing_result: ProcessingResult = ProcessingResult.SUCCESS
    message: str | None = None
