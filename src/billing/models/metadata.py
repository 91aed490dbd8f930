"""Metadata record carried through the payment lifecycle.

The record is rooted on the PaymentIntent (set at checkout) and copied onto
the Charge the first time it is resolved. Refunds and disputes carry none of
their own; they resolve it through their charge.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

# Stripe metadata is a flat string -> string mapping.
MetadataRecord = dict[str, str]

USER_ID_KEY = "UserId"
CREDIT_GRANTED_KEY = "CreditGranted"
PRODUCT_KEY = "product"

PRODUCT_NAME = "GlowUp Premium"


class MetadataSource(str, Enum):
    """Where a resolved metadata record was found."""

    SUBJECT = "subject"
    CHARGE = "charge"
    PAYMENT_INTENT = "payment_intent"
    NONE = "none"


@dataclass
class MetadataResolution:
    """Outcome of resolving metadata for a charge, refund or dispute."""

    metadata: MetadataRecord = field(default_factory=dict)
    source: MetadataSource = MetadataSource.NONE
    charge_id: str | None = None
    payment_intent_id: str | None = None
    written_back: bool = False

    @property
    def user_id(self) -> str | None:
        return self.metadata.get(USER_ID_KEY)

    @property
    def credit_granted(self) -> str | None:
        return self.metadata.get(CREDIT_GRANTED_KEY)


def as_metadata(value: Mapping | None) -> MetadataRecord:
    """Normalize a Stripe metadata value (None, StripeObject, dict) to a plain dict.

    Anything that is not a mapping counts as no metadata.
    """
    if not value or not isinstance(value, Mapping):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def build_payment_metadata(
    user_id: str | None = None,
    credit_granted: int | None = None,
) -> MetadataRecord:
    """Build the record attached to a checkout session and its payment intent.

    Client field names are remapped to the capitalized keys the webhook
    pipeline reads back.

    Args:
        user_id: Application user identifier
        credit_granted: Number of credits the purchase grants

    Returns:
        Metadata record with the product name and any supplied fields.
    """
    metadata: MetadataRecord = {PRODUCT_KEY: PRODUCT_NAME}
    if user_id:
        metadata[USER_ID_KEY] = user_id
    if credit_granted is not None:
        metadata[CREDIT_GRANTED_KEY] = str(credit_granted)
    return metadata
