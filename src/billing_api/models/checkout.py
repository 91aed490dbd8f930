"""API models for checkout session creation.

Client-side state (user id, credits, locale) arrives from browser storage and
is untrusted; it is validated here before it is written into Stripe metadata.
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LOCALE = "en"

# "auto", "fr", "pt-BR", "es-419"
LOCALE_PATTERN = r"^(auto|[a-z]{2}(-([A-Z]{2}|[0-9]{3}))?)$"

# Stripe caps metadata values at 500 characters
MAX_METADATA_VALUE_LENGTH = 500

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


class CheckoutMetadata(BaseModel):
    """Application metadata supplied by the client for a purchase."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str | None = Field(
        default=None,
        alias="userId",
        min_length=1,
        max_length=MAX_METADATA_VALUE_LENGTH,
        description="Application user identifier, stored as metadata UserId",
        examples=["user_8f2c1a"],
    )
    credit_granted: int | None = Field(
        default=None,
        alias="creditGranted",
        ge=0,
        description="Credits granted by the purchase, stored as metadata CreditGranted",
        examples=[5],
    )
    locale: str | None = Field(
        default=None,
        pattern=LOCALE_PATTERN,
        description="Checkout page locale",
        examples=["en", "pt-BR"],
    )

    @field_validator("user_id")
    @classmethod
    def _reject_control_characters(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("userId must not be blank")
        if _CONTROL_CHARS.search(value):
            raise ValueError("userId must not contain control characters")
        return value

    @field_validator("credit_granted", mode="before")
    @classmethod
    def _reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("creditGranted must be a non-negative integer")
        return value


class CheckoutSessionRequest(BaseModel):
    """Request to create a hosted checkout session."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "priceId": "price_1PxYZ",
                    "metadata": {"userId": "user_8f2c1a", "creditGranted": 5, "locale": "en"},
                },
                {},
            ]
        },
    )

    price_id: str | None = Field(
        default=None,
        alias="priceId",
        min_length=1,
        description="Stripe Price ID; falls back to STRIPE_PRICE_ID, then inline pricing",
    )
    metadata: CheckoutMetadata | None = None
    locale: str | None = Field(default=None, pattern=LOCALE_PATTERN)

    def resolved_locale(self) -> str:
        """Body locale, else metadata locale, else the default."""
        if self.locale:
            return self.locale
        if self.metadata and self.metadata.locale:
            return self.metadata.locale
        return DEFAULT_LOCALE


class CheckoutSessionResponse(BaseModel):
    """Hosted checkout page the client should redirect to."""

    url: str = Field(..., examples=["https://checkout.stripe.com/c/pay/cs_test_123"])
