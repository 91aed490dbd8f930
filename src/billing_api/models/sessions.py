"""API models for checkout session verification."""

from pydantic import BaseModel, Field


class VerifySessionResponse(BaseModel):
    """Checkout session status shown on the success page."""

    id: str = Field(..., examples=["cs_test_abc123"])
    payment_status: str | None = Field(default=None, examples=["paid", "unpaid"])
    amount_total: int | None = Field(default=None, description="Total in minor currency units")
    currency: str | None = Field(default=None, examples=["usd"])
    customer_email: str | None = None
