"""API models for refund endpoints."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from billing.models.refund import RefundReason, RefundSummary
from billing.services.refund_service import to_minor_units


class RefundRequest(BaseModel):
    """Request to refund a checkout session.

    Omitting ``amount`` refunds the full charge.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"sessionId": "cs_test_abc123"},
                {"sessionId": "cs_test_abc123", "amount": 12.5, "reason": "requested_by_customer"},
            ]
        },
    )

    session_id: str = Field(
        ...,
        alias="sessionId",
        min_length=1,
        description="Checkout session ID returned to the success page",
    )
    amount: float | None = Field(
        default=None,
        gt=0,
        allow_inf_nan=False,
        description="Partial refund amount in major currency units (12.50 = $12.50)",
    )
    reason: RefundReason | None = None

    @field_validator("amount")
    @classmethod
    def _at_least_one_minor_unit(cls, value: float | None) -> float | None:
        if value is not None and to_minor_units(value) < 1:
            raise ValueError("amount must be at least 0.01")
        return value


class RefundResponse(BaseModel):
    """Result of a refund request."""

    success: bool = True
    refund: RefundSummary


class RefundHistoryResponse(BaseModel):
    """Every refund issued for a checkout session."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    payment_status: str | None = Field(default=None, alias="paymentStatus")
    refunds: list[RefundSummary] = Field(default_factory=list)
