"""Unit tests for billing models: metadata records, event envelopes, errors."""

import pytest
from pydantic import ValidationError

from billing.models.errors import BillingError, ErrorCode, ErrorResponse, is_stripe_error_retryable
from billing.models.metadata import MetadataResolution, as_metadata, build_payment_metadata
from billing.models.refund import RefundSummary
from billing.models.webhook import WebhookEvent
from billing_api.models.checkout import CheckoutSessionRequest


class TestBuildPaymentMetadata:
    def test_product_only(self):
        assert build_payment_metadata() == {"product": "GlowUp Premium"}

    def test_user_and_credits(self):
        assert build_payment_metadata(user_id="u1", credit_granted=5) == {
            "product": "GlowUp Premium",
            "UserId": "u1",
            "CreditGranted": "5",
        }

    def test_zero_credits_kept(self):
        assert build_payment_metadata(credit_granted=0)["CreditGranted"] == "0"


class TestAsMetadata:
    @pytest.mark.parametrize("value", [None, {}])
    def test_empty(self, value):
        assert as_metadata(value) == {}

    @pytest.mark.parametrize("value", ["oops", ["UserId", "u1"], 42])
    def test_non_mapping_is_empty(self, value):
        assert as_metadata(value) == {}

    def test_values_stringified(self):
        assert as_metadata({"CreditGranted": 5}) == {"CreditGranted": "5"}

    def test_resolution_accessors(self):
        resolution = MetadataResolution(metadata={"UserId": "u1", "CreditGranted": "5"})

        assert resolution.user_id == "u1"
        assert resolution.credit_granted == "5"
        assert MetadataResolution().user_id is None


class TestWebhookEvent:
    def test_subject_accessors(self):
        event = WebhookEvent.model_validate(
            {"id": "evt_1", "type": "refund.created", "data": {"object": {"id": "re_1"}}}
        )

        assert event.subject == {"id": "re_1"}
        assert event.subject_id == "re_1"
        assert event.created is None

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            WebhookEvent.model_validate({"id": "", "type": "x", "data": {"object": {}}})


class TestErrors:
    def test_billing_error_defaults(self):
        error = BillingError(ErrorCode.CHARGE_NOT_FOUND)

        assert error.message == "No charges found for this payment"
        body = error.to_response().model_dump(mode="json")["error"]
        assert body["code"] == "ERR_004"
        assert body["recovery"]

    def test_message_override(self):
        response = ErrorResponse.from_code(ErrorCode.STRIPE_API_ERROR, message="declined")

        assert response.error.message == "declined"

    @pytest.mark.parametrize(
        "code, expected",
        [("rate_limit", True), ("lock_timeout", True), ("card_declined", False), (None, False)],
    )
    def test_retryable_codes(self, code, expected):
        assert is_stripe_error_retryable(code) is expected


class TestRefundSummary:
    def test_from_stripe(self):
        summary = RefundSummary.from_stripe(
            {"id": "re_1", "amount": 500, "currency": "usd", "created": 1760000000}
        )

        assert summary.status is None
        assert summary.reason is None


class TestCheckoutSessionRequest:
    def test_accepts_field_names(self):
        request = CheckoutSessionRequest.model_validate(
            {"price_id": "price_1", "metadata": {"user_id": "u1", "credit_granted": 3}}
        )

        assert request.price_id == "price_1"
        assert request.metadata.user_id == "u1"

    def test_resolved_locale_default(self):
        assert CheckoutSessionRequest().resolved_locale() == "en"

    @pytest.mark.parametrize("locale", ["auto", "fr", "pt-BR", "es-419"])
    def test_valid_locales(self, locale):
        assert CheckoutSessionRequest(locale=locale).resolved_locale() == locale
