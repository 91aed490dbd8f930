"""Pytest configuration and fixtures for the GlowUp billing backend tests.

This module provides reusable fixtures for testing:
- Environment setup so no test reaches AWS or Stripe
- An in-memory ProviderStore standing in for Stripe's records
- Stripe-Signature header generation with the test webhook secret
"""

import hashlib
import hmac
import json
import os
import time
from typing import Any, Callable, Generator

import pytest

from billing.services.stripe_service import NotFoundError, StripeService, TransientRemoteError

# === Environment Setup ===

# Set before any service reads configuration
TEST_WEBHOOK_SECRET = "whsec_test_secret_for_testing"
TEST_SECRET_KEY = "sk_test_abc123xyz"

os.environ["STRIPE_WEBHOOK_SECRET"] = TEST_WEBHOOK_SECRET
os.environ["STRIPE_SECRET_KEY"] = TEST_SECRET_KEY
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.pop("STRIPE_PRICE_ID", None)
os.environ.pop("APP_DOMAIN", None)


@pytest.fixture(autouse=True)
def reset_service_singletons() -> Generator[None, None, None]:
    """Reset cached services before and after each test."""
    from billing_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()


# === Fake Stripe records ===


class FakeProviderStore:
    """In-memory stand-in for Stripe's payment intents and charges.

    Records every remote call so tests can assert on reads and writes.
    Operation names listed in ``failing`` raise TransientRemoteError.
    """

    def __init__(self) -> None:
        self.payment_intents: dict[str, dict[str, Any]] = {}
        self.charges: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.writes: list[tuple[str, dict[str, str]]] = []
        self.failing: set[str] = set()

    def add_payment_intent(self, payment_intent_id: str, metadata: dict | None = None) -> dict:
        intent = {
            "id": payment_intent_id,
            "object": "payment_intent",
            "metadata": dict(metadata or {}),
        }
        self.payment_intents[payment_intent_id] = intent
        return intent

    def add_charge(
        self,
        charge_id: str,
        payment_intent_id: str | None,
        metadata: dict | None = None,
    ) -> dict:
        charge = {
            "id": charge_id,
            "object": "charge",
            "payment_intent": payment_intent_id,
            "metadata": dict(metadata or {}),
        }
        self.charges[charge_id] = charge
        return charge

    def _record(self, operation: str, object_id: str) -> None:
        self.calls.append((operation, object_id))
        if operation in self.failing:
            raise TransientRemoteError(f"Failed to {operation}: timed out")

    def retrieve_payment_intent(self, payment_intent_id: str) -> dict:
        self._record("retrieve_payment_intent", payment_intent_id)
        if payment_intent_id not in self.payment_intents:
            raise NotFoundError(f"No such payment_intent: {payment_intent_id}", "resource_missing")
        return json.loads(json.dumps(self.payment_intents[payment_intent_id]))

    def retrieve_charge(self, charge_id: str) -> dict:
        self._record("retrieve_charge", charge_id)
        if charge_id not in self.charges:
            raise NotFoundError(f"No such charge: {charge_id}", "resource_missing")
        return json.loads(json.dumps(self.charges[charge_id]))

    def list_charges(self, payment_intent_id: str, *, limit: int | None = None) -> list[dict]:
        self._record("list_charges", payment_intent_id)
        charges = [
            json.loads(json.dumps(c))
            for c in self.charges.values()
            if c["payment_intent"] == payment_intent_id
        ]
        return charges[:limit] if limit is not None else charges

    def update_charge_metadata(self, charge_id: str, metadata: dict[str, str]) -> dict:
        self._record("update_charge_metadata", charge_id)
        self.writes.append((charge_id, dict(metadata)))
        self.charges[charge_id]["metadata"].update(metadata)
        return self.charges[charge_id]


@pytest.fixture
def fake_store() -> FakeProviderStore:
    """Empty in-memory Stripe record store."""
    return FakeProviderStore()


# === Webhook signing ===


def create_stripe_signature(
    payload: bytes,
    secret: str = TEST_WEBHOOK_SECRET,
    timestamp: int | None = None,
) -> str:
    """Create a Stripe webhook signature.

    Stripe signatures use HMAC-SHA256 with format: t={timestamp},v1={signature}
    """
    ts = str(timestamp if timestamp is not None else int(time.time()))
    signed_payload = f"{ts}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={ts},v1={signature}"


@pytest.fixture
def sign() -> Callable[..., str]:
    """Return a function that signs a payload with the test webhook secret."""
    return create_stripe_signature


@pytest.fixture
def make_event() -> Callable[..., dict[str, Any]]:
    """Return a factory for Stripe event envelopes."""

    def _make_event(
        event_type: str,
        data_object: dict[str, Any],
        event_id: str = "evt_test_123",
    ) -> dict[str, Any]:
        return {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": data_object},
        }

    return _make_event


@pytest.fixture
def stripe_service() -> StripeService:
    """StripeService configured from the test environment (no AWS, no network)."""
    return StripeService(environment="test")
