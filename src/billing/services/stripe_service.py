"""Stripe service for checkout sessions, webhook verification and refunds.

Provides integration with Stripe using the v8+ StripeClient pattern. Every
call uses a bounded HTTP timeout, and Stripe SDK errors are translated into
the service exceptions below so callers never handle ``stripe.StripeError``
directly.

Also implements the ProviderStore lookups used by the metadata resolver.
"""

import json
import logging
import os
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from billing.models.errors import is_stripe_error_retryable
from billing.models.metadata import MetadataRecord
from billing.utils.logging import log_payment_operation

from .ssm_service import SSMService, SSMServiceError, get_ssm_service

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_NETWORK_RETRIES = 2
DEFAULT_WEBHOOK_TOLERANCE_SECONDS = 300

# Used when neither the request nor STRIPE_PRICE_ID names a price
INLINE_PRICE_DATA: dict[str, Any] = {
    "currency": "usd",
    "unit_amount": 7900,
    "product_data": {
        "name": "GlowUp Premium Plan",
        "description": "Advanced AI-powered skincare analysis and recommendations",
    },
}


class StripeServiceError(Exception):
    """A Stripe call failed; ``stripe_error_code`` holds Stripe's code when it sent one."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


class AuthenticationError(StripeServiceError):
    """Webhook signature header is missing or does not match the payload."""


class MalformedEventError(StripeServiceError):
    """Authenticated webhook body is not a valid event envelope."""


class NotFoundError(StripeServiceError):
    """A referenced Stripe object does not exist."""


class TransientRemoteError(StripeServiceError):
    """Stripe could not be reached or asked us to back off; safe to retry."""


def _translate_error(error: stripe.StripeError, action: str) -> StripeServiceError:
    """Map a Stripe SDK error onto the service exception hierarchy."""
    code = getattr(error, "code", None)
    message = f"Failed to {action}: {error.user_message or error}"

    if isinstance(error, (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)):
        return TransientRemoteError(message, stripe_error_code=code)
    if is_stripe_error_retryable(code):
        return TransientRemoteError(message, stripe_error_code=code)
    if isinstance(error, stripe.InvalidRequestError) and code == "resource_missing":
        return NotFoundError(message, stripe_error_code=code)
    return StripeServiceError(message, stripe_error_code=code)


def object_id(ref: Any) -> str | None:
    """Return the ID of a Stripe reference that may be a string or an expanded object."""
    if not ref:
        return None
    if isinstance(ref, str):
        return ref
    return ref.get("id")


class StripeService:
    """Thin wrapper over StripeClient for the billing endpoints and webhook pipeline.

    Credentials are resolved on first use, so constructing the service never
    touches the network. Also serves as the ProviderStore the metadata
    resolver reads from and writes back to.

    Usage:
        session = get_stripe_service().create_checkout_session(
            price_id=None,
            metadata=build_payment_metadata(user_id="u1", credit_granted=5),
            locale="en",
            success_url=f"{domain}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{domain}/cancel",
        )
    """

    def __init__(
        self,
        environment: str | None = None,
        *,
        ssm: SSMService | None = None,
        timeout: float | None = None,
        max_network_retries: int | None = None,
        webhook_tolerance: int | None = None,
    ) -> None:
        """
        Args:
            environment: Secret namespace (dev, prod); ENVIRONMENT when omitted.
            ssm: Secret source. Defaults to the shared SSMService.
            timeout: Per-request HTTP timeout in seconds.
            max_network_retries: Retries the SDK performs on connection failures.
            webhook_tolerance: Maximum age in seconds of a webhook signature timestamp.
        """
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._ssm = ssm or get_ssm_service()
        self._timeout = timeout if timeout is not None else float(
            os.environ.get("STRIPE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
        )
        self._max_network_retries = (
            max_network_retries
            if max_network_retries is not None
            else int(os.environ.get("STRIPE_MAX_NETWORK_RETRIES", DEFAULT_MAX_NETWORK_RETRIES))
        )
        self._webhook_tolerance = (
            webhook_tolerance
            if webhook_tolerance is not None
            else int(os.environ.get("WEBHOOK_TOLERANCE_SECONDS", DEFAULT_WEBHOOK_TOLERANCE_SECONDS))
        )
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            StripeServiceError: If credentials cannot be retrieved.
        """
        if self._client is None:
            try:
                secret_key = self._ssm.get_secret(
                    "stripe/secret_key", env_var="STRIPE_SECRET_KEY"
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to initialize Stripe client: {e}") from e
            self._client = StripeClient(
                secret_key,
                http_client=stripe.RequestsClient(timeout=self._timeout),
                max_network_retries=self._max_network_retries,
            )
            logger.info("Stripe client initialized for environment: %s", self._environment)
        return self._client

    def _get_webhook_secret(self) -> str:
        """Get the webhook signing secret.

        Raises:
            StripeServiceError: If secret cannot be retrieved.
        """
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._ssm.get_secret(
                    "stripe/webhook_secret", env_var="STRIPE_WEBHOOK_SECRET"
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to get webhook secret: {e}") from e
        return self._webhook_secret

    # === Checkout ===

    def create_checkout_session(
        self,
        *,
        price_id: str | None,
        metadata: MetadataRecord,
        locale: str,
        success_url: str,
        cancel_url: str,
    ) -> dict:
        """Create a Stripe Checkout session for a single purchase.

        The same metadata record is attached to the session and to its
        payment intent so the webhook pipeline finds it on either object.

        Args:
            price_id: Stripe Price ID. If None, inline price data is used.
            metadata: Metadata record for the session and payment intent.
            locale: Checkout page locale.
            success_url: URL to redirect on success (supports {CHECKOUT_SESSION_ID}).
            cancel_url: URL to redirect on cancel.

        Returns:
            Dict with session_id, checkout_url and payment_intent_id.

        Raises:
            StripeServiceError: If session creation fails.
        """
        client = self._get_client()

        if price_id:
            line_item: dict[str, Any] = {"price": price_id, "quantity": 1}
        else:
            line_item = {"price_data": INLINE_PRICE_DATA, "quantity": 1}

        try:
            session = client.checkout.sessions.create(
                params={
                    "mode": "payment",
                    "line_items": [line_item],
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "allow_promotion_codes": True,
                    "billing_address_collection": "auto",
                    "metadata": dict(metadata),
                    "payment_intent_data": {"metadata": dict(metadata)},
                    "locale": locale,
                },
            )
        except stripe.StripeError as e:
            error = _translate_error(e, "create checkout session")
            log_payment_operation(logger, "create_checkout_session", error=str(error))
            raise error from e

        log_payment_operation(
            logger,
            "create_checkout_session",
            session_id=session.id,
            price_id=price_id or "inline",
        )
        return {
            "session_id": session.id,
            "checkout_url": session.url,
            "payment_intent_id": object_id(session.get("payment_intent")),
        }

    def retrieve_checkout_session(
        self, session_id: str, *, expand: list[str] | None = None
    ) -> Any:
        """Retrieve a checkout session, optionally expanding related objects."""
        params = {"expand": expand} if expand else None
        try:
            return self._get_client().checkout.sessions.retrieve(session_id, params=params)
        except stripe.StripeError as e:
            raise _translate_error(e, f"retrieve checkout session {session_id}") from e

    # === Webhooks ===

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> dict:
        """Verify a webhook signature and parse the event body.

        The signature is checked over the raw bytes before any parsing.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed event dictionary.

        Raises:
            AuthenticationError: If the header is missing or the signature is invalid.
            MalformedEventError: If the verified body is not JSON.
        """
        if not signature:
            logger.warning("Webhook request missing Stripe-Signature header")
            raise AuthenticationError("Missing Stripe-Signature header")

        webhook_secret = self._get_webhook_secret()

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AuthenticationError("Webhook payload is not UTF-8 encoded") from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, webhook_secret, tolerance=self._webhook_tolerance
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise AuthenticationError("Invalid webhook signature") from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise MalformedEventError("Webhook payload is not valid JSON") from e
        if not isinstance(event, dict):
            raise MalformedEventError("Webhook payload is not a JSON object")

        logger.info("Webhook signature verified for event: %s", event.get("id"))
        return event

    # === ProviderStore lookups ===

    def retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        """Retrieve a PaymentIntent by ID."""
        try:
            return self._get_client().payment_intents.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            raise _translate_error(e, f"retrieve payment intent {payment_intent_id}") from e

    def retrieve_charge(self, charge_id: str) -> Any:
        """Retrieve a Charge by ID."""
        try:
            return self._get_client().charges.retrieve(charge_id)
        except stripe.StripeError as e:
            raise _translate_error(e, f"retrieve charge {charge_id}") from e

    def list_charges(self, payment_intent_id: str, *, limit: int | None = None) -> list:
        """List charges for a PaymentIntent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx).
            limit: Return at most this many charges. If None, every page is read.

        Returns:
            List of Stripe charge objects, newest first.
        """
        params: dict[str, Any] = {"payment_intent": payment_intent_id}
        if limit is not None:
            params["limit"] = limit
        try:
            charges = self._get_client().charges.list(params=params)
            if limit is not None:
                return list(charges.data)
            return list(charges.auto_paging_iter())
        except stripe.StripeError as e:
            raise _translate_error(e, f"list charges for {payment_intent_id}") from e

    def update_charge_metadata(self, charge_id: str, metadata: MetadataRecord) -> Any:
        """Set metadata keys on a Charge."""
        try:
            charge = self._get_client().charges.update(
                charge_id, params={"metadata": dict(metadata)}
            )
        except stripe.StripeError as e:
            raise _translate_error(e, f"update metadata on charge {charge_id}") from e

        logger.info("Charge metadata updated for charge: %s", charge_id)
        return charge

    # === Refunds ===

    def create_refund(
        self,
        *,
        charge_id: str,
        amount: int | None = None,
        reason: str | None = None,
    ) -> Any:
        """Create a refund for a charge.

        Args:
            charge_id: Stripe Charge ID (ch_xxx).
            amount: Refund amount in minor currency units. If None, full refund.
            reason: Stripe refund reason (duplicate, fraudulent, requested_by_customer).

        Returns:
            The Stripe refund object.

        Raises:
            StripeServiceError: If refund creation fails.
        """
        client = self._get_client()

        params: dict[str, Any] = {"charge": charge_id}
        if amount is not None:
            params["amount"] = amount
        if reason:
            params["reason"] = reason

        try:
            refund = client.refunds.create(params=params)
        except stripe.StripeError as e:
            error = _translate_error(e, "create refund")
            log_payment_operation(
                logger,
                "create_refund",
                charge_id=charge_id,
                amount=amount,
                error=str(error),
            )
            raise error from e

        log_payment_operation(
            logger,
            "create_refund",
            charge_id=charge_id,
            amount=refund.amount,
            status=refund.status,
            refund_id=refund.id,
        )
        return refund

    def list_refunds(self, charge_id: str) -> list:
        """List every refund issued against a charge."""
        try:
            refunds = self._get_client().refunds.list(params={"charge": charge_id})
            return list(refunds.auto_paging_iter())
        except stripe.StripeError as e:
            raise _translate_error(e, f"list refunds for charge {charge_id}") from e


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance (singleton pattern).

    Returns:
        StripeService: Shared service instance.
    """
    return StripeService()
