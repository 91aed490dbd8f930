"""Webhook handler for processing Stripe events.

Provides the event ingestion pipeline separate from HTTP routing concerns:

    received -> authenticated -> classified -> (resolved | no-op) -> acknowledged

Only authentication and envelope parsing failures escape ``handle``. Anything
that goes wrong after that is logged and the event is still acknowledged,
since a redelivery cannot fix a data problem.
"""

import logging
from typing import Callable

from pydantic import ValidationError

from billing.models.metadata import (
    CREDIT_GRANTED_KEY,
    USER_ID_KEY,
    MetadataResolution,
    as_metadata,
)
from billing.models.webhook import (
    EventType,
    ProcessingResult,
    WebhookAcknowledgement,
    WebhookEvent,
)
from billing.utils.logging import log_webhook_event

from .metadata_resolver import ProviderStore, propagate_intent_metadata, resolve_metadata
from .stripe_service import MalformedEventError, StripeService, StripeServiceError

logger = logging.getLogger(__name__)

EventProcessor = Callable[[WebhookEvent], ProcessingResult]


class WebhookHandler:
    """Handler for processing Stripe webhook events.

    Dispatches on event type through a fixed table; unknown types are logged
    and acknowledged as skipped. Safe to run more than once for the same
    event: charge metadata is only ever written when the charge has none.
    """

    def __init__(
        self,
        stripe_service: StripeService,
        store: ProviderStore | None = None,
    ) -> None:
        """Initialize webhook handler.

        Args:
            stripe_service: Verifies webhook signatures.
            store: Remote record store for metadata lookups. Defaults to stripe_service.
        """
        self._stripe = stripe_service
        self._store: ProviderStore = store if store is not None else stripe_service
        self._processors: dict[str, EventProcessor] = {
            EventType.CHECKOUT_SESSION_COMPLETED.value: self._log_subject_metadata,
            EventType.CHECKOUT_SESSION_EXPIRED.value: self._log_subject_metadata,
            EventType.CHECKOUT_SESSION_ASYNC_SUCCEEDED.value: self._log_subject_metadata,
            EventType.CHECKOUT_SESSION_ASYNC_FAILED.value: self._log_subject_metadata,
            EventType.PAYMENT_INTENT_CREATED.value: self._process_payment_intent_created,
            EventType.PAYMENT_INTENT_SUCCEEDED.value: self._log_subject_metadata,
            EventType.PAYMENT_INTENT_FAILED.value: self._log_subject_metadata,
            EventType.CHARGE_SUCCEEDED.value: self._process_charge_related,
            EventType.CHARGE_REFUNDED.value: self._process_charge_related,
            EventType.REFUND_CREATED.value: self._process_charge_related,
            EventType.DISPUTE_CREATED.value: self._process_charge_related,
        }

    @property
    def handled_event_types(self) -> frozenset[str]:
        return frozenset(self._processors)

    def handle(self, raw_body: bytes, signature_header: str | None) -> WebhookAcknowledgement:
        """Authenticate, classify and process a webhook delivery.

        Args:
            raw_body: Raw, unparsed request body
            signature_header: Stripe-Signature header value

        Returns:
            Acknowledgement for the event.

        Raises:
            AuthenticationError: Missing or invalid signature.
            MalformedEventError: Authenticated body is not an event envelope.
            StripeServiceError: Webhook secret could not be loaded.
        """
        payload = self._stripe.verify_webhook_signature(raw_body, signature_header)
        event = self.parse_event(payload)

        log_webhook_event(logger, event.type, event.id, object_id=event.subject_id, result="received")

        processor = self._processors.get(event.type)
        if processor is None:
            log_webhook_event(logger, event.type, event.id, result="skipped")
            return WebhookAcknowledgement(
                event_id=event.id,
                event_type=event.type,
                processing_result=ProcessingResult.SKIPPED,
                message=f"Event type '{event.type}' not handled",
            )

        try:
            result = processor(event)
        except StripeServiceError as e:
            return self._acknowledge_failure(event, str(e))
        except Exception as e:
            logger.exception("Unexpected error processing %s event %s", event.type, event.id)
            return self._acknowledge_failure(event, f"{type(e).__name__}: {e}")

        return WebhookAcknowledgement(
            event_id=event.id,
            event_type=event.type,
            processing_result=result,
        )

    def _acknowledge_failure(self, event: WebhookEvent, error: str) -> WebhookAcknowledgement:
        log_webhook_event(
            logger,
            event.type,
            event.id,
            object_id=event.subject_id,
            result="error",
            error=error,
        )
        return WebhookAcknowledgement(
            event_id=event.id,
            event_type=event.type,
            processing_result=ProcessingResult.ERROR,
            message=error,
        )

    @staticmethod
    def parse_event(payload: dict) -> WebhookEvent:
        """Parse a verified payload into the event envelope.

        Raises:
            MalformedEventError: If id, type or data.object is missing.
        """
        try:
            return WebhookEvent.model_validate(payload)
        except ValidationError as e:
            raise MalformedEventError(f"Invalid event envelope: {e.error_count()} error(s)") from e

    # === Event processors ===

    def _log_subject_metadata(self, event: WebhookEvent) -> ProcessingResult:
        """Log the metadata carried by a checkout session or payment intent."""
        metadata = as_metadata(event.subject.get("metadata"))
        log_webhook_event(
            logger,
            event.type,
            event.id,
            object_id=event.subject_id,
            user_id=metadata.get(USER_ID_KEY),
            credit_granted=metadata.get(CREDIT_GRANTED_KEY),
            result="success",
        )
        return ProcessingResult.SUCCESS

    def _process_payment_intent_created(self, event: WebhookEvent) -> ProcessingResult:
        """Copy a new intent's metadata onto its charge when one already exists."""
        resolution = propagate_intent_metadata(event.subject, self._store)
        self._log_resolution(event, resolution)
        return ProcessingResult.SUCCESS

    def _process_charge_related(self, event: WebhookEvent) -> ProcessingResult:
        """Resolve metadata for a charge, refund or dispute and write it back onto the charge."""
        resolution = resolve_metadata(event.subject, self._store)
        self._log_resolution(event, resolution)
        return ProcessingResult.SUCCESS

    def _log_resolution(self, event: WebhookEvent, resolution: MetadataResolution) -> None:
        log_webhook_event(
            logger,
            event.type,
            event.id,
            object_id=event.subject_id,
            user_id=resolution.user_id,
            credit_granted=resolution.credit_granted,
            result="success",
            metadata_source=resolution.source.value,
            charge_id=resolution.charge_id,
            written_back=resolution.written_back,
        )
