"""Metadata resolution for charges, refunds and disputes.

Metadata (``UserId``, ``CreditGranted``) is rooted on the PaymentIntent.
Charges get their own copy lazily; refunds and disputes only point at a
charge. ``resolve_metadata`` walks

    charge          -> payment intent
    refund/dispute  -> charge -> payment intent

and writes the intent's record back onto the charge the first time it is
found there, so later lookups stop at the charge.

The algorithm depends only on the ``ProviderStore`` protocol, so it can run
against StripeService in production and an in-memory fake in tests.
"""

import logging
from typing import Any, Mapping, Protocol

from billing.models.metadata import (
    MetadataRecord,
    MetadataResolution,
    MetadataSource,
    as_metadata,
)

from .stripe_service import object_id

logger = logging.getLogger(__name__)

CHARGE_OBJECT = "charge"
REFUND_OBJECT = "refund"
DISPUTE_OBJECT = "dispute"


class ProviderStore(Protocol):
    """Remote record store the resolver reads from and writes to."""

    def retrieve_payment_intent(self, payment_intent_id: str) -> Mapping[str, Any]: ...

    def retrieve_charge(self, charge_id: str) -> Mapping[str, Any]: ...

    def list_charges(
        self, payment_intent_id: str, *, limit: int | None = None
    ) -> list[Mapping[str, Any]]: ...

    def update_charge_metadata(
        self, charge_id: str, metadata: MetadataRecord
    ) -> Mapping[str, Any]: ...


def _subject_kind(subject: Mapping[str, Any]) -> str:
    kind = subject.get("object")
    if kind:
        return kind
    # Fall back on the ID prefix for payloads without an "object" field
    subject_id = subject.get("id") or ""
    if subject_id.startswith(("re_", "pyr_")):
        return REFUND_OBJECT
    if subject_id.startswith(("dp_", "du_")):
        return DISPUTE_OBJECT
    return CHARGE_OBJECT


def write_back_if_empty(
    store: ProviderStore,
    charge_id: str,
    metadata: MetadataRecord,
    *,
    known_charge: Mapping[str, Any] | None = None,
) -> tuple[MetadataRecord, bool]:
    """Copy ``metadata`` onto a charge only if the charge has none.

    The charge is re-read immediately before the update unless a fresh copy
    is supplied. Metadata never changes once set, so a concurrent writer can
    only have written the same record.

    Args:
        store: Remote record store
        charge_id: Charge to update
        metadata: Record to copy onto the charge
        known_charge: Charge object fetched during this resolution, if any

    Returns:
        Tuple of (metadata the charge now carries, whether a write happened)
    """
    if not metadata:
        return {}, False

    charge = known_charge if known_charge is not None else store.retrieve_charge(charge_id)
    existing = as_metadata(charge.get("metadata"))
    if existing:
        logger.debug("Charge %s already carries metadata, not overwriting", charge_id)
        return existing, False

    store.update_charge_metadata(charge_id, metadata)
    return dict(metadata), True


def resolve_metadata(subject: Mapping[str, Any], store: ProviderStore) -> MetadataResolution:
    """Resolve the metadata record for a charge, refund or dispute.

    Order of precedence:
    1. The subject's own non-empty metadata.
    2. The charge's metadata (the subject itself, or fetched by ID).
    3. The charge's payment intent metadata, which is then written back
       onto the charge if the charge is still empty.

    No metadata anywhere yields an empty record. Remote failures propagate
    as StripeServiceError subclasses.

    Args:
        subject: The event's data object
        store: Remote record store

    Returns:
        MetadataResolution describing the record and where it came from.
    """
    kind = _subject_kind(subject)
    own_metadata = as_metadata(subject.get("metadata"))

    if kind == CHARGE_OBJECT:
        charge_id = subject.get("id")
        if own_metadata:
            return MetadataResolution(
                metadata=own_metadata,
                source=MetadataSource.SUBJECT,
                charge_id=charge_id,
                payment_intent_id=object_id(subject.get("payment_intent")),
            )
        charge: Mapping[str, Any] = subject
        # Event payloads can be stale; re-read before any write
        fresh_charge: Mapping[str, Any] | None = None
    else:
        charge_ref = subject.get("charge")
        charge_id = object_id(charge_ref)
        if own_metadata:
            return MetadataResolution(
                metadata=own_metadata,
                source=MetadataSource.SUBJECT,
                charge_id=charge_id,
            )
        if not charge_id:
            logger.info("%s %s references no charge", kind, subject.get("id"))
            return MetadataResolution()
        if isinstance(charge_ref, Mapping):
            charge = charge_ref
            fresh_charge = None
        else:
            charge = store.retrieve_charge(charge_id)
            fresh_charge = charge

        charge_metadata = as_metadata(charge.get("metadata"))
        if charge_metadata:
            return MetadataResolution(
                metadata=charge_metadata,
                source=MetadataSource.CHARGE,
                charge_id=charge_id,
                payment_intent_id=object_id(charge.get("payment_intent")),
            )

    payment_intent_ref = charge.get("payment_intent")
    payment_intent_id = object_id(payment_intent_ref)
    if not payment_intent_id:
        logger.info("Charge %s has no payment intent; no metadata to resolve", charge_id)
        return MetadataResolution(charge_id=charge_id)

    if isinstance(payment_intent_ref, Mapping) and payment_intent_ref.get("metadata"):
        intent_metadata = as_metadata(payment_intent_ref.get("metadata"))
    else:
        intent = store.retrieve_payment_intent(payment_intent_id)
        intent_metadata = as_metadata(intent.get("metadata"))

    if not intent_metadata:
        return MetadataResolution(charge_id=charge_id, payment_intent_id=payment_intent_id)

    if not charge_id:
        return MetadataResolution(
            metadata=intent_metadata,
            source=MetadataSource.PAYMENT_INTENT,
            payment_intent_id=payment_intent_id,
        )

    metadata, written = write_back_if_empty(
        store, charge_id, intent_metadata, known_charge=fresh_charge
    )
    # When the re-read found metadata, the charge copy is what we report
    return MetadataResolution(
        metadata=metadata,
        source=MetadataSource.PAYMENT_INTENT if written else MetadataSource.CHARGE,
        charge_id=charge_id,
        payment_intent_id=payment_intent_id,
        written_back=written,
    )


def propagate_intent_metadata(
    payment_intent: Mapping[str, Any], store: ProviderStore
) -> MetadataResolution:
    """Copy a payment intent's metadata onto its most recent charge.

    Used when the intent itself is the event subject. Does nothing when the
    intent has no metadata or no charge yet.
    """
    payment_intent_id = payment_intent.get("id")
    metadata = as_metadata(payment_intent.get("metadata"))
    if not metadata or not payment_intent_id:
        return MetadataResolution(payment_intent_id=payment_intent_id)

    charges = store.list_charges(payment_intent_id, limit=1)
    if not charges or not charges[0].get("id"):
        return MetadataResolution(
            metadata=metadata,
            source=MetadataSource.PAYMENT_INTENT,
            payment_intent_id=payment_intent_id,
        )

    charge = charges[0]
    charge_id = charge["id"]
    current, written = write_back_if_empty(store, charge_id, metadata, known_charge=charge)
    return MetadataResolution(
        metadata=current,
        source=MetadataSource.PAYMENT_INTENT if written else MetadataSource.CHARGE,
        charge_id=charge_id,
        payment_intent_id=payment_intent_id,
        written_back=written,
    )
