"""Unit tests for metadata resolution.

Runs resolve_metadata / propagate_intent_metadata against the in-memory
FakeProviderStore; no Stripe calls are made.

Test categories:
- Charge subjects (direct metadata, lookup through payment intent)
- Refund and dispute subjects (two-hop lookup)
- Write-back guard (never overwrite existing metadata)
- payment_intent.created propagation
"""

import pytest

from billing.models.metadata import MetadataSource
from billing.services.metadata_resolver import (
    propagate_intent_metadata,
    resolve_metadata,
    write_back_if_empty,
)
from billing.services.stripe_service import TransientRemoteError

INTENT_METADATA = {"UserId": "u1", "CreditGranted": "5"}


# === Charge subjects ===


class TestChargeSubject:
    """Resolution when the event subject is the charge itself."""

    def test_bare_charge_gets_intent_metadata(self, fake_store):
        """Intent metadata is copied onto a charge that has none."""
        fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        charge = fake_store.add_charge("ch_1", "pi_1")

        resolution = resolve_metadata(dict(charge), fake_store)

        assert resolution.metadata == INTENT_METADATA
        assert resolution.source == MetadataSource.PAYMENT_INTENT
        assert resolution.written_back is True
        assert fake_store.charges["ch_1"]["metadata"] == INTENT_METADATA
        assert fake_store.writes == [("ch_1", INTENT_METADATA)]

    def test_charge_with_metadata_is_used_directly(self, fake_store):
        """A charge carrying metadata needs no remote calls."""
        fake_store.add_payment_intent("pi_1", {"UserId": "other", "CreditGranted": "99"})
        charge = fake_store.add_charge("ch_1", "pi_1", {"UserId": "u1"})

        resolution = resolve_metadata(dict(charge), fake_store)

        assert resolution.metadata == {"UserId": "u1"}
        assert resolution.source == MetadataSource.SUBJECT
        assert fake_store.calls == []
        assert fake_store.charges["ch_1"]["metadata"] == {"UserId": "u1"}

    def test_stale_payload_does_not_overwrite_current_charge(self, fake_store):
        """The charge is re-read before writing; existing metadata wins."""
        fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        fake_store.add_charge("ch_1", "pi_1", {"UserId": "u1"})
        stale_payload = {"id": "ch_1", "object": "charge", "payment_intent": "pi_1", "metadata": {}}

        resolution = resolve_metadata(stale_payload, fake_store)

        assert resolution.metadata == {"UserId": "u1"}
        assert resolution.source == MetadataSource.CHARGE
        assert resolution.written_back is False
        assert fake_store.writes == []

    def test_no_metadata_anywhere_is_empty_not_error(self, fake_store):
        """Missing metadata at every hop yields an empty record."""
        fake_store.add_payment_intent("pi_1")
        charge = fake_store.add_charge("ch_1", "pi_1")

        resolution = resolve_metadata(dict(charge), fake_store)

        assert resolution.metadata == {}
        assert resolution.source == MetadataSource.NONE
        assert fake_store.writes == []

    def test_charge_without_payment_intent(self, fake_store):
        """A charge created outside a payment intent resolves to nothing."""
        charge = fake_store.add_charge("ch_1", None)

        resolution = resolve_metadata(dict(charge), fake_store)

        assert resolution.metadata == {}
        assert fake_store.calls == []

    def test_expanded_payment_intent_skips_lookup(self, fake_store):
        """An expanded payment_intent object with metadata is read in place."""
        fake_store.add_charge("ch_1", "pi_1")
        payload = {
            "id": "ch_1",
            "object": "charge",
            "payment_intent": {"id": "pi_1", "metadata": INTENT_METADATA},
            "metadata": {},
        }

        resolution = resolve_metadata(payload, fake_store)

        assert resolution.metadata == INTENT_METADATA
        assert ("retrieve_payment_intent", "pi_1") not in fake_store.calls
        assert fake_store.charges["ch_1"]["metadata"] == INTENT_METADATA

    def test_second_resolution_is_a_no_op(self, fake_store):
        """Running twice produces one write and the same end state."""
        fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        charge = fake_store.add_charge("ch_1", "pi_1")
        payload = dict(charge, metadata={})

        first = resolve_metadata(payload, fake_store)
        second = resolve_metadata(payload, fake_store)

        assert first.metadata == second.metadata == INTENT_METADATA
        assert len(fake_store.writes) == 1
        assert second.written_back is False


# === Refund and dispute subjects ===


class TestRefundAndDisputeSubjects:
    """Two-hop resolution: refund/dispute -> charge -> payment intent."""

    @pytest.mark.parametrize(
        "subject",
        [
            {"id": "re_1", "object": "refund", "charge": "ch_1", "metadata": {}},
            {"id": "dp_1", "object": "dispute", "charge": "ch_1", "metadata": {}},
        ],
    )
    def test_resolves_through_charge_and_writes_back(self, fake_store, subject):
        """Metadata is found on the intent and copied onto the charge."""
        fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        fake_store.add_charge("ch_1", "pi_1")

        resolution = resolve_metadata(subject, fake_store)

        assert resolution.metadata == INTENT_METADATA
        assert resolution.charge_id == "ch_1"
        assert resolution.payment_intent_id == "pi_1"
        assert fake_store.charges["ch_1"]["metadata"] == INTENT_METADATA
        # Charge fetched once; no second read before the write
        assert fake_store.calls.count(("retrieve_charge", "ch_1")) == 1

    def test_charge_metadata_short_circuits(self, fake_store):
        """A charge that already has metadata stops the walk."""
        fake_store.add_payment_intent("pi_1", {"UserId": "other"})
        fake_store.add_charge("ch_1", "pi_1", {"UserId": "u1", "CreditGranted": "3"})
        refund = {"id": "re_1", "object": "refund", "charge": "ch_1", "metadata": {}}

        resolution = resolve_metadata(refund, fake_store)

        assert resolution.metadata == {"UserId": "u1", "CreditGranted": "3"}
        assert resolution.source == MetadataSource.CHARGE
        assert ("retrieve_payment_intent", "pi_1") not in fake_store.calls
        assert fake_store.writes == []

    def test_refund_own_metadata_is_used(self, fake_store):
        """A refund carrying its own metadata needs no lookups."""
        refund = {"id": "re_1", "object": "refund", "charge": "ch_1", "metadata": {"UserId": "u9"}}

        resolution = resolve_metadata(refund, fake_store)

        assert resolution.metadata == {"UserId": "u9"}
        assert resolution.source == MetadataSource.SUBJECT
        assert fake_store.calls == []

    def test_subject_kind_from_id_prefix(self, fake_store):
        """Payloads without an 'object' field are classified by ID prefix."""
        fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        fake_store.add_charge("ch_1", "pi_1")

        resolution = resolve_metadata({"id": "re_1", "charge": "ch_1"}, fake_store)

        assert resolution.metadata == INTENT_METADATA

    def test_refund_without_charge(self, fake_store):
        """A refund that references no charge resolves to nothing."""
        resolution = resolve_metadata({"id": "re_1", "object": "refund", "charge": None}, fake_store)

        assert resolution.metadata == {}
        assert fake_store.calls == []

    def test_remote_failure_propagates(self, fake_store):
        """Remote errors surface to the caller instead of being hidden."""
        fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        fake_store.add_charge("ch_1", "pi_1")
        fake_store.failing.add("retrieve_payment_intent")
        refund = {"id": "re_1", "object": "refund", "charge": "ch_1", "metadata": {}}

        with pytest.raises(TransientRemoteError):
            resolve_metadata(refund, fake_store)

        assert fake_store.writes == []


# === Write-back guard ===


class TestWriteBackIfEmpty:
    """The read-is-empty guard on charge updates."""

    def test_writes_when_charge_empty(self, fake_store):
        fake_store.add_charge("ch_1", "pi_1")

        metadata, written = write_back_if_empty(fake_store, "ch_1", INTENT_METADATA)

        assert written is True
        assert metadata == INTENT_METADATA

    def test_never_overwrites(self, fake_store):
        fake_store.add_charge("ch_1", "pi_1", {"UserId": "u1"})

        metadata, written = write_back_if_empty(fake_store, "ch_1", {"UserId": "u2"})

        assert written is False
        assert metadata == {"UserId": "u1"}
        assert fake_store.charges["ch_1"]["metadata"] == {"UserId": "u1"}

    def test_empty_record_is_never_written(self, fake_store):
        fake_store.add_charge("ch_1", "pi_1")

        metadata, written = write_back_if_empty(fake_store, "ch_1", {})

        assert written is False
        assert fake_store.calls == []


# === payment_intent.created propagation ===


class TestPropagateIntentMetadata:
    """Copying intent metadata onto its first charge."""

    def test_copies_onto_existing_charge(self, fake_store):
        intent = fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        fake_store.add_charge("ch_1", "pi_1")

        resolution = propagate_intent_metadata(intent, fake_store)

        assert resolution.written_back is True
        assert fake_store.charges["ch_1"]["metadata"] == INTENT_METADATA

    def test_no_charge_yet(self, fake_store):
        intent = fake_store.add_payment_intent("pi_1", INTENT_METADATA)

        resolution = propagate_intent_metadata(intent, fake_store)

        assert resolution.written_back is False
        assert resolution.metadata == INTENT_METADATA
        assert fake_store.writes == []

    def test_intent_without_metadata_makes_no_calls(self, fake_store):
        intent = fake_store.add_payment_intent("pi_1")

        propagate_intent_metadata(intent, fake_store)

        assert fake_store.calls == []

    def test_existing_charge_metadata_kept(self, fake_store):
        intent = fake_store.add_payment_intent("pi_1", INTENT_METADATA)
        fake_store.add_charge("ch_1", "pi_1", {"UserId": "u1"})

        resolution = propagate_intent_metadata(intent, fake_store)

        assert resolution.metadata == {"UserId": "u1"}
        assert fake_store.writes == []
