"""Tests for payment signal resolution."""

from datetime import datetime, timezone

from claimlink.schemas.enums import PaymentSignalSource
from claimlink.schemas.matching import PaymentSignal
from claimlink.services.matching.payment_signal import (
    compare_payment_signals,
    create_empty_payment,
    get_payment_signals,
    get_primary_payment_signal,
    has_payment_signal,
    to_payment_snapshot,
)
from tests.factories import detected, make_document

OVERRIDE_AT = datetime(2024, 3, 5, tzinfo=timezone.utc)


def _override(amount=80.0, currency="GBP", note=None):
    return {"amount": amount, "currency": currency, "note": note, "updated_at": OVERRIDE_AT.isoformat()}


class TestGetPaymentSignals:

    def test_detected_amounts_become_signals(self):
        document = make_document(detected_amounts=[detected(10.0), detected(20.0, context="Total")])

        signals = get_payment_signals(document)

        assert [signal.amount for signal in signals] == [10.0, 20.0]
        assert all(signal.source == PaymentSignalSource.DETECTED for signal in signals)
        assert signals[1].context == "Total"

    def test_override_is_the_only_signal(self):
        document = make_document(
            detected_amounts=[detected(75.0, "GBP", confidence=95)],
            payment_override=_override(note="Corrected from invoice"),
        )

        signals = get_payment_signals(document)

        assert len(signals) == 1
        signal = signals[0]
        assert signal.source == PaymentSignalSource.OVERRIDE
        assert signal.confidence == 100
        assert signal.raw_text == "Override: 80.0 GBP"
        assert signal.context == "Corrected from invoice"
        assert signal.override_note == "Corrected from invoice"
        assert signal.override_updated_at == OVERRIDE_AT

    def test_no_amounts_no_signals(self):
        assert get_payment_signals(make_document()) == []


class TestHasPaymentSignal:

    def test_detected_amount(self):
        assert has_payment_signal(make_document(detected_amounts=[detected(5.0)]))

    def test_override_without_detected_amounts(self):
        assert has_payment_signal(make_document(payment_override=_override()))

    def test_nothing(self):
        assert not has_payment_signal(make_document())


class TestPrimaryPaymentSignal:

    def test_override_beats_higher_confidence_detection(self):
        document = make_document(
            detected_amounts=[detected(75.0, "GBP", confidence=95)],
            payment_override=_override(80.0, "GBP"),
        )

        primary = get_primary_payment_signal(document)

        assert primary.amount == 80.0
        assert primary.source == PaymentSignalSource.OVERRIDE

    def test_highest_confidence_wins(self):
        document = make_document(
            detected_amounts=[detected(300.0, confidence=40), detected(120.0, confidence=90)]
        )

        assert get_primary_payment_signal(document).amount == 120.0

    def test_confidence_tie_prefers_larger_amount(self):
        document = make_document(
            detected_amounts=[detected(50.0, confidence=80), detected(65.0, confidence=80)]
        )

        assert get_primary_payment_signal(document).amount == 65.0

    def test_full_tie_keeps_first(self):
        document = make_document(
            detected_amounts=[detected(50.0, "EUR", confidence=80), detected(50.0, "GBP", confidence=80)]
        )

        assert get_primary_payment_signal(document).currency == "EUR"

    def test_none_without_signals(self):
        assert get_primary_payment_signal(make_document()) is None


class TestPaymentSnapshots:

    def test_compare_prefers_override(self):
        override = PaymentSignal(amount=1.0, currency="EUR", source=PaymentSignalSource.OVERRIDE, confidence=10)
        detection = PaymentSignal(amount=500.0, currency="EUR", source=PaymentSignalSource.DETECTED, confidence=99)

        assert compare_payment_signals(override, detection) > 0
        assert compare_payment_signals(detection, override) < 0

    def test_compare_confidence_then_amount(self):
        low = PaymentSignal(amount=90.0, currency="EUR", source=PaymentSignalSource.DETECTED, confidence=50)
        high = PaymentSignal(amount=10.0, currency="EUR", source=PaymentSignalSource.DETECTED, confidence=70)
        bigger = PaymentSignal(amount=20.0, currency="EUR", source=PaymentSignalSource.DETECTED, confidence=70)

        assert compare_payment_signals(high, low) > 0
        assert compare_payment_signals(bigger, high) > 0
        assert compare_payment_signals(high, high) == 0

    def test_snapshot_copies_signal(self):
        signal = PaymentSignal(
            amount=42.5, currency="EUR", source=PaymentSignalSource.DETECTED,
            raw_text="EUR 42.50", confidence=88,
        )

        snapshot = to_payment_snapshot(signal)

        assert snapshot.amount == 42.5
        assert snapshot.source == PaymentSignalSource.DETECTED
        assert snapshot.raw_text == "EUR 42.50"
        assert snapshot.confidence == 88

    def test_empty_payment(self):
        payment = create_empty_payment("EUR", "Manual promotion")

        assert payment.amount == 0
        assert payment.currency == "EUR"
        assert payment.source is None
        assert payment.context == "Manual promotion"
