"""Payment signal resolution.

A document's payment signals are either its manual override (which, when
present, is the only signal) or one signal per detected amount.
"""

from typing import List, Optional

from claimlink.database.models import MedicalDocument
from claimlink.schemas.documents import DetectedAmount, PaymentOverride
from claimlink.schemas.draft_claims import DraftClaimPayment
from claimlink.schemas.enums import PaymentSignalSource
from claimlink.schemas.matching import PaymentSignal


def _signal_from_override(override: PaymentOverride) -> PaymentSignal:
    return PaymentSignal(
        amount=override.amount,
        currency=override.currency,
        source=PaymentSignalSource.OVERRIDE,
        raw_text=f"Override: {override.amount} {override.currency}",
        context=override.note,
        confidence=100,
        override_note=override.note,
        override_updated_at=override.updated_at,
    )


def _signal_from_detected(amount: DetectedAmount) -> PaymentSignal:
    return PaymentSignal(
        amount=amount.value,
        currency=amount.currency,
        source=PaymentSignalSource.DETECTED,
        raw_text=amount.raw_text,
        context=amount.context,
        confidence=amount.confidence,
    )


def get_payment_signals(document: MedicalDocument) -> List[PaymentSignal]:
    """All payment signals for a document; an override is the sole signal."""
    override = document.override
    if override is not None:
        return [_signal_from_override(override)]
    return [_signal_from_detected(amount) for amount in document.amounts]


def has_payment_signal(document: MedicalDocument) -> bool:
    return bool(document.payment_override) or bool(document.detected_amounts)


def get_primary_payment_signal(document: MedicalDocument) -> Optional[PaymentSignal]:
    """Highest-confidence signal, ties broken by the larger amount.

    The first signal wins a full tie.
    """
    signals = get_payment_signals(document)
    if not signals:
        return None

    primary = signals[0]
    for candidate in signals[1:]:
        current_confidence = primary.confidence or 0
        candidate_confidence = candidate.confidence or 0
        if candidate_confidence > current_confidence:
            primary = candidate
        elif candidate_confidence == current_confidence and candidate.amount > primary.amount:
            primary = candidate
    return primary


def compare_payment_signals(first: PaymentSignal, second: PaymentSignal) -> int:
    """Order two signals for choosing a group payment.

    Returns a positive number when ``first`` is preferred, negative when
    ``second`` is, 0 when they are equivalent. Overrides beat detected
    amounts, then confidence, then amount.
    """
    first_override = first.source == PaymentSignalSource.OVERRIDE
    second_override = second.source == PaymentSignalSource.OVERRIDE
    if first_override != second_override:
        return 1 if first_override else -1

    confidence_delta = (first.confidence or 0) - (second.confidence or 0)
    if confidence_delta:
        return 1 if confidence_delta > 0 else -1

    if first.amount != second.amount:
        return 1 if first.amount > second.amount else -1
    return 0


def to_payment_snapshot(signal: PaymentSignal) -> DraftClaimPayment:
    """Copy a signal into a standalone draft claim payment."""
    return DraftClaimPayment(**signal.model_dump())


def create_empty_payment(currency: str, context: Optional[str] = None) -> DraftClaimPayment:
    """Zero-amount payment for documents promoted without any signal."""
    return DraftClaimPayment(amount=0, currency=currency, context=context or None)
