"""Best-effort selection of proof-of-payment documents for a draft claim.

Proofs are things like bank transfer confirmations or receipts that show the
bill was actually paid.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from claimlink.core.config import DraftClaimSettings, settings
from claimlink.database.models import MedicalDocument
from claimlink.schemas.draft_claims import DraftClaimPayment
from claimlink.schemas.enums import DocumentClassification
from claimlink.services.matching.payment_signal import get_payment_signals
from claimlink.utils.dates import ensure_utc
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)

PAYMENT_PROOF_KEYWORDS = (
    "proof of payment",
    "payment received",
    "payment confirmation",
    "paid",
    "bank transfer",
    "transfer",
    "sent",
    "transaction",
    "monzo",
)

PAYMENT_PROOF_CLASSES = frozenset({DocumentClassification.RECEIPT})

AMOUNT_EPSILON = 0.01

# Score weights
AMOUNT_MATCH_WEIGHT = 4
RECEIPT_WEIGHT = 2
KEYWORD_WEIGHT = 2
SAME_EMAIL_WEIGHT = 1
DATE_WINDOW_WEIGHT = 1


@dataclass
class ScoredProof:
    document: MedicalDocument
    score: int
    amount_match: bool


def build_proof_text(document: MedicalDocument) -> str:
    parts = [
        document.subject,
        document.body_snippet,
        document.ocr_text,
        document.filename,
        document.from_address,
    ]
    return " ".join(part for part in parts if part).lower()


def has_proof_keywords(text: str) -> bool:
    return any(keyword in text for keyword in PAYMENT_PROOF_KEYWORDS)


def is_proof_candidate(document: MedicalDocument) -> bool:
    if document.is_archived or document.is_calendar:
        return False
    if document.classification in PAYMENT_PROOF_CLASSES:
        return True
    return has_proof_keywords(build_proof_text(document))


def matches_payment_amount(document: MedicalDocument, payment: DraftClaimPayment) -> bool:
    if not payment.amount or payment.amount <= 0:
        return False
    return any(
        signal.currency == payment.currency
        and abs(signal.amount - payment.amount) < AMOUNT_EPSILON
        for signal in get_payment_signals(document)
    )


def _reference_date(document: MedicalDocument) -> Optional[datetime]:
    return ensure_utc(document.date or document.processed_at)


def _within_window(
    reference: Optional[datetime], candidate: Optional[datetime], window_days: int
) -> bool:
    if reference is None or candidate is None:
        return False
    return abs((candidate - reference).total_seconds()) <= window_days * 86400


class ProofResolver:
    """Ranks candidate documents as payment proof for a primary document."""

    def __init__(self, config: Optional[DraftClaimSettings] = None):
        self.config = config or settings.draft_claims

    def score_candidates(
        self,
        documents: Iterable[MedicalDocument],
        primary_document: MedicalDocument,
        payment: DraftClaimPayment,
    ) -> List[ScoredProof]:
        """Score every eligible document, dropping those that score zero."""
        reference = _reference_date(primary_document)
        scored = []
        for document in documents:
            if document.id == primary_document.id or not is_proof_candidate(document):
                continue

            amount_match = matches_payment_amount(document, payment)
            same_email = bool(primary_document.email_id) and (
                document.email_id == primary_document.email_id
            )
            in_window = _within_window(
                reference, _reference_date(document), self.config.proof_date_window_days
            )

            score = (
                (AMOUNT_MATCH_WEIGHT if amount_match else 0)
                + (RECEIPT_WEIGHT if document.classification in PAYMENT_PROOF_CLASSES else 0)
                + (KEYWORD_WEIGHT if has_proof_keywords(build_proof_text(document)) else 0)
                + (SAME_EMAIL_WEIGHT if same_email else 0)
                + (DATE_WINDOW_WEIGHT if in_window else 0)
            )
            if score > 0:
                scored.append(ScoredProof(document=document, score=score, amount_match=amount_match))
        return scored

    def resolve(
        self,
        documents: Iterable[MedicalDocument],
        primary_document: MedicalDocument,
        payment: DraftClaimPayment,
        max_documents: Optional[int] = None,
    ) -> List[MedicalDocument]:
        """Best proof documents for ``payment``, strongest first.

        When any candidate matches the payment amount, only amount matches
        are returned.
        """
        limit = self.config.proof_max_results if max_documents is None else max_documents
        if limit <= 0:
            return []

        scored = self.score_candidates(documents, primary_document, payment)
        if any(item.amount_match for item in scored):
            scored = [item for item in scored if item.amount_match]

        scored.sort(key=lambda item: item.score, reverse=True)
        proofs = [item.document for item in scored[:limit]]
        LOGGER.debug(
            f"Resolved {len(proofs)} payment proofs for document {primary_document.id}"
        )
        return proofs
