"""Manual promotion of a document (and its email thread) into a draft claim.

Unlike generation, promotion works even when no payment signal exists; the
draft then carries a zero-amount payment for the reviewer to fix.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.config import DraftClaimSettings, settings
from claimlink.core.exceptions import DocumentNotFoundError
from claimlink.database.models import DraftClaim, MedicalDocument
from claimlink.repositories.document_repository import DocumentRepository
from claimlink.repositories.draft_claim_repository import DraftClaimRepository
from claimlink.schemas.draft_claims import DraftClaimPayment
from claimlink.services.draft_claims.payment_proof import ProofResolver
from claimlink.services.matching.payment_signal import (
    compare_payment_signals,
    create_empty_payment,
    get_primary_payment_signal,
    to_payment_snapshot,
)
from claimlink.utils.ids import IdLike, dedupe_ids
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)

EMPTY_PAYMENT_CONTEXT = "Manual promotion - no payment signal detected"


@dataclass
class PromoteDraftResult:
    draft: DraftClaim
    created: bool
    expanded: bool


def get_group_documents(
    selected: MedicalDocument, active_documents: List[MedicalDocument]
) -> List[MedicalDocument]:
    """The selected document plus its non-calendar siblings from the same email."""
    if selected.email_id and not selected.is_calendar:
        group = [
            document
            for document in active_documents
            if document.email_id == selected.email_id and not document.is_calendar
        ]
        if group:
            return group
    return [selected]


class DraftClaimPromoter:
    """Creates or expands a draft claim for a hand-picked document."""

    def __init__(
        self,
        session: AsyncSession,
        config: Optional[DraftClaimSettings] = None,
        proof_resolver: Optional[ProofResolver] = None,
    ):
        self.session = session
        self.config = config or settings.draft_claims
        self.proof_resolver = proof_resolver or ProofResolver(self.config)
        self.document_repo = DocumentRepository(session)
        self.draft_claim_repo = DraftClaimRepository(session)

    def build_group_payment(
        self, group: List[MedicalDocument], fallback: MedicalDocument
    ) -> Tuple[DraftClaimPayment, MedicalDocument]:
        """Pick the strongest payment signal in the group and its document."""
        best_signal = None
        best_document = None
        for document in group:
            signal = get_primary_payment_signal(document)
            if signal is None:
                continue
            if best_signal is None or compare_payment_signals(signal, best_signal) > 0:
                best_signal = signal
                best_document = document

        if best_signal is None:
            return create_empty_payment(self.config.default_currency, EMPTY_PAYMENT_CONTEXT), fallback
        return to_payment_snapshot(best_signal), best_document

    async def promote_document(self, document_id: IdLike) -> PromoteDraftResult:
        """Promote a document to a draft claim.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        selected = await self.document_repo.get_by_id(document_id)
        if selected is None:
            raise DocumentNotFoundError(document_id)

        active_documents = await self.document_repo.get_active()
        group = get_group_documents(selected, active_documents)
        group_ids = dedupe_ids(document.id for document in group)

        payment, primary = self.build_group_payment(group, selected)
        proofs = self.proof_resolver.resolve(active_documents, primary, payment)
        proof_ids = dedupe_ids(proof.id for proof in proofs)

        existing = await self.draft_claim_repo.find_by_document(group_ids)
        if existing is None:
            draft = await self.draft_claim_repo.create_draft_claim(
                primary_document_id=primary.id,
                payment=payment,
                document_ids=[*group_ids, *proof_ids],
                payment_proof_document_ids=proof_ids,
            )
            LOGGER.info(f"Promoted document {selected.id} to new draft claim {draft.id}")
            return PromoteDraftResult(draft=draft, created=True, expanded=False)

        current_documents = list(existing.document_ids or [])
        current_proofs = list(existing.payment_proof_document_ids or [])
        merged_documents = dedupe_ids([*current_documents, *group_ids, *proof_ids])
        merged_proofs = dedupe_ids([*current_proofs, *proof_ids])

        changes = {}
        if len(merged_documents) != len(current_documents):
            changes["document_ids"] = merged_documents
        if len(merged_proofs) != len(current_proofs):
            changes["payment_proof_document_ids"] = merged_proofs
            changes.setdefault("document_ids", merged_documents)

        if not changes:
            return PromoteDraftResult(draft=existing, created=False, expanded=False)

        updated = await self.draft_claim_repo.update_draft_claim(existing.id, **changes)
        LOGGER.info(f"Expanded draft claim {existing.id} with documents from {selected.id}")
        return PromoteDraftResult(draft=updated or existing, created=False, expanded=True)
