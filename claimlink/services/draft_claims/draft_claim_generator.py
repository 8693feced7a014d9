"""Generation of draft claims from unattached payment documents."""

from datetime import datetime, timedelta
from typing import List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.config import DraftClaimSettings, settings
from claimlink.database.models import DraftClaim, MedicalDocument
from claimlink.repositories.assignment_repository import AssignmentRepository
from claimlink.repositories.document_repository import DocumentRepository
from claimlink.repositories.draft_claim_repository import DraftClaimRepository
from claimlink.schemas.enums import BILL_CLASSIFICATIONS, DocumentSourceType, DraftClaimRange
from claimlink.services.draft_claims.payment_proof import ProofResolver
from claimlink.services.matching.payment_signal import (
    get_primary_payment_signal,
    has_payment_signal,
    to_payment_snapshot,
)
from claimlink.utils.dates import ensure_utc, utcnow
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


def is_within_range(document: MedicalDocument, range: DraftClaimRange, now: datetime) -> bool:
    """Whether the document date falls in ``[now - range.days, now]``.

    Undated documents only match the unbounded range.
    """
    if range.days is None:
        return True
    if document.date is None:
        return False

    now = ensure_utc(now)
    document_date = ensure_utc(document.date)
    return now - timedelta(days=range.days) <= document_date <= now


def is_generation_candidate(document: MedicalDocument) -> bool:
    return (
        document.source_type == DocumentSourceType.ATTACHMENT
        and not document.is_archived
        and document.classification in BILL_CLASSIFICATIONS
        and has_payment_signal(document)
    )


class DraftClaimGenerator:
    """Creates pending draft claims for payment attachments nobody has claimed yet."""

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
        self.assignment_repo = AssignmentRepository(session)
        self.draft_claim_repo = DraftClaimRepository(session)

    async def _claimed_document_ids(self) -> Set[str]:
        assigned = await self.assignment_repo.get_assigned_document_ids()
        drafted = await self.draft_claim_repo.get_claimed_document_ids()
        return assigned | drafted

    async def generate_draft_claims(
        self,
        range: DraftClaimRange = DraftClaimRange.FOREVER,
        now: Optional[datetime] = None,
    ) -> List[DraftClaim]:
        """Create a draft claim for every eligible unclaimed attachment.

        Existing drafts are never modified. Documents taken as proof by a
        draft created earlier in the same pass are not reused.

        Returns:
            The drafts created by this call
        """
        now = now or utcnow()
        documents = await self.document_repo.get_all()
        claimed = await self._claimed_document_ids()

        candidates = [
            document
            for document in documents
            if is_generation_candidate(document)
            and str(document.id) not in claimed
            and is_within_range(document, range, now)
        ]
        LOGGER.info(
            f"Generating draft claims for range '{range.value}': "
            f"{len(candidates)} candidates from {len(documents)} documents"
        )

        created = []
        for document in candidates:
            # An earlier draft in this pass may have taken it as proof
            if str(document.id) in claimed:
                continue

            signal = get_primary_payment_signal(document)
            if signal is None:
                continue
            payment = to_payment_snapshot(signal)

            proof_pool = [
                candidate
                for candidate in documents
                if str(candidate.id) not in claimed
            ]
            proofs = self.proof_resolver.resolve(proof_pool, document, payment)
            proof_ids = [proof.id for proof in proofs]

            draft = await self.draft_claim_repo.create_draft_claim(
                primary_document_id=document.id,
                payment=payment,
                document_ids=proof_ids,
                payment_proof_document_ids=proof_ids,
            )
            claimed.update(draft.document_ids)
            created.append(draft)

        LOGGER.info(f"Created {len(created)} draft claims")
        return created
