"""Turns match scores into reviewable document-claim assignments."""

from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.config import MatchingSettings, settings
from claimlink.core.exceptions import (
    ClaimNotFoundError,
    DocumentNotFoundError,
    MatchingError,
)
from claimlink.database.models import Claim, DocumentClaimAssignment, MedicalDocument
from claimlink.repositories.assignment_repository import AssignmentRepository
from claimlink.repositories.claim_repository import ClaimRepository
from claimlink.repositories.document_repository import DocumentRepository
from claimlink.repositories.draft_claim_repository import DraftClaimRepository
from claimlink.schemas.enums import (
    AssignmentStatus,
    DraftClaimStatus,
    MatchReasonType,
)
from claimlink.schemas.matching import MatchResult, MatchStats
from claimlink.services.matching.match_scorer import MatchScorer
from claimlink.utils.ids import IdLike, dedupe_ids
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)

MANUAL_MATCH_SCORE = 100
MANUAL_MATCH_REASON = "Manually assigned by user"

SCORE_BUCKETS = (
    ("90-100", 90),
    ("80-89", 80),
    ("70-79", 70),
    ("60-69", 60),
    ("50-59", None),
)


def is_matchable(document: MedicalDocument) -> bool:
    """A document can be scored if it has detected amounts or is a dated calendar event."""
    if document.detected_amounts:
        return True
    return document.is_calendar and document.effective_date is not None


class AssignmentEngine:
    """Matches documents against every claim and persists candidate assignments.

    Args:
        session: Async database session shared by the repositories
        config: Matching settings; defaults to the application settings
        scorer: Scorer to use; built from ``config`` when omitted
    """

    def __init__(
        self,
        session: AsyncSession,
        config: Optional[MatchingSettings] = None,
        scorer: Optional[MatchScorer] = None,
        document_repo: Optional[DocumentRepository] = None,
        claim_repo: Optional[ClaimRepository] = None,
        assignment_repo: Optional[AssignmentRepository] = None,
        draft_claim_repo: Optional[DraftClaimRepository] = None,
    ):
        self.session = session
        self.config = config or settings.matching
        self.scorer = scorer or MatchScorer(self.config)
        self.document_repo = document_repo or DocumentRepository(session)
        self.claim_repo = claim_repo or ClaimRepository(session)
        self.assignment_repo = assignment_repo or AssignmentRepository(session)
        self.draft_claim_repo = draft_claim_repo or DraftClaimRepository(session)

    @property
    def min_score(self) -> float:
        return self.config.minimum_candidate_score

    async def match_document(
        self,
        document: MedicalDocument,
        claims: Optional[List[Claim]] = None,
    ) -> List[DocumentClaimAssignment]:
        """Match one document against all claims.

        Candidate rows for a matched pair are rescored in place and keep
        their ids. Confirmed and rejected rows are returned as they are. The
        document's other candidate rows are removed.

        Raises:
            MatchingError: If scoring fails for any claim
        """
        if not is_matchable(document):
            LOGGER.debug(f"Document {document.id} has no amounts or calendar date, skipping")
            return []

        if claims is None:
            claims = await self.claim_repo.get_all()

        matches = self._score_claims(document, claims)
        top_matches = matches[: self.config.max_candidates_per_document]

        if self.config.clear_existing:
            await self.assignment_repo.clear_candidates_for_document(
                document.id, keep_claim_ids=[match.claim_id for match in top_matches]
            )

        assignments = []
        for match in top_matches:
            assignment = await self.assignment_repo.upsert_candidate(
                document_id=match.document_id,
                claim_id=match.claim_id,
                match_score=match.score,
                match_reason_type=match.primary_reason_type,
                match_reason=match.reason_text,
                amount_match_details=(
                    match.amount_match_details.model_dump(mode="json")
                    if match.amount_match_details
                    else None
                ),
                date_match_details=(
                    match.date_match_details.model_dump(mode="json")
                    if match.date_match_details
                    else None
                ),
            )
            assignments.append(assignment)

        LOGGER.debug(
            f"Document {document.id}: {len(matches)} matches, {len(assignments)} assignments"
        )
        return assignments

    def _score_claims(self, document: MedicalDocument, claims: List[Claim]) -> List[MatchResult]:
        matches = []
        for claim in claims:
            try:
                match = self.scorer.calculate_match_score(document, claim)
            except Exception as e:
                LOGGER.error(
                    f"Scoring failed for document {document.id} and claim {claim.id}: {str(e)}",
                    exc_info=True,
                )
                raise MatchingError(
                    f"Scoring failed for document {document.id} and claim {claim.id}",
                    original_error=e,
                )
            if match and match.score >= self.min_score:
                matches.append(match)

        # Stable sort keeps claim order for equal scores
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches

    async def match_documents(
        self, documents: Iterable[MedicalDocument]
    ) -> List[DocumentClaimAssignment]:
        """Match documents, each id at most once (first occurrence wins)."""
        unique: Dict[str, MedicalDocument] = {}
        for document in documents:
            unique.setdefault(str(document.id), document)

        if not unique:
            return []

        claims = await self.claim_repo.get_all()
        assignments = []
        for document in unique.values():
            assignments.extend(await self.match_document(document, claims=claims))
        return assignments

    async def match_all_documents(self) -> List[DocumentClaimAssignment]:
        """Match every medical bill with amounts and every dated calendar event."""
        matchable = await self.document_repo.get_matchable()
        calendar_count = sum(1 for document in matchable if document.is_calendar)
        LOGGER.info(
            f"Matching {len(matchable)} documents against claims "
            f"({calendar_count} calendar events)"
        )

        assignments = await self.match_documents(matchable)
        LOGGER.info(f"Matching produced {len(assignments)} assignments")
        return assignments

    async def match_documents_by_ids(
        self, document_ids: Iterable[IdLike]
    ) -> List[DocumentClaimAssignment]:
        """Match documents by id; unknown ids are skipped."""
        unique_ids = dedupe_ids(document_ids)
        documents = []
        for document_id in unique_ids:
            document = await self.document_repo.get_by_id(document_id)
            if document is None:
                LOGGER.warning(f"Document {document_id} not found, skipping")
                continue
            documents.append(document)
        return await self.match_documents(documents)

    async def match_document_by_id(self, document_id: IdLike) -> List[DocumentClaimAssignment]:
        """Match a single document by id.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self.document_repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return await self.match_document(document)

    async def create_manual_assignment(
        self,
        document_id: IdLike,
        claim_id: IdLike,
        review_notes: Optional[str] = None,
    ) -> DocumentClaimAssignment:
        """Link a document to a claim by hand.

        Raises:
            DocumentNotFoundError: If the document does not exist
            ClaimNotFoundError: If the claim does not exist
        """
        document = await self.document_repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        claim = await self.claim_repo.get_by_id(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)

        assignment = await self.assignment_repo.create_candidate(
            document_id=document.id,
            claim_id=claim.id,
            match_score=MANUAL_MATCH_SCORE,
            match_reason_type=MatchReasonType.MANUAL,
            match_reason=review_notes or MANUAL_MATCH_REASON,
        )
        LOGGER.info(f"Manual assignment {assignment.id} for document {document.id} -> claim {claim.id}")
        return assignment

    async def match_accepted_draft_claims(self) -> List[DocumentClaimAssignment]:
        """Re-match every document referenced by an accepted draft claim."""
        drafts = await self.draft_claim_repo.list_by_status(DraftClaimStatus.ACCEPTED)
        document_ids = dedupe_ids(
            document_id for draft in drafts for document_id in (draft.document_ids or [])
        )
        LOGGER.info(
            f"Matching {len(document_ids)} documents from {len(drafts)} accepted draft claims"
        )
        return await self.match_documents_by_ids(document_ids)

    async def get_match_stats(self) -> MatchStats:
        """Coverage statistics computed from the stored assignments."""
        documents = await self.document_repo.get_all()
        total_claims = await self.claim_repo.count()
        assignments = await self.assignment_repo.get_all()

        matches_by_score = {label: 0 for label, _ in SCORE_BUCKETS}
        status_counts = {status: 0 for status in AssignmentStatus}
        total_score = 0.0
        for assignment in assignments:
            total_score += assignment.match_score
            status_counts[AssignmentStatus(assignment.status)] += 1
            for label, floor in SCORE_BUCKETS:
                if floor is None or assignment.match_score >= floor:
                    matches_by_score[label] += 1
                    break

        return MatchStats(
            total_documents=len(documents),
            documents_with_amounts=sum(1 for document in documents if document.detected_amounts),
            total_claims=total_claims,
            total_assignments=len(assignments),
            candidates=status_counts[AssignmentStatus.CANDIDATE],
            confirmed=status_counts[AssignmentStatus.CONFIRMED],
            rejected=status_counts[AssignmentStatus.REJECTED],
            avg_match_score=total_score / len(assignments) if assignments else 0.0,
            matches_by_score=matches_by_score,
        )
