from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.exceptions import InvalidTransitionError
from claimlink.database.models import DocumentClaimAssignment
from claimlink.repositories.base_repository import BaseRepository
from claimlink.schemas.enums import (
    ASSIGNMENT_TRANSITIONS,
    AssignmentStatus,
    MatchReasonType,
)
from claimlink.utils.dates import utcnow
from claimlink.utils.ids import IdLike, to_uuid
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AssignmentRepository(BaseRepository[DocumentClaimAssignment]):
    """Repository for document-claim assignments.

    A (document, claim) pair has at most one row. ``create_candidate`` looks
    the pair up before inserting and the table carries a unique constraint,
    so a concurrent insert that loses the race returns the winning row.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentClaimAssignment)

    async def get_by_pair(
        self, document_id: IdLike, claim_id: IdLike
    ) -> Optional[DocumentClaimAssignment]:
        """Get the assignment for a document/claim pair, if any."""
        query = select(DocumentClaimAssignment).where(
            DocumentClaimAssignment.document_id == to_uuid(document_id),
            DocumentClaimAssignment.claim_id == to_uuid(claim_id),
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def create_candidate(
        self,
        document_id: IdLike,
        claim_id: IdLike,
        match_score: float,
        match_reason_type: MatchReasonType,
        match_reason: str,
        amount_match_details: Optional[Dict[str, Any]] = None,
        date_match_details: Optional[Dict[str, Any]] = None,
    ) -> DocumentClaimAssignment:
        """Create a candidate assignment unless the pair already exists.

        Returns:
            The new candidate, or the existing row for the pair unchanged
        """
        existing = await self.get_by_pair(document_id, claim_id)
        if existing:
            return existing

        now = utcnow()
        try:
            return await self.create(
                document_id=to_uuid(document_id),
                claim_id=to_uuid(claim_id),
                match_score=match_score,
                match_reason_type=match_reason_type,
                match_reason=match_reason,
                status=AssignmentStatus.CANDIDATE,
                amount_match_details=amount_match_details,
                date_match_details=date_match_details,
                created_at=now,
                updated_at=now,
            )
        except IntegrityError:
            winner = await self.get_by_pair(document_id, claim_id)
            if winner is None:
                raise
            LOGGER.warning(
                "Concurrent insert for assignment pair, returning existing row",
                extra={"document_id": str(document_id), "claim_id": str(claim_id)},
            )
            return winner

    async def upsert_candidate(
        self,
        document_id: IdLike,
        claim_id: IdLike,
        match_score: float,
        match_reason_type: MatchReasonType,
        match_reason: str,
        amount_match_details: Optional[Dict[str, Any]] = None,
        date_match_details: Optional[Dict[str, Any]] = None,
    ) -> DocumentClaimAssignment:
        """Create a candidate or rescore the pair's existing candidate in place.

        Confirmed and rejected rows are returned unchanged. A rescored
        candidate keeps its id.
        """
        fields = {
            "match_score": match_score,
            "match_reason_type": match_reason_type,
            "match_reason": match_reason,
            "amount_match_details": amount_match_details,
            "date_match_details": date_match_details,
        }
        existing = await self.get_by_pair(document_id, claim_id)
        if existing is None:
            return await self.create_candidate(document_id, claim_id, **fields)
        if existing.status != AssignmentStatus.CANDIDATE:
            return existing

        unchanged = all(getattr(existing, key) == value for key, value in fields.items())
        if unchanged:
            return existing
        LOGGER.debug(f"Rescoring candidate {existing.id}: {existing.match_score} -> {match_score}")
        return await self.update(existing.id, **fields)

    async def clear_candidates_for_document(
        self,
        document_id: IdLike,
        keep_claim_ids: Iterable[IdLike] = (),
    ) -> int:
        """Delete the document's candidate rows.

        Confirmed and rejected rows are never touched. Candidates whose claim
        is in ``keep_claim_ids`` survive so a re-match keeps their ids.

        Returns:
            Number of rows removed
        """
        keep = {to_uuid(claim_id) for claim_id in keep_claim_ids}
        conditions = [
            DocumentClaimAssignment.document_id == to_uuid(document_id),
            DocumentClaimAssignment.status == AssignmentStatus.CANDIDATE,
        ]
        if keep:
            conditions.append(DocumentClaimAssignment.claim_id.not_in(keep))

        deleted = await self.delete_where(*conditions)
        if deleted:
            LOGGER.info(f"Cleared {deleted} stale candidates for document {document_id}")
        return deleted

    async def list_by_status(self, status: AssignmentStatus) -> List[DocumentClaimAssignment]:
        return await self.find(DocumentClaimAssignment.status == status)

    async def get_for_document(self, document_id: IdLike) -> List[DocumentClaimAssignment]:
        return await self.find(DocumentClaimAssignment.document_id == to_uuid(document_id))

    async def get_assigned_document_ids(self) -> Set[str]:
        """String ids of every document referenced by any assignment."""
        result = await self.session.execute(select(DocumentClaimAssignment.document_id).distinct())
        return {str(document_id) for document_id in result.scalars().all()}

    async def transition(
        self,
        assignment: DocumentClaimAssignment,
        target: AssignmentStatus,
        **fields: Any,
    ) -> DocumentClaimAssignment:
        """Move an assignment to ``target`` and persist review metadata.

        Raises:
            InvalidTransitionError: If the status change is not allowed
        """
        current = AssignmentStatus(assignment.status)
        if target not in ASSIGNMENT_TRANSITIONS[current]:
            raise InvalidTransitionError("assignment", current.value, target.value)

        updated = await self.update(assignment.id, status=target, **fields)
        LOGGER.info(f"Assignment {assignment.id} moved {current.value} -> {target.value}")
        return updated
