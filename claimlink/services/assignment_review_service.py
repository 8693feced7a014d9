"""Human review of candidate assignments."""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.exceptions import (
    AssignmentNotFoundError,
    IllnessNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from claimlink.database.models import DocumentClaimAssignment
from claimlink.repositories.assignment_repository import AssignmentRepository
from claimlink.repositories.document_repository import DocumentRepository
from claimlink.repositories.illness_repository import IllnessRepository
from claimlink.schemas.documents import RelevantAccount
from claimlink.schemas.enums import ASSIGNMENT_TRANSITIONS, AssignmentStatus
from claimlink.services.account_extractor import AccountExtractor
from claimlink.utils.dates import utcnow
from claimlink.utils.ids import IdLike
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AssignmentReviewService:
    """Confirms and rejects assignments.

    Confirming links the assignment to an illness and records the provider
    accounts found on the document against that illness.
    """

    def __init__(self, session: AsyncSession, account_extractor: Optional[AccountExtractor] = None):
        self.session = session
        self.assignment_repo = AssignmentRepository(session)
        self.document_repo = DocumentRepository(session)
        self.illness_repo = IllnessRepository(session)
        self.account_extractor = account_extractor or AccountExtractor()

    async def _get_assignment(self, assignment_id: IdLike) -> DocumentClaimAssignment:
        assignment = await self.assignment_repo.get_by_id(assignment_id)
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)
        return assignment

    @staticmethod
    def _check_transition(assignment: DocumentClaimAssignment, target: AssignmentStatus) -> None:
        current = AssignmentStatus(assignment.status)
        if target not in ASSIGNMENT_TRANSITIONS[current]:
            raise InvalidTransitionError("assignment", current.value, target.value)

    async def list_assignments(self, status: Optional[AssignmentStatus] = None) -> List[DocumentClaimAssignment]:
        if status is None:
            return await self.assignment_repo.get_all()
        return await self.assignment_repo.list_by_status(status)

    async def preview_accounts(self, assignment_id: IdLike) -> List[RelevantAccount]:
        """Accounts that confirming the assignment would add to an illness."""
        assignment = await self._get_assignment(assignment_id)
        document = await self.document_repo.get_by_id(assignment.document_id)
        if document is None:
            return []
        return self.account_extractor.extract_and_prepare(document)

    async def confirm_assignment(
        self,
        assignment_id: IdLike,
        illness_id: Optional[IdLike],
        review_notes: Optional[str] = None,
        confirmed_by: Optional[str] = None,
    ) -> DocumentClaimAssignment:
        """Confirm an assignment against an illness.

        Raises:
            ValidationError: If no illness id is given or the transition is not allowed
            AssignmentNotFoundError: If the assignment does not exist
            IllnessNotFoundError: If the illness does not exist
        """
        if not illness_id:
            raise ValidationError("illness_id is required to confirm an assignment")

        assignment = await self._get_assignment(assignment_id)
        self._check_transition(assignment, AssignmentStatus.CONFIRMED)

        illness = await self.illness_repo.get_by_id(illness_id)
        if illness is None:
            raise IllnessNotFoundError(illness_id)

        document = await self.document_repo.get_by_id(assignment.document_id)
        accounts = self.account_extractor.extract_and_prepare(document) if document else []

        fields = {
            "illness_id": illness.id,
            "confirmed_at": utcnow(),
        }
        if review_notes:
            fields["review_notes"] = review_notes
        if confirmed_by:
            fields["confirmed_by"] = confirmed_by

        # The account merge is committed together with the status change
        try:
            self.illness_repo.merge_relevant_accounts(illness, accounts)
            return await self.assignment_repo.transition(
                assignment, AssignmentStatus.CONFIRMED, **fields
            )
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def reject_assignment(
        self, assignment_id: IdLike, review_notes: Optional[str] = None
    ) -> DocumentClaimAssignment:
        """Reject an assignment.

        Raises:
            AssignmentNotFoundError: If the assignment does not exist
            InvalidTransitionError: If the assignment is already rejected
        """
        assignment = await self._get_assignment(assignment_id)
        fields = {"review_notes": review_notes} if review_notes else {}
        return await self.assignment_repo.transition(assignment, AssignmentStatus.REJECTED, **fields)
