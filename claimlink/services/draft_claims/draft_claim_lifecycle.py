"""Draft claim review workflow: accept, reject and re-open.

Every check (existence, transition, input) runs before the single update
call, so a failed request leaves the draft untouched.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.config import DraftClaimSettings, settings
from claimlink.core.exceptions import (
    DocumentNotFoundError,
    DraftClaimNotFoundError,
    IllnessNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from claimlink.database.models import DraftClaim, MedicalDocument
from claimlink.repositories.document_repository import DocumentRepository
from claimlink.repositories.draft_claim_repository import DraftClaimRepository
from claimlink.repositories.illness_repository import IllnessRepository
from claimlink.schemas.draft_claims import AcceptDraftClaimRequest
from claimlink.schemas.enums import (
    DRAFT_CLAIM_TRANSITIONS,
    DraftClaimStatus,
    TreatmentDateSource,
)
from claimlink.utils.dates import ensure_utc, parse_datetime, utcnow
from claimlink.utils.ids import IdLike, dedupe_ids
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


def get_calendar_treatment_date(calendar_documents: Iterable[MedicalDocument]) -> Optional[datetime]:
    """Earliest event start (or date) across the calendar documents."""
    dates = [
        ensure_utc(document.calendar_start or document.date)
        for document in calendar_documents
        if document.calendar_start or document.date
    ]
    return min(dates) if dates else None


class DraftClaimLifecycle:
    """State machine for draft claims."""

    def __init__(
        self,
        session: AsyncSession,
        config: Optional[DraftClaimSettings] = None,
    ):
        self.session = session
        self.config = config or settings.draft_claims
        self.draft_claim_repo = DraftClaimRepository(session)
        self.document_repo = DocumentRepository(session)
        self.illness_repo = IllnessRepository(session)

    async def list_draft_claims(self, status: Optional[DraftClaimStatus] = None) -> List[DraftClaim]:
        if status is None:
            return await self.draft_claim_repo.get_all()
        return await self.draft_claim_repo.list_by_status(status)

    async def _get_draft(self, draft_id: IdLike) -> DraftClaim:
        draft = await self.draft_claim_repo.get_by_id(draft_id)
        if draft is None:
            raise DraftClaimNotFoundError(draft_id)
        return draft

    @staticmethod
    def _check_transition(draft: DraftClaim, target: DraftClaimStatus) -> None:
        current = DraftClaimStatus(draft.status)
        if target not in DRAFT_CLAIM_TRANSITIONS[current]:
            raise InvalidTransitionError("draft claim", current.value, target.value)

    async def _resolve_treatment_date(
        self, request: AcceptDraftClaimRequest
    ) -> Tuple[datetime, TreatmentDateSource, List[str]]:
        """Manual date wins; otherwise the earliest selected calendar event.

        Selected calendar ids are kept alongside a manual date but are only
        checked when they supply the date.

        Returns:
            (treatment date, source, calendar document ids to attach)
        """
        calendar_ids = dedupe_ids(request.calendar_document_ids)

        manual = (request.treatment_date or "").strip()
        if manual:
            try:
                return parse_datetime(manual), TreatmentDateSource.MANUAL, calendar_ids
            except ValueError:
                raise ValidationError(f"treatment_date must be a valid date: {manual!r}")

        if not calendar_ids:
            raise ValidationError(
                "treatment_date or calendar_document_ids is required to accept a draft claim"
            )

        calendar_documents = []
        for document_id in calendar_ids:
            document = await self.document_repo.get_by_id(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id, f"Calendar document not found: {document_id}")
            if not document.is_calendar:
                raise ValidationError(
                    f"Document {document_id} is not a calendar document"
                )
            calendar_documents.append(document)

        treatment_date = get_calendar_treatment_date(calendar_documents)
        if treatment_date is None:
            raise ValidationError("No usable dates found in the selected calendar documents")
        return treatment_date, TreatmentDateSource.CALENDAR, calendar_ids

    async def _resolve_proof(
        self, draft: DraftClaim, request: AcceptDraftClaimRequest
    ) -> Tuple[List[str], Optional[str]]:
        proof_ids = dedupe_ids(
            [*(draft.payment_proof_document_ids or []), *request.payment_proof_document_ids]
        )
        for document_id in request.payment_proof_document_ids:
            if await self.document_repo.get_by_id(document_id) is None:
                raise DocumentNotFoundError(document_id)

        proof_text = (request.payment_proof_text or "").strip() or draft.payment_proof_text
        if self.config.require_payment_proof and not proof_ids and not (proof_text or "").strip():
            raise ValidationError("Payment proof (documents or text) is required to accept a draft claim")
        return proof_ids, proof_text

    async def accept_draft_claim(self, draft_id: IdLike, request: AcceptDraftClaimRequest) -> DraftClaim:
        """Accept a pending draft claim.

        Raises:
            DraftClaimNotFoundError: If the draft does not exist
            IllnessNotFoundError: If the illness does not exist
            DocumentNotFoundError: If a calendar or proof document does not exist
            ValidationError: If required input is missing or invalid
        """
        draft = await self._get_draft(draft_id)
        self._check_transition(draft, DraftClaimStatus.ACCEPTED)

        if request.illness_id is None:
            raise ValidationError("illness_id is required to accept a draft claim")
        doctor_notes = (request.doctor_notes or "").strip()
        if not doctor_notes:
            raise ValidationError("doctor_notes is required to accept a draft claim")

        illness = await self.illness_repo.get_by_id(request.illness_id)
        if illness is None:
            raise IllnessNotFoundError(request.illness_id)

        treatment_date, date_source, calendar_ids = await self._resolve_treatment_date(request)
        proof_ids, proof_text = await self._resolve_proof(draft, request)

        fields = {
            "status": DraftClaimStatus.ACCEPTED,
            "illness_id": illness.id,
            "doctor_notes": doctor_notes,
            "treatment_date": treatment_date,
            "treatment_date_source": date_source,
            "document_ids": dedupe_ids([*(draft.document_ids or []), *proof_ids, *calendar_ids]),
            "payment_proof_document_ids": proof_ids or None,
            "payment_proof_text": proof_text,
            "accepted_at": utcnow(),
        }
        if calendar_ids:
            fields["calendar_document_ids"] = calendar_ids

        updated = await self.draft_claim_repo.update_draft_claim(draft.id, **fields)
        LOGGER.info(
            f"Accepted draft claim {draft.id} for illness {illness.id}",
            extra={"treatment_date_source": date_source.value},
        )
        return updated

    async def reject_draft_claim(self, draft_id: IdLike) -> DraftClaim:
        """Reject a pending draft claim."""
        draft = await self._get_draft(draft_id)
        self._check_transition(draft, DraftClaimStatus.REJECTED)

        updated = await self.draft_claim_repo.update_draft_claim(
            draft.id, status=DraftClaimStatus.REJECTED, rejected_at=utcnow()
        )
        LOGGER.info(f"Rejected draft claim {draft.id}")
        return updated

    async def mark_draft_claim_pending(self, draft_id: IdLike) -> DraftClaim:
        """Re-open an accepted or rejected draft, keeping what the reviewer entered."""
        draft = await self._get_draft(draft_id)
        self._check_transition(draft, DraftClaimStatus.PENDING)

        updated = await self.draft_claim_repo.update_draft_claim(
            draft.id, status=DraftClaimStatus.PENDING
        )
        LOGGER.info(f"Draft claim {draft.id} returned to pending")
        return updated
