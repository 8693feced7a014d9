"""Pydantic schemas for draft claims."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from claimlink.schemas.enums import (
    DraftClaimRange,
    DraftClaimStatus,
    PaymentSignalSource,
    TreatmentDateSource,
)


class DraftClaimPayment(BaseModel):
    """Payment snapshot captured when a draft claim is created.

    Stored as JSON on the draft and never refreshed from the source document.
    """
    model_config = ConfigDict(frozen=True)

    amount: float
    currency: str
    source: Optional[PaymentSignalSource] = None
    raw_text: Optional[str] = None
    context: Optional[str] = None
    confidence: Optional[float] = None
    override_note: Optional[str] = None
    override_updated_at: Optional[datetime] = None


class AcceptDraftClaimRequest(BaseModel):
    """Reviewer input for accepting a draft claim."""

    illness_id: Optional[UUID] = Field(None, description="Illness the claim belongs to")
    doctor_notes: Optional[str] = Field(None, description="Notes for the insurer; required")
    treatment_date: Optional[str] = Field(
        None, description="Manual treatment date (ISO-8601); wins over calendar documents"
    )
    calendar_document_ids: List[UUID] = Field(
        default_factory=list, description="Calendar events used to derive the treatment date"
    )
    payment_proof_document_ids: List[UUID] = Field(default_factory=list)
    payment_proof_text: Optional[str] = None


class GenerateDraftClaimsRequest(BaseModel):
    range: DraftClaimRange = DraftClaimRange.FOREVER


class DraftClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: DraftClaimStatus
    primary_document_id: UUID
    document_ids: List[str]
    payment: DraftClaimPayment
    payment_proof_document_ids: Optional[List[str]] = None
    payment_proof_text: Optional[str] = None
    illness_id: Optional[UUID] = None
    doctor_notes: Optional[str] = None
    treatment_date: Optional[datetime] = None
    treatment_date_source: Optional[TreatmentDateSource] = None
    calendar_document_ids: Optional[List[str]] = None
    generated_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None


class GenerateDraftClaimsResponse(BaseModel):
    created: int
    drafts: List[DraftClaimResponse]


class PromoteDraftResponse(BaseModel):
    draft: DraftClaimResponse
    created: bool
    expanded: bool
