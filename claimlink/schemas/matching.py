"""Schemas produced by payment signal resolution and match scoring."""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from claimlink.schemas.enums import MatchReasonType, PaymentSignalSource


class PaymentSignal(BaseModel):
    """Single normalised payment amount for a document."""

    amount: float
    currency: str
    source: PaymentSignalSource
    raw_text: Optional[str] = None
    context: Optional[str] = None
    confidence: Optional[float] = None
    override_note: Optional[str] = None
    override_updated_at: Optional[datetime] = None


class MatchReason(BaseModel):
    """One scored contribution to a match."""

    type: MatchReasonType
    score: float
    description: str


class AmountMatchDetails(BaseModel):
    document_amount: float
    document_currency: str
    claim_amount: float
    claim_currency: str
    difference: float
    difference_percent: float


class DateMatchDetails(BaseModel):
    document_date: datetime
    claim_date: datetime
    days_difference: int


class MatchResult(BaseModel):
    """Outcome of scoring one document against one claim."""

    document_id: UUID
    claim_id: UUID
    score: float = Field(..., ge=0, le=100)
    reasons: List[MatchReason] = Field(default_factory=list)
    amount_match_details: Optional[AmountMatchDetails] = None
    date_match_details: Optional[DateMatchDetails] = None

    @property
    def primary_reason_type(self) -> MatchReasonType:
        if not self.reasons:
            return MatchReasonType.APPROXIMATE_AMOUNT
        return self.reasons[0].type

    @property
    def reason_text(self) -> str:
        return "; ".join(reason.description for reason in self.reasons)


class MatchStats(BaseModel):
    """Snapshot of matching coverage across the stores."""

    total_documents: int
    documents_with_amounts: int
    total_claims: int
    total_assignments: int
    candidates: int
    confirmed: int
    rejected: int
    avg_match_score: float
    matches_by_score: Dict[str, int]
