"""Pydantic schemas for document-claim assignments."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from claimlink.schemas.enums import AssignmentStatus, MatchReasonType


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    claim_id: UUID
    illness_id: Optional[UUID] = None
    match_score: float
    match_reason_type: MatchReasonType
    match_reason: str
    status: AssignmentStatus
    amount_match_details: Optional[Dict[str, Any]] = None
    date_match_details: Optional[Dict[str, Any]] = None
    review_notes: Optional[str] = None
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConfirmAssignmentRequest(BaseModel):
    illness_id: Optional[UUID] = Field(None, description="Illness this evidence supports; required")
    review_notes: Optional[str] = None
    confirmed_by: Optional[str] = None


class RejectAssignmentRequest(BaseModel):
    review_notes: Optional[str] = None


class ManualAssignmentRequest(BaseModel):
    document_id: UUID
    claim_id: UUID
    review_notes: Optional[str] = None


class MatchDocumentsRequest(BaseModel):
    document_ids: List[UUID] = Field(..., min_length=1)


class MatchRunResponse(BaseModel):
    created: int
    assignments: List[AssignmentResponse]
