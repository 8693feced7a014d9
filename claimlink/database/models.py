"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claimlink.core.database import Base
from claimlink.schemas.documents import (
    CalendarAttendee,
    CalendarOrganizer,
    DetectedAmount,
    PaymentOverride,
    RelevantAccount,
)
from claimlink.schemas.draft_claims import DraftClaimPayment
from claimlink.schemas.enums import (
    AssignmentStatus,
    DocumentClassification,
    DocumentSourceType,
    DraftClaimStatus,
    IllnessType,
    MatchReasonType,
    TreatmentDateSource,
)
from claimlink.utils.dates import utcnow


def _enum(enum_cls, length: int = 32) -> SAEnum:
    """Non-native enum column storing the member values."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
    )


class MedicalDocument(Base):
    """Email, attachment or calendar event that may evidence a claim."""

    __tablename__ = "medical_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    source_type: Mapped[DocumentSourceType] = mapped_column(_enum(DocumentSourceType), nullable=False)
    classification: Mapped[DocumentClassification] = mapped_column(
        _enum(DocumentClassification), nullable=False, default=DocumentClassification.UNKNOWN
    )

    # Email / attachment metadata
    email_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    account: Mapped[str | None] = mapped_column(String, nullable=True)
    filename: Mapped[str | None] = mapped_column(String, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String, nullable=True)
    from_address: Mapped[str | None] = mapped_column(String, nullable=True)
    to_address: Mapped[str | None] = mapped_column(String, nullable=True)
    subject: Mapped[str | None] = mapped_column(String, nullable=True)
    body_snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    ocr_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Extraction results
    detected_amounts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    payment_override: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    medical_keywords: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Calendar-specific fields
    calendar_event_id: Mapped[str | None] = mapped_column(String, nullable=True)
    calendar_summary: Mapped[str | None] = mapped_column(String, nullable=True)
    calendar_location: Mapped[str | None] = mapped_column(String, nullable=True)
    calendar_start: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    calendar_end: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    calendar_organizer: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    calendar_attendees: Mapped[list | None] = mapped_column(JSON, nullable=True)

    processed_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    archived_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    @property
    def amounts(self) -> List[DetectedAmount]:
        return [DetectedAmount.model_validate(item) for item in self.detected_amounts or []]

    @property
    def override(self) -> Optional[PaymentOverride]:
        if not self.payment_override:
            return None
        return PaymentOverride.model_validate(self.payment_override)

    @property
    def organizer(self) -> Optional[CalendarOrganizer]:
        if not self.calendar_organizer:
            return None
        return CalendarOrganizer.model_validate(self.calendar_organizer)

    @property
    def attendees(self) -> List[CalendarAttendee]:
        return [CalendarAttendee.model_validate(item) for item in self.calendar_attendees or []]

    @property
    def is_calendar(self) -> bool:
        return self.source_type == DocumentSourceType.CALENDAR

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def effective_date(self) -> Optional[datetime]:
        """Plain date, falling back to the calendar start."""
        return self.date or self.calendar_start


class Claim(Base):
    """Claim record imported from the insurer portal."""

    __tablename__ = "claims"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    claim_number: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    submission_number: Mapped[str | None] = mapped_column(String, nullable=True)
    member_name: Mapped[str | None] = mapped_column(String, nullable=True)
    claim_amount: Mapped[float] = mapped_column(Float, nullable=False)
    claim_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    treatment_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    submission_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    status: Mapped[str | None] = mapped_column(String, nullable=True)  # processed | pending | rejected
    scraped_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    archived_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    line_items: Mapped[list["ClaimLineItem"]] = relationship(
        "ClaimLineItem",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimLineItem.position",
        lazy="selectin",
    )


class ClaimLineItem(Base):
    """Individual treatment within a claim submission."""

    __tablename__ = "claim_line_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    claim_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    treatment_description: Mapped[str] = mapped_column(String, nullable=False, default="")
    treatment_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    claim_amount: Mapped[float] = mapped_column(Float, nullable=False)
    claim_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    claim: Mapped["Claim"] = relationship("Claim", back_populates="line_items")


class DocumentClaimAssignment(Base):
    """Link (candidate or reviewed) between a document and a claim."""

    __tablename__ = "document_claim_assignments"
    __table_args__ = (
        UniqueConstraint("document_id", "claim_id", name="uq_assignment_document_claim"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("medical_documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    claim_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True
    )
    illness_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("illnesses.id", ondelete="SET NULL"), nullable=True
    )
    match_score: Mapped[float] = mapped_column(Float, nullable=False)
    match_reason_type: Mapped[MatchReasonType] = mapped_column(_enum(MatchReasonType), nullable=False)
    match_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[AssignmentStatus] = mapped_column(
        _enum(AssignmentStatus), nullable=False, default=AssignmentStatus.CANDIDATE
    )
    amount_match_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    date_match_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    confirmed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)


class DraftClaim(Base):
    """Locally generated claim built from unattached payment evidence."""

    __tablename__ = "draft_claims"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    status: Mapped[DraftClaimStatus] = mapped_column(
        _enum(DraftClaimStatus), nullable=False, default=DraftClaimStatus.PENDING
    )
    primary_document_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    # Stored as string ids: primary + proofs + calendar documents
    document_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    payment: Mapped[dict] = mapped_column(JSON, nullable=False)
    payment_proof_document_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)
    payment_proof_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    illness_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("illnesses.id", ondelete="SET NULL"), nullable=True
    )
    doctor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    treatment_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    treatment_date_source: Mapped[TreatmentDateSource | None] = mapped_column(
        _enum(TreatmentDateSource), nullable=True
    )
    calendar_document_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)

    generated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    accepted_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    @property
    def payment_snapshot(self) -> DraftClaimPayment:
        return DraftClaimPayment.model_validate(self.payment)

    @property
    def has_payment_proof(self) -> bool:
        return bool(self.payment_proof_document_ids) or bool((self.payment_proof_text or "").strip())


class Illness(Base):
    """Patient condition that claims and evidence are filed under."""

    __tablename__ = "illnesses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    icd_code: Mapped[str | None] = mapped_column(String, nullable=True)
    type: Mapped[IllnessType] = mapped_column(_enum(IllnessType), nullable=False, default=IllnessType.ACUTE)
    onset_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    resolved_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    relevant_accounts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)

    @property
    def accounts(self) -> List[RelevantAccount]:
        return [RelevantAccount.model_validate(item) for item in self.relevant_accounts or []]
