"""Enumerations shared by models, schemas and services."""

from enum import Enum


class DocumentSourceType(str, Enum):
    """Where a medical document came from."""
    EMAIL = "email"
    ATTACHMENT = "attachment"
    CALENDAR = "calendar"


class DocumentClassification(str, Enum):
    """Content classification assigned during document processing."""
    MEDICAL_BILL = "medical_bill"
    CORRESPONDENCE = "correspondence"
    RECEIPT = "receipt"
    PRESCRIPTION = "prescription"
    LAB_RESULT = "lab_result"
    INSURANCE_STATEMENT = "insurance_statement"
    APPOINTMENT = "appointment"
    UNKNOWN = "unknown"


class AssignmentStatus(str, Enum):
    """Review status of a document-claim assignment."""
    CANDIDATE = "candidate"  # Created by the matcher, awaiting review
    CONFIRMED = "confirmed"  # Reviewer linked it to an illness
    REJECTED = "rejected"


class MatchReasonType(str, Enum):
    """Category of a single scoring reason."""
    EXACT_AMOUNT = "exact_amount"
    APPROXIMATE_AMOUNT = "approximate_amount"
    DATE_PROXIMITY = "date_proximity"
    PROVIDER_MATCH = "provider_match"
    MANUAL = "manual"


class PaymentSignalSource(str, Enum):
    DETECTED = "detected"
    OVERRIDE = "override"


class DraftClaimStatus(str, Enum):
    """Workflow status of a draft claim."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DraftClaimRange(str, Enum):
    """Date window used when generating draft claims."""
    FOREVER = "forever"
    LAST_MONTH = "last_month"
    LAST_WEEK = "last_week"

    @property
    def days(self):
        """Window length in days, or None when unbounded."""
        return {
            DraftClaimRange.FOREVER: None,
            DraftClaimRange.LAST_MONTH: 30,
            DraftClaimRange.LAST_WEEK: 7,
        }[self]


class TreatmentDateSource(str, Enum):
    MANUAL = "manual"
    CALENDAR = "calendar"


class IllnessType(str, Enum):
    ACUTE = "acute"
    CHRONIC = "chronic"


class AccountRole(str, Enum):
    """Role inferred for an account extracted from a document."""
    PROVIDER = "provider"
    PHARMACY = "pharmacy"
    LAB = "lab"
    INSURANCE = "insurance"
    OTHER = "other"


# Allowed status changes. Anything not listed is rejected.
ASSIGNMENT_TRANSITIONS = {
    AssignmentStatus.CANDIDATE: {AssignmentStatus.CONFIRMED, AssignmentStatus.REJECTED},
    AssignmentStatus.CONFIRMED: {AssignmentStatus.REJECTED},
    AssignmentStatus.REJECTED: {AssignmentStatus.CONFIRMED},
}

DRAFT_CLAIM_TRANSITIONS = {
    DraftClaimStatus.PENDING: {DraftClaimStatus.ACCEPTED, DraftClaimStatus.REJECTED},
    DraftClaimStatus.ACCEPTED: {DraftClaimStatus.PENDING},
    DraftClaimStatus.REJECTED: {DraftClaimStatus.PENDING},
}

BILL_CLASSIFICATIONS = frozenset(
    {DocumentClassification.MEDICAL_BILL, DocumentClassification.RECEIPT}
)
