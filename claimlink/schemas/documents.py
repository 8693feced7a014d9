"""Pydantic schemas for the JSON sub-objects stored on documents and illnesses."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from claimlink.schemas.enums import AccountRole


class DetectedAmount(BaseModel):
    """Amount found in a document's OCR text."""

    value: float = Field(..., description="Numeric value")
    currency: str = Field(..., description="ISO currency code, e.g. EUR")
    raw_text: str = Field(default="", description="Text that was parsed, e.g. 'EUR 80.00'")
    context: Optional[str] = Field(None, description="Surrounding text")
    confidence: float = Field(default=0, ge=0, le=100)


class PaymentOverride(BaseModel):
    """Amount set by a user when OCR detection is wrong."""

    amount: float
    currency: str
    note: Optional[str] = None
    updated_at: datetime


class CalendarAttendee(BaseModel):
    email: str
    name: Optional[str] = None
    response: Optional[str] = None  # accepted | declined | tentative | needsAction
    organizer: bool = False


class CalendarOrganizer(BaseModel):
    email: Optional[str] = None
    display_name: Optional[str] = None


class RelevantAccount(BaseModel):
    """Contact linked to an illness, extracted from confirmed evidence."""

    email: str
    name: Optional[str] = None
    role: AccountRole = AccountRole.OTHER
    added_at: Optional[datetime] = None
    source_document_id: Optional[UUID] = None

