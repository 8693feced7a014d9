"""Extraction of provider contacts from medical documents.

Accounts found on confirmed evidence are stored on the illness so future
correspondence from the same provider can be recognised.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional

from claimlink.database.models import MedicalDocument
from claimlink.schemas.documents import RelevantAccount
from claimlink.schemas.enums import AccountRole, DocumentSourceType
from claimlink.utils.dates import utcnow
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _compile(patterns: List[str]) -> List[re.Pattern]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


PHARMACY_PATTERNS = _compile([
    r"pharmacy", r"apothecary", r"apotheke", r"farmacia", r"rx", r"drug",
    r"med(s|ication)?store", r"walgreen", r"cvs", r"boots",
])

LAB_PATTERNS = _compile([
    r"lab", r"laboratory", r"diagnostic", r"pathology", r"test", r"analysis",
    r"quest", r"labcorp",
])

INSURANCE_PATTERNS = _compile([
    r"insurance", r"cigna", r"aetna", r"anthem", r"united.*health", r"humana",
    r"kaiser", r"blue.*cross", r"blue.*shield", r"assurance", r"versicherung",
])

PROVIDER_PATTERNS = _compile([
    r"hospital", r"clinic", r"medical", r"health", r"care", r"doctor", r"dr\.",
    r"nhs", r"therapy", r"psycho", r"dentist", r"dental", r"ortho", r"physio",
    r"chiro", r"optic", r"eye", r"vision",
])

# Checked in order; the first group that matches decides the role
ROLE_PATTERNS = (
    (AccountRole.PHARMACY, PHARMACY_PATTERNS),
    (AccountRole.LAB, LAB_PATTERNS),
    (AccountRole.INSURANCE, INSURANCE_PATTERNS),
    (AccountRole.PROVIDER, PROVIDER_PATTERNS),
)

PERSONAL_EMAIL_DOMAINS = frozenset({
    "gmail.com", "googlemail.com", "yahoo.com", "yahoo.co.uk", "hotmail.com",
    "outlook.com", "live.com", "msn.com", "aol.com", "icloud.com", "me.com",
    "mac.com", "protonmail.com", "proton.me", "mail.com", "inbox.com",
    "zoho.com", "yandex.com", "gmx.com", "gmx.de", "web.de", "t-online.de",
    "freenet.de",
})

FROM_ADDRESS_RE = re.compile(r"^(.+?)\s*<(.+)>$")


def _domain(email: str) -> str:
    _, _, domain = email.partition("@")
    return domain.lower()


def infer_role(email: str, name: Optional[str] = None) -> AccountRole:
    text = f"{_domain(email)} {name or ''}".lower()
    for role, patterns in ROLE_PATTERNS:
        if any(pattern.search(text) for pattern in patterns):
            return role
    return AccountRole.OTHER


def is_personal_email(email: str) -> bool:
    return _domain(email) in PERSONAL_EMAIL_DOMAINS


class AccountExtractor:
    """Pulls sender, organizer and attendee addresses out of a document."""

    def extract(self, document: MedicalDocument) -> List[RelevantAccount]:
        """Accounts found on the document, without timestamps or source id."""
        accounts: Dict[str, RelevantAccount] = {}

        def add(email: Optional[str], name: Optional[str] = None) -> None:
            normalized = (email or "").strip().lower()
            if not normalized or "@" not in normalized:
                return
            if is_personal_email(normalized) or normalized in accounts:
                return
            trimmed_name = (name or "").strip() or None
            accounts[normalized] = RelevantAccount(
                email=normalized,
                name=trimmed_name,
                role=infer_role(normalized, name),
            )

        if document.source_type in (DocumentSourceType.EMAIL, DocumentSourceType.ATTACHMENT):
            if document.from_address:
                match = FROM_ADDRESS_RE.match(document.from_address)
                if match:
                    add(match.group(2), match.group(1).strip())
                else:
                    add(document.from_address)

        if document.is_calendar:
            organizer = document.organizer
            if organizer and organizer.email:
                add(organizer.email, organizer.display_name)
            for attendee in document.attendees:
                if attendee.organizer or attendee.response == "declined":
                    continue
                add(attendee.email, attendee.name)

        return list(accounts.values())

    def extract_and_prepare(
        self, document: MedicalDocument, now: Optional[datetime] = None
    ) -> List[RelevantAccount]:
        """Extracted accounts stamped with ``added_at`` and the source document id."""
        added_at = now or utcnow()
        accounts = [
            account.model_copy(update={"added_at": added_at, "source_document_id": document.id})
            for account in self.extract(document)
        ]
        LOGGER.debug(f"Extracted {len(accounts)} accounts from document {document.id}")
        return accounts
