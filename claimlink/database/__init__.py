from claimlink.database.models import (
    Claim,
    ClaimLineItem,
    DocumentClaimAssignment,
    DraftClaim,
    Illness,
    MedicalDocument,
)

__all__ = [
    "Claim",
    "ClaimLineItem",
    "DocumentClaimAssignment",
    "DraftClaim",
    "Illness",
    "MedicalDocument",
]
