from claimlink.repositories.assignment_repository import AssignmentRepository
from claimlink.repositories.claim_repository import ClaimRepository
from claimlink.repositories.document_repository import DocumentRepository
from claimlink.repositories.draft_claim_repository import DraftClaimRepository
from claimlink.repositories.illness_repository import IllnessRepository

__all__ = [
    "AssignmentRepository",
    "ClaimRepository",
    "DocumentRepository",
    "DraftClaimRepository",
    "IllnessRepository",
]
