from claimlink.services.draft_claims.draft_claim_generator import DraftClaimGenerator
from claimlink.services.draft_claims.draft_claim_lifecycle import DraftClaimLifecycle
from claimlink.services.draft_claims.draft_claim_promoter import DraftClaimPromoter
from claimlink.services.draft_claims.payment_proof import ProofResolver

__all__ = ["DraftClaimGenerator", "DraftClaimLifecycle", "DraftClaimPromoter", "ProofResolver"]
