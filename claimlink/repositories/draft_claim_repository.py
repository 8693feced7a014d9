from typing import Any, Iterable, List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.exceptions import ValidationError
from claimlink.database.models import DraftClaim
from claimlink.repositories.base_repository import BaseRepository
from claimlink.schemas.draft_claims import DraftClaimPayment
from claimlink.schemas.enums import DraftClaimStatus
from claimlink.utils.dates import utcnow
from claimlink.utils.ids import IdLike, dedupe_ids, to_uuid
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Set once at creation; the payment snapshot must not follow later edits
# to the source document.
IMMUTABLE_FIELDS = frozenset({"id", "payment", "primary_document_id", "generated_at"})


class DraftClaimRepository(BaseRepository[DraftClaim]):
    """Repository for draft claims."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DraftClaim)

    async def create_draft_claim(
        self,
        primary_document_id: IdLike,
        payment: DraftClaimPayment,
        document_ids: Iterable[IdLike] = (),
        payment_proof_document_ids: Optional[Iterable[IdLike]] = None,
        status: DraftClaimStatus = DraftClaimStatus.PENDING,
    ) -> DraftClaim:
        """Create a draft claim.

        ``document_ids`` always starts with the primary document and is
        de-duplicated. The payment snapshot is serialised to plain JSON so
        it shares nothing with the document it was read from.
        """
        now = utcnow()
        proof_ids = dedupe_ids(payment_proof_document_ids or [])
        return await self.create(
            status=status,
            primary_document_id=to_uuid(primary_document_id),
            document_ids=dedupe_ids([primary_document_id, *document_ids]),
            payment=payment.model_dump(mode="json"),
            payment_proof_document_ids=proof_ids or None,
            generated_at=now,
            updated_at=now,
        )

    async def update_draft_claim(self, id: IdLike, **fields: Any) -> Optional[DraftClaim]:
        """Update mutable draft claim fields.

        Raises:
            ValidationError: If an immutable field is included
        """
        blocked = IMMUTABLE_FIELDS.intersection(fields)
        if blocked:
            raise ValidationError(
                f"Draft claim fields cannot be changed after creation: {', '.join(sorted(blocked))}"
            )
        return await self.update(id, **fields)

    async def list_by_status(self, status: DraftClaimStatus) -> List[DraftClaim]:
        return await self.find(DraftClaim.status == status)

    async def find_by_document(self, document_ids: Iterable[IdLike]) -> Optional[DraftClaim]:
        """First draft whose ``document_ids`` references any of the given ids."""
        wanted = set(dedupe_ids(document_ids))
        for draft in await self.get_all():
            if wanted.intersection(draft.document_ids or []):
                return draft
        return None

    async def get_claimed_document_ids(self) -> Set[str]:
        """String ids of every document referenced by an existing draft."""
        claimed: Set[str] = set()
        for draft in await self.get_all():
            claimed.update(draft.document_ids or [])
        return claimed
