from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.database.models import Claim
from claimlink.repositories.base_repository import BaseRepository


class ClaimRepository(BaseRepository[Claim]):
    """Repository for insurer claim records.

    Line items are loaded eagerly through the relationship, so claims
    returned here can be scored without further queries.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Claim)
