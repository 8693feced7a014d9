from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.database.models import Illness
from claimlink.repositories.base_repository import BaseRepository
from claimlink.schemas.documents import RelevantAccount
from claimlink.utils.ids import IdLike
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


class IllnessRepository(BaseRepository[Illness]):
    """Repository for illness records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Illness)

    async def add_relevant_accounts(
        self, illness_id: IdLike, accounts: Iterable[RelevantAccount]
    ) -> Optional[Illness]:
        """Merge accounts into an illness and commit.

        Returns:
            The illness (unchanged when nothing new was added), None if missing
        """
        illness = await self.get_by_id(illness_id)
        if not illness:
            return None

        if not self.merge_relevant_accounts(illness, accounts):
            return illness
        return await self.update(illness.id, relevant_accounts=illness.relevant_accounts)

    def merge_relevant_accounts(self, illness: Illness, accounts: Iterable[RelevantAccount]) -> int:
        """Merge accounts into a loaded illness, de-duplicated by email.

        Nothing is committed; the caller's next commit persists the change.

        Returns:
            Number of accounts added
        """
        known = {account.email.lower() for account in illness.accounts}
        new_accounts = []
        for account in accounts:
            email = account.email.lower()
            if email in known:
                continue
            known.add(email)
            new_accounts.append(account.model_dump(mode="json"))

        if new_accounts:
            LOGGER.info(f"Adding {len(new_accounts)} relevant accounts to illness {illness.id}")
            # Reassign so the JSON column is flagged dirty
            illness.relevant_accounts = [*(illness.relevant_accounts or []), *new_accounts]
        return len(new_accounts)
