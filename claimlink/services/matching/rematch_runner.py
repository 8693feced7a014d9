"""Single-flight batch rematching."""

import asyncio
from typing import Callable, List

from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.exceptions import MatchingError, RematchInProgressError
from claimlink.database.models import DocumentClaimAssignment
from claimlink.services.base_service import BaseService
from claimlink.services.matching.assignment_engine import AssignmentEngine
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RematchRunner(BaseService):
    """Runs ``match_all_documents`` with at most one batch in flight.

    The guard lives on the runner instance, so the application shares a
    single runner (see ``get_rematch_runner``). A second request while a
    batch is running fails fast instead of queueing.
    """

    error_class = MatchingError

    def __init__(self, engine_factory: Callable[[AsyncSession], AssignmentEngine] = AssignmentEngine):
        super().__init__()
        self.engine_factory = engine_factory
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def validate(self, session: AsyncSession) -> None:
        if self._lock.locked():
            raise RematchInProgressError("A rematch is already running")

    async def run(self, session: AsyncSession) -> List[DocumentClaimAssignment]:
        # validate() and acquire() run without an await in between, so no
        # other task can take the lock after the check
        async with self._lock:
            LOGGER.info("Starting batch rematch")
            engine = self.engine_factory(session)
            assignments = await engine.match_all_documents()
            LOGGER.info(f"Batch rematch finished with {len(assignments)} assignments")
            return assignments

    async def rematch_all(self, session: AsyncSession) -> List[DocumentClaimAssignment]:
        """Rematch every matchable document.

        Raises:
            RematchInProgressError: If another rematch is running
            MatchingError: If the rematch fails
        """
        return await self.execute(session)


_runner = RematchRunner()


def get_rematch_runner() -> RematchRunner:
    return _runner
