from typing import List

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.database.models import MedicalDocument
from claimlink.repositories.base_repository import BaseRepository
from claimlink.schemas.enums import DocumentClassification, DocumentSourceType
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentRepository(BaseRepository[MedicalDocument]):
    """Repository for MedicalDocument records.

    Documents are written by the ingestion pipeline; the matching core only
    reads them.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, MedicalDocument)

    async def get_active(self) -> List[MedicalDocument]:
        """All documents that have not been archived."""
        return await self.find(MedicalDocument.archived_at.is_(None))

    async def get_matchable(self) -> List[MedicalDocument]:
        """Medical bills and calendar events that can be scored against claims.

        The amount/date checks run in Python because they depend on JSON
        contents; this query only narrows by type.
        """
        candidates = await self.find(
            or_(
                MedicalDocument.classification == DocumentClassification.MEDICAL_BILL,
                MedicalDocument.source_type == DocumentSourceType.CALENDAR,
            )
        )
        matchable = [
            document
            for document in candidates
            if (
                document.classification == DocumentClassification.MEDICAL_BILL
                and document.detected_amounts
            )
            or (document.is_calendar and document.effective_date is not None)
        ]
        LOGGER.debug(
            f"{len(matchable)} of {len(candidates)} bill/calendar documents are matchable"
        )
        return matchable
