"""Document-claim matching endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.database import get_async_session as get_session
from claimlink.core.exceptions import AppError
from claimlink.schemas.assignments import (
    AssignmentResponse,
    MatchDocumentsRequest,
    MatchRunResponse,
)
from claimlink.schemas.responses import ApiResponse
from claimlink.services.matching.assignment_engine import AssignmentEngine
from claimlink.services.matching.rematch_runner import RematchRunner, get_rematch_runner
from claimlink.utils.logging import get_logger
from claimlink.utils.responses import create_api_response, raise_http_error

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_assignment_engine(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AssignmentEngine:
    return AssignmentEngine(db_session)


def _run_response(assignments) -> MatchRunResponse:
    return MatchRunResponse(
        created=len(assignments),
        assignments=[AssignmentResponse.model_validate(assignment) for assignment in assignments],
    )


@router.post(
    "/run",
    response_model=ApiResponse,
    summary="Rematch all documents",
    operation_id="run_matching",
)
async def run_matching(
    request: Request,
    db_session: Annotated[AsyncSession, Depends(get_session)],
    runner: Annotated[RematchRunner, Depends(get_rematch_runner)],
) -> ApiResponse:
    """Match every bill and calendar event against all claims."""
    try:
        assignments = await runner.rematch_all(db_session)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=_run_response(assignments),
        message=f"Matching produced {len(assignments)} assignments",
        request=request
    )


@router.post(
    "/documents",
    response_model=ApiResponse,
    summary="Match selected documents",
    operation_id="match_documents",
)
async def match_documents(
    request: Request,
    payload: MatchDocumentsRequest,
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> ApiResponse:
    """Match the given documents; unknown ids are ignored."""
    try:
        assignments = await engine.match_documents_by_ids(payload.document_ids)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=_run_response(assignments),
        message=f"Matched {len(payload.document_ids)} documents",
        request=request
    )


@router.post(
    "/documents/{document_id}",
    response_model=ApiResponse,
    summary="Match one document",
    operation_id="match_document",
)
async def match_document(
    request: Request,
    document_id: str,
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> ApiResponse:
    """Match a single document against all claims."""
    try:
        assignments = await engine.match_document_by_id(document_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=_run_response(assignments),
        message=f"Document matched with {len(assignments)} assignments",
        request=request
    )


@router.get(
    "/stats",
    response_model=ApiResponse,
    status_code=status.HTTP_200_OK,
    summary="Matching statistics",
    operation_id="get_match_stats",
)
async def get_match_stats(
    request: Request,
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> ApiResponse:
    """Coverage and score distribution of stored assignments."""
    stats = await engine.get_match_stats()
    return create_api_response(
        data=stats,
        message="Match statistics retrieved successfully",
        request=request
    )
