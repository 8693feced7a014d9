"""Draft claim endpoints."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.database import get_async_session as get_session
from claimlink.core.exceptions import AppError
from claimlink.schemas.assignments import AssignmentResponse, MatchRunResponse
from claimlink.schemas.draft_claims import (
    AcceptDraftClaimRequest,
    DraftClaimResponse,
    GenerateDraftClaimsRequest,
    GenerateDraftClaimsResponse,
    PromoteDraftResponse,
)
from claimlink.schemas.enums import DraftClaimStatus
from claimlink.schemas.responses import ApiResponse
from claimlink.services.draft_claims.draft_claim_generator import DraftClaimGenerator
from claimlink.services.draft_claims.draft_claim_lifecycle import DraftClaimLifecycle
from claimlink.services.draft_claims.draft_claim_promoter import DraftClaimPromoter
from claimlink.services.matching.assignment_engine import AssignmentEngine
from claimlink.utils.logging import get_logger
from claimlink.utils.responses import create_api_response, raise_http_error

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_lifecycle(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> DraftClaimLifecycle:
    return DraftClaimLifecycle(db_session)


async def get_generator(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> DraftClaimGenerator:
    return DraftClaimGenerator(db_session)


async def get_promoter(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> DraftClaimPromoter:
    return DraftClaimPromoter(db_session)


async def get_assignment_engine(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AssignmentEngine:
    return AssignmentEngine(db_session)


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List draft claims",
    operation_id="list_draft_claims",
)
async def list_draft_claims(
    request: Request,
    lifecycle: Annotated[DraftClaimLifecycle, Depends(get_lifecycle)],
    status_filter: Optional[DraftClaimStatus] = Query(None, alias="status"),
) -> ApiResponse:
    drafts = await lifecycle.list_draft_claims(status_filter)
    return create_api_response(
        data=[DraftClaimResponse.model_validate(draft) for draft in drafts],
        message="Draft claims retrieved successfully",
        request=request
    )


@router.post(
    "/generate",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate draft claims from unattached payments",
    operation_id="generate_draft_claims",
)
async def generate_draft_claims(
    request: Request,
    payload: GenerateDraftClaimsRequest,
    generator: Annotated[DraftClaimGenerator, Depends(get_generator)],
) -> ApiResponse:
    """Create pending drafts for every eligible payment document in the range."""
    drafts = await generator.generate_draft_claims(payload.range)
    data = GenerateDraftClaimsResponse(
        created=len(drafts),
        drafts=[DraftClaimResponse.model_validate(draft) for draft in drafts],
    )
    return create_api_response(
        data=data,
        message=f"Generated {len(drafts)} draft claims",
        request=request
    )


@router.post(
    "/promote/{document_id}",
    response_model=ApiResponse,
    summary="Promote a document to a draft claim",
    operation_id="promote_document_to_draft_claim",
)
async def promote_document(
    request: Request,
    document_id: str,
    promoter: Annotated[DraftClaimPromoter, Depends(get_promoter)],
) -> ApiResponse:
    """Create a draft for the document's email group, or extend the draft that holds it."""
    try:
        result = await promoter.promote_document(document_id)
    except AppError as e:
        raise_http_error(e, request)

    data = PromoteDraftResponse(
        draft=DraftClaimResponse.model_validate(result.draft),
        created=result.created,
        expanded=result.expanded,
    )
    return create_api_response(
        data=data,
        message="Draft claim created" if result.created else "Draft claim updated",
        request=request
    )


@router.post(
    "/run-matching",
    response_model=ApiResponse,
    summary="Match documents of accepted draft claims",
    operation_id="match_accepted_draft_claims",
)
async def run_matching(
    request: Request,
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> ApiResponse:
    try:
        assignments = await engine.match_accepted_draft_claims()
    except AppError as e:
        raise_http_error(e, request)

    data = MatchRunResponse(
        created=len(assignments),
        assignments=[AssignmentResponse.model_validate(assignment) for assignment in assignments],
    )
    return create_api_response(
        data=data,
        message=f"Matching produced {len(assignments)} assignments",
        request=request
    )


@router.post(
    "/{draft_id}/accept",
    response_model=ApiResponse,
    summary="Accept a draft claim",
    operation_id="accept_draft_claim",
)
async def accept_draft_claim(
    request: Request,
    draft_id: str,
    payload: AcceptDraftClaimRequest,
    lifecycle: Annotated[DraftClaimLifecycle, Depends(get_lifecycle)],
) -> ApiResponse:
    try:
        draft = await lifecycle.accept_draft_claim(draft_id, payload)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=DraftClaimResponse.model_validate(draft),
        message="Draft claim accepted",
        request=request
    )


@router.post(
    "/{draft_id}/reject",
    response_model=ApiResponse,
    summary="Reject a draft claim",
    operation_id="reject_draft_claim",
)
async def reject_draft_claim(
    request: Request,
    draft_id: str,
    lifecycle: Annotated[DraftClaimLifecycle, Depends(get_lifecycle)],
) -> ApiResponse:
    try:
        draft = await lifecycle.reject_draft_claim(draft_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=DraftClaimResponse.model_validate(draft),
        message="Draft claim rejected",
        request=request
    )


@router.post(
    "/{draft_id}/reopen",
    response_model=ApiResponse,
    summary="Return a draft claim to pending",
    operation_id="reopen_draft_claim",
)
async def reopen_draft_claim(
    request: Request,
    draft_id: str,
    lifecycle: Annotated[DraftClaimLifecycle, Depends(get_lifecycle)],
) -> ApiResponse:
    try:
        draft = await lifecycle.mark_draft_claim_pending(draft_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=DraftClaimResponse.model_validate(draft),
        message="Draft claim reopened",
        request=request
    )
