"""Assignment review endpoints."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from claimlink.core.database import get_async_session as get_session
from claimlink.core.exceptions import AppError
from claimlink.schemas.assignments import (
    AssignmentResponse,
    ConfirmAssignmentRequest,
    ManualAssignmentRequest,
    RejectAssignmentRequest,
)
from claimlink.schemas.enums import AssignmentStatus
from claimlink.schemas.responses import ApiResponse
from claimlink.services.assignment_review_service import AssignmentReviewService
from claimlink.services.matching.assignment_engine import AssignmentEngine
from claimlink.utils.logging import get_logger
from claimlink.utils.responses import create_api_response, raise_http_error

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_review_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AssignmentReviewService:
    return AssignmentReviewService(db_session)


async def get_assignment_engine(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AssignmentEngine:
    return AssignmentEngine(db_session)


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List assignments",
    operation_id="list_assignments",
)
async def list_assignments(
    request: Request,
    review_service: Annotated[AssignmentReviewService, Depends(get_review_service)],
    status_filter: Optional[AssignmentStatus] = Query(None, alias="status"),
) -> ApiResponse:
    """List assignments, optionally filtered by status."""
    assignments = await review_service.list_assignments(status_filter)
    return create_api_response(
        data=[AssignmentResponse.model_validate(assignment) for assignment in assignments],
        message="Assignments retrieved successfully",
        request=request
    )


@router.get(
    "/candidates",
    response_model=ApiResponse,
    summary="List candidate assignments awaiting review",
    operation_id="list_candidate_assignments",
)
async def list_candidates(
    request: Request,
    review_service: Annotated[AssignmentReviewService, Depends(get_review_service)],
) -> ApiResponse:
    assignments = await review_service.list_assignments(AssignmentStatus.CANDIDATE)
    return create_api_response(
        data=[AssignmentResponse.model_validate(assignment) for assignment in assignments],
        message="Candidate assignments retrieved successfully",
        request=request
    )


@router.post(
    "/manual",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a manual assignment",
    operation_id="create_manual_assignment",
)
async def create_manual_assignment(
    request: Request,
    payload: ManualAssignmentRequest,
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> ApiResponse:
    """Link a document to a claim by hand."""
    try:
        assignment = await engine.create_manual_assignment(
            payload.document_id, payload.claim_id, payload.review_notes
        )
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=AssignmentResponse.model_validate(assignment),
        message="Manual assignment created",
        request=request
    )


@router.post(
    "/{assignment_id}/confirm",
    response_model=ApiResponse,
    summary="Confirm an assignment",
    operation_id="confirm_assignment",
)
async def confirm_assignment(
    request: Request,
    assignment_id: str,
    payload: ConfirmAssignmentRequest,
    review_service: Annotated[AssignmentReviewService, Depends(get_review_service)],
) -> ApiResponse:
    """Confirm an assignment and attach it to an illness."""
    try:
        assignment = await review_service.confirm_assignment(
            assignment_id,
            payload.illness_id,
            review_notes=payload.review_notes,
            confirmed_by=payload.confirmed_by,
        )
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=AssignmentResponse.model_validate(assignment),
        message="Assignment confirmed",
        request=request
    )


@router.post(
    "/{assignment_id}/reject",
    response_model=ApiResponse,
    summary="Reject an assignment",
    operation_id="reject_assignment",
)
async def reject_assignment(
    request: Request,
    assignment_id: str,
    payload: RejectAssignmentRequest,
    review_service: Annotated[AssignmentReviewService, Depends(get_review_service)],
) -> ApiResponse:
    try:
        assignment = await review_service.reject_assignment(assignment_id, payload.review_notes)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data=AssignmentResponse.model_validate(assignment),
        message="Assignment rejected",
        request=request
    )


@router.get(
    "/{assignment_id}/preview-accounts",
    response_model=ApiResponse,
    summary="Preview accounts extracted on confirmation",
    operation_id="preview_assignment_accounts",
)
async def preview_accounts(
    request: Request,
    assignment_id: str,
    review_service: Annotated[AssignmentReviewService, Depends(get_review_service)],
) -> ApiResponse:
    """Accounts that would be added to the illness if the assignment is confirmed."""
    try:
        accounts = await review_service.preview_accounts(assignment_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(
        data={"accounts": [account.model_dump(mode="json") for account in accounts]},
        message=f"{len(accounts)} accounts found",
        request=request
    )
