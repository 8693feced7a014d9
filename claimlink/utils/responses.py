from datetime import datetime, timezone
from typing import Any, Dict, NoReturn, Optional
from uuid import uuid4

from fastapi import HTTPException, Request, status as http_status

from claimlink.core.exceptions import (
    AppError,
    NotFoundError,
    RematchInProgressError,
    ValidationError,
)
from claimlink.schemas.responses import ApiResponse, ErrorDetail, ResponseMeta

ERROR_STATUS = (
    (NotFoundError, http_status.HTTP_404_NOT_FOUND, "Not Found"),
    (ValidationError, http_status.HTTP_400_BAD_REQUEST, "Validation Failed"),
    (RematchInProgressError, http_status.HTTP_409_CONFLICT, "Rematch In Progress"),
)


def _request_id(request: Optional[Request]) -> str:
    if request is not None:
        return getattr(request.state, "correlation_id", None) or str(uuid4())
    return str(uuid4())


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1"
) -> Dict[str, Any]:
    """Create a standardized API response as a dictionary."""
    meta = ResponseMeta(
        timestamp=datetime.now(timezone.utc),
        request_id=_request_id(request),
        api_version=api_version
    )

    data_dict: Dict[str, Any] = {}
    if isinstance(data, dict):
        data_dict = data
    elif hasattr(data, "model_dump"):
        data_dict = data.model_dump(mode="json")
    elif isinstance(data, list):
        data_dict = {
            "items": [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in data]
        }
    elif data is None:
        data_dict = {}
    else:
        data_dict = {"value": data}

    response = ApiResponse(
        status=status,
        message=message,
        data=data_dict,
        meta=meta
    )
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None
) -> ErrorDetail:
    """Create a standardized error detail (RFC 7807)."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance or (request.url.path if request else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc)
    )


def raise_http_error(error: AppError, request: Optional[Request] = None) -> NoReturn:
    """Translate an application error into an HTTPException.

    Unmapped errors become a 500.
    """
    status_code = http_status.HTTP_500_INTERNAL_SERVER_ERROR
    title = "Internal Server Error"
    for error_type, mapped_status, mapped_title in ERROR_STATUS:
        if isinstance(error, error_type):
            status_code, title = mapped_status, mapped_title
            break

    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=error.message,
        request=request
    )
    raise HTTPException(status_code=status_code, detail=error_detail.model_dump(mode="json"))
