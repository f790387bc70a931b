"""
Health Query Router

Thin HTTP marshalling over HealthQueryService. The service instance is read
from app.state.query_service, set up by the server at startup.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from ...utils import json_response
from ..core import ErrorCategory, InvalidArgument, QueryError, get_all_metrics_info
from ..query import HealthQueryService

# Create router
router = APIRouter(prefix="/health-query", tags=["health-query"])

_STATUS_BY_CATEGORY = {
    ErrorCategory.MALFORMED_REQUEST: 400,
    ErrorCategory.SOURCE_FAILURE: 503,
    ErrorCategory.INTERNAL: 500,
}

Instant = Union[str, int, float]


class QueryRequest(BaseModel):
    """Raw record query; the presence of pageToken selects manual pagination"""

    model_config = ConfigDict(populate_by_name=True)

    sample_name: str = Field(..., alias="sampleName", description="Metric type, e.g. 'heartRate'")
    start_date: Instant = Field(..., alias="startDate", description="ISO-8601 instant or epoch ms")
    end_date: Instant = Field(..., alias="endDate", description="ISO-8601 instant or epoch ms, exclusive")
    limit: int = Field(default=0, description="Page size, 0 for the default")
    page_token: Optional[str] = Field(default=None, alias="pageToken", description="Cursor; '' starts a manual enumeration")


class MultipleQueryRequest(BaseModel):
    """Records of several metric types; the presence of pageToken selects manual pagination"""

    model_config = ConfigDict(populate_by_name=True)

    sample_names: List[str] = Field(..., alias="sampleNames")
    start_date: Instant = Field(..., alias="startDate")
    end_date: Instant = Field(..., alias="endDate")
    limit: int = Field(default=0)
    page_token: Optional[Union[str, Dict[str, str]]] = Field(
        default=None,
        alias="pageToken",
        description="sampleName -> cursor from the previous response; '' or {} starts a manual enumeration",
    )

    def cursors(self) -> Optional[Dict[str, Optional[str]]]:
        """None for auto-pagination, otherwise the per-type cursors"""
        if "page_token" not in self.model_fields_set or self.page_token is None:
            return None
        if isinstance(self.page_token, str):
            if self.page_token:
                raise InvalidArgument(
                    "pageToken for multiple sample names must map each sampleName to its cursor",
                    {"pageToken": self.page_token},
                )
            return {}
        return {name: token or None for name, token in self.page_token.items()}


class AggregateRequest(BaseModel):
    """Bucketed aggregation of one metric type"""

    model_config = ConfigDict(populate_by_name=True)

    sample_name: str = Field(..., alias="sampleName")
    start_date: Instant = Field(..., alias="startDate")
    end_date: Instant = Field(..., alias="endDate")
    group_by: Optional[str] = Field(default=None, alias="groupBy", description="hour, day, week or month")
    timezone: Optional[str] = Field(default=None, description="IANA zone, default the server's")


def get_query_service(request: Request) -> HealthQueryService:
    service = getattr(request.app.state, "query_service", None)
    if service is None:
        raise RuntimeError("query service is not initialized")
    return service


def error_response(error: QueryError, request: Request):
    status_code = _STATUS_BY_CATEGORY.get(error.category, 500)
    return json_response(
        {"success": False, "code": error.code, "message": error.message},
        status_code=status_code,
        request=request,
    )


def ok_response(data: Any, request: Request):
    return json_response({"success": True, "data": data}, request=request)


@router.post("/query")
async def query_records(body: QueryRequest, request: Request):
    """
    Query raw records

    Without pageToken every record in the range is returned at once. With a
    pageToken (empty string for the first page) one page is returned and
    nextPageToken is set while more records remain.
    """
    service = get_query_service(request)
    manual = "page_token" in body.model_fields_set and body.page_token is not None

    try:
        if manual:
            page = await service.query_page(
                body.sample_name,
                body.start_date,
                body.end_date,
                limit=body.limit,
                cursor=body.page_token or None,
            )
        else:
            page = await service.query_all(body.sample_name, body.start_date, body.end_date, limit=body.limit)
    except QueryError as e:
        return error_response(e, request)

    return ok_response(page.to_output(), request)


@router.post("/query/multiple")
async def query_multiple(body: MultipleQueryRequest, request: Request):
    """
    Query several sample names at once

    Same mode rule as /query. In manual mode pageToken maps each sampleName to
    the nextPageToken it was last given; a name left out starts at its first page.
    """
    service = get_query_service(request)

    try:
        pages = await service.query_multiple(
            body.sample_names,
            body.start_date,
            body.end_date,
            limit=body.limit,
            cursors=body.cursors(),
        )
    except QueryError as e:
        return error_response(e, request)

    return ok_response({name: page.to_output() for name, page in pages.items()}, request)


@router.post("/aggregate")
async def aggregate(body: AggregateRequest, request: Request):
    service = get_query_service(request)

    try:
        result = await service.aggregate(
            body.sample_name,
            body.start_date,
            body.end_date,
            granularity=body.group_by,
            timezone=body.timezone,
        )
    except QueryError as e:
        return error_response(e, request)

    return ok_response(result.model_dump(mode="json", by_alias=True), request)


@router.get("/available")
async def is_available(request: Request):
    service = get_query_service(request)
    available = await service.is_available()
    if not available:
        logging.warning("Record source reported unavailable")
    return ok_response({"available": available}, request)


@router.get("/metrics")
async def list_metrics(request: Request):
    """Supported sample names with their reduction kind and unit"""
    service = get_query_service(request)
    return ok_response(get_all_metrics_info(service.classifier), request)
