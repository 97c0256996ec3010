"""Insight generation endpoint."""
from __future__ import annotations

from typing import Any, Tuple

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.routing import Match
from starlette.types import Receive, Scope, Send

from insight_proxy.deps import get_insight_service
from insight_proxy.schemas.insight import ErrorResponse, InsightRequest
from insight_proxy.services.insight import InboundRequest, InsightProxyService, ProxyResponse


class AnyMethodRoute(APIRoute):
    """Route that hands every HTTP method to its endpoint.

    ``methods`` only feeds the OpenAPI document; HEAD, TRACE and unknown verbs
    still reach the service, which owns the 405 answer and its CORS headers.
    """

    def matches(self, scope: Scope) -> Tuple[Match, Scope]:
        match, child_scope = super().matches(scope)
        if match is Match.PARTIAL:
            return Match.FULL, child_scope
        return match, child_scope

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.app(scope, receive, send)


router = APIRouter(tags=["insight"], route_class=AnyMethodRoute)

_DOCUMENTED_METHODS = ["POST", "OPTIONS"]

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse}
    for status in (400, 401, 403, 405, 413, 415, 429, 500)
}


@router.api_route(
    "/generate-insight",
    methods=_DOCUMENTED_METHODS,
    summary="Generate an insight from a prompt via Gemini",
    responses=_ERROR_RESPONSES,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": InsightRequest.model_json_schema()}},
        }
    },
)
async def generate_insight(
    request: Request,
    service: InsightProxyService = Depends(get_insight_service),
) -> Response:
    inbound = InboundRequest.build(
        request.method,
        headers=request.headers,
        body=await request.body(),
        client_host=request.client.host if request.client else None,
    )
    result = await service.handle(inbound, request_id=getattr(request.state, "request_id", None))
    return _to_response(result)


def _to_response(result: ProxyResponse) -> Response:
    if result.body is None:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(
        content=result.body, status_code=result.status_code, headers=result.headers
    )
