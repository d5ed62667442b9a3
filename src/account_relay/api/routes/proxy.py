"""Passthrough proxy routes.

Everything under ``/api`` that no other router claims is forwarded to the
configured target with a rotated account's session.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel
from structlog import get_logger

from account_relay.api.dependencies import AdminDep, ServicesDep, require_api_key
from account_relay.api.middleware.errors import relay_error_response
from account_relay.exceptions import RelayError, ValidationError
from account_relay.proxy.headers import (
    cors_headers,
    filter_response_headers,
    raw_request_path,
)


logger = get_logger(__name__)

target_router = APIRouter(prefix="/api/proxy", tags=["proxy"], dependencies=[AdminDep])
router = APIRouter(tags=["proxy"])

FORWARDED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


class TargetUpdate(BaseModel):
    """Request model for changing the upstream target."""

    target: Any = None


@target_router.get("/target", summary="Get proxy target")
async def get_target(services: ServicesDep) -> dict[str, str]:
    return {"target": services.target.get()}


@target_router.post("/target", summary="Set proxy target")
async def set_target(body: TargetUpdate, services: ServicesDep) -> dict[str, str]:
    """Replace the upstream base address at runtime.

    Raises:
        ValidationError: If ``target`` is not a string
    """
    if not isinstance(body.target, str):
        raise ValidationError("target must be string")
    return {"target": services.target.set(body.target)}


@router.options("/api/{path:path}", include_in_schema=False)
async def proxy_preflight(path: str, request: Request, services: ServicesDep) -> Response:
    """Answer CORS preflight without authentication or forwarding."""
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers=cors_headers(services.settings.cors, request.headers.get("origin")),
    )


@router.api_route(
    "/api/{path:path}",
    methods=FORWARDED_METHODS,
    dependencies=[Depends(require_api_key)],
    include_in_schema=False,
)
async def proxy_request(path: str, request: Request, services: ServicesDep) -> Response:
    """Forward the request upstream and relay the response verbatim."""
    cors = cors_headers(services.settings.cors, request.headers.get("origin"))
    inbound_headers = [
        (name.decode("latin-1"), value.decode("latin-1"))
        for name, value in request.headers.raw
    ]

    try:
        upstream = await services.dispatcher.dispatch(
            request.method,
            raw_request_path(request.scope),
            request.url.query,
            inbound_headers,
            await request.body(),
        )
    except RelayError as exc:
        return relay_error_response(request, exc, headers=cors)

    response = Response(content=upstream.body, status_code=upstream.status_code)
    for name, value in filter_response_headers(upstream.headers):
        # Starlette sets content-length from the relayed body
        if name.lower() == "content-length":
            continue
        response.headers.append(name, value)
    for name, value in cors.items():
        response.headers[name] = value
    return response
