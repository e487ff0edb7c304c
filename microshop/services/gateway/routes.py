# microshop/services/gateway/routes.py
"""
Единственный маршрут шлюза: всё под /api/* уходит в сервисы.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from microshop.services.gateway.dependencies import get_proxy
from microshop.services.gateway.proxy import GatewayProxy

router = APIRouter(tags=["Gateway"])

ProxyDep = Annotated[GatewayProxy, Depends(get_proxy)]

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@router.api_route("/api/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(path: str, request: Request, gateway: ProxyDep) -> Response:
    return await gateway.forward(request)
