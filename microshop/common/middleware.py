# microshop/common/middleware.py
"""
HTTP middleware: X-Request-ID и журнал запросов.
"""

from __future__ import annotations

import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from microshop.common.constants import REQUEST_ID_HEADER
from microshop.common.logger import log_info, request_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Присваивает запросу X-Request-ID (или берёт присланный),
    кладёт его в contextvar для логов и возвращает в ответе.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - started) * 1000
            response.headers[REQUEST_ID_HEADER] = request_id

            # health-проверки не засоряют лог
            if request.url.path != "/health":
                await log_info(
                    f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f} ms)",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 1),
                    },
                )
            return response
        finally:
            request_id_var.reset(token)
