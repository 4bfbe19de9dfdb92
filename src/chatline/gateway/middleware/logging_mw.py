"""LoggingMiddleware -- 请求级日志

为每个 HTTP 请求生成 ULID request_id，绑定到 structlog contextvars，
并通过 X-Request-ID 响应头回传。上游已提供 X-Request-ID 时沿用上游的值。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        log = structlog.get_logger()
        started = time.monotonic()
        await log.ainfo("request_started")

        response = await call_next(request)

        await log.ainfo(
            "request_completed",
            status_code=response.status_code,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
