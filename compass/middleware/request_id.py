import json
import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from compass import metrics
from compass.log import get_logger

logger = get_logger("compass.http")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Accepts or generates X-Request-Id, stores it on request.state and echoes it back.

    Each request is logged as one JSON line and counted in compass_http_requests_total.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.time()
        req_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = req_id

        response = await call_next(request)
        response.headers["X-Request-Id"] = req_id

        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        metrics.HTTP_REQUESTS_TOTAL.labels(
            method=request.method, path=path, status_class=f"{response.status_code // 100}xx"
        ).inc()
        logger.info(json.dumps({
            "ts": int(time.time() * 1000),
            "requestId": req_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": int((time.time() - start) * 1000),
        }))
        return response
