from __future__ import annotations

import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings
from app.core.logging import bind_request_id, get_logger, reset_request_id
from app.core.metrics import normalize_path, record_request_metrics
from app.core.rate_limiter import client_ip

REQUEST_ID_HEADER = "X-Request-ID"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request latency metrics, a request id on every response and structured error logs."""

    def __init__(self, app, *, log_4xx: bool = True, log_5xx: bool = True) -> None:
        super().__init__(app)
        self.logger = get_logger("app.requests")
        self.log_4xx = log_4xx
        self.log_5xx = log_5xx

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        token = bind_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            record_request_metrics(request, 500, duration)
            self._log(request, 500, duration, "Unhandled server error", "error")
            raise
        finally:
            reset_request_id(token)

        duration = time.perf_counter() - start
        status_code = response.status_code
        record_request_metrics(request, status_code, duration)
        response.headers[REQUEST_ID_HEADER] = request_id

        if status_code >= 500 and self.log_5xx:
            self._log(request, status_code, duration, "Server error response", "error")
        elif status_code >= 400 and self.log_4xx:
            self._log(request, status_code, duration, "Client error response", "warning")

        return response

    def _log(
        self,
        request: Request,
        status_code: int,
        duration: float,
        message: str,
        level: str,
    ) -> None:
        payload: dict[str, Any] = {
            "method": request.method,
            "path": normalize_path(request),
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 3),
            "client_ip": client_ip(request),
            "request_id": getattr(request.state, "request_id", None),
            # sólo indica si el request traía carrito invitado, nunca el id
            "guest_cart": settings.CART_GUEST_HEADER in request.headers,
        }
        log_func = getattr(self.logger, level, self.logger.error)
        log_func(message, extra=payload)
