import logging
import uuid
from time import perf_counter

from starlette.middleware.base import BaseHTTPMiddleware

from voucher_relay.core.logging import request_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        request.state.request_id = str(uuid.uuid4())
        token = request_id_var.set(request.state.request_id)
        started = perf_counter()
        try:
            response = await call_next(request)
            logger.info(
                "request.completed method=%s path=%s status=%s in %.1fms",
                request.method,
                request.url.path,
                response.status_code,
                (perf_counter() - started) * 1000,
            )
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request.state.request_id
        return response
