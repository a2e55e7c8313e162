import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Request-ID", "none")
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                f"Unhandled server error TraceID={trace_id} on "
                f"{request.method} {request.url.path}: {e}"
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": get_friendly_message(e),
                    "trace_id": trace_id,
                },
            )
