import logging
from functools import wraps

from fastapi import HTTPException, Request

from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)


def _find_request(args, kwargs) -> Request | None:
    for arg in list(args) + list(kwargs.values()):
        if isinstance(arg, Request):
            return arg
    return None


def safe_handler(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        request = _find_request(args, kwargs)

        try:
            return await func(*args, **kwargs)
        except HTTPException as e:
            if request:
                client_ip = request.client.host if request.client else "unknown"
                trace_id = request.headers.get("X-Request-ID", "none")
                logger.warning(
                    f"[HTTPException] TraceID={trace_id} | {e.status_code} - "
                    f"{request.url.path} from {client_ip}: {e.detail}"
                )
            else:
                logger.warning(
                    f"[HTTPException] in {func.__name__}: {e.status_code} - {e.detail}"
                )
            raise
        except Exception as e:
            if request:
                client_ip = request.client.host if request.client else "unknown"
                trace_id = request.headers.get("X-Request-ID", "none")
                logger.error(
                    f"[Unhandled Error] TraceID={trace_id} | in {func.__name__} | "
                    f"Path: {request.url.path} | Client: {client_ip} | Error: {e}",
                    exc_info=True,
                )
            else:
                logger.error(
                    f"[Unhandled Error] in {func.__name__}: {e}", exc_info=True
                )
            raise HTTPException(status_code=500, detail=get_friendly_message(e))

    return wrapper
