import re
import time
import logging
from fastapi import Request

logger = logging.getLogger("access")

_STORE_PATH = re.compile(r"^/stores/(\d+)(/|$)")


async def request_logging_middleware(request: Request, call_next):
    """One access line per request, tagged with the store it addressed."""
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        # rendered as a 500 by the outermost error handler
        _log_access(request, 500, started)
        raise
    _log_access(request, response.status_code, started)
    return response


def _log_access(request: Request, status_code: int, started: float) -> None:
    match = _STORE_PATH.match(request.url.path)
    logger.log(
        logging.WARNING if status_code >= 500 else logging.INFO,
        "%s %s",
        request.method,
        request.url.path,
        extra={
            "client_addr": request.client.host if request.client else "-",
            "store_id": match.group(1) if match else "-",
            "status_code": status_code,
            "process_time_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
