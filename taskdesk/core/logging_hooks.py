import logging
import time

import httpx

logger = logging.getLogger(__name__)

_STARTED_AT = "taskdesk.started_at"


async def log_request(request: httpx.Request) -> None:
    request.extensions[_STARTED_AT] = time.monotonic()


async def log_response(response: httpx.Response) -> None:
    request = response.request
    start = request.extensions.get(_STARTED_AT, time.monotonic())

    duration = time.monotonic() - start
    logger.info(
        "%s %s -> %s (%.2fs)",
        request.method,
        request.url.path,
        response.status_code,
        duration,
    )


EVENT_HOOKS = {
    "request": [log_request],
    "response": [log_response],
}
