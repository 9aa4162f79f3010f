import logging
import time

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send


logger = logging.getLogger("audiorelay.middleware.request")


class RequestLoggingMiddleware:
    """Log every HTTP request with its status, duration and body size.

    Plain ASGI so response messages reach the server untouched: an exception
    raised while a relay is streaming propagates as-is and the server aborts
    the connection instead of ending the body cleanly.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        method = request.method.upper()
        path = request.url.path
        start_time = time.perf_counter()
        logger.info("Incoming %s %s query=%s", method, path, dict(request.query_params))

        status_code = None
        body_bytes = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, body_bytes
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body":
                body_bytes += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Failed %s %s status=%s duration_ms=%.2f bytes=%d error=%r",
                method,
                path,
                status_code,
                duration_ms,
                body_bytes,
                exc,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Completed %s %s status=%s duration_ms=%.2f bytes=%d",
            method,
            path,
            status_code,
            duration_ms,
            body_bytes,
        )
