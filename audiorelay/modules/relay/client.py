import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Mapping, Optional

import aiohttp

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Base error for a relay request; carries the status returned to the client."""

    status_code: int = 502
    detail: str = "Relay failed"

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail
        if status_code:
            self.status_code = status_code


class InvalidTarget(RelayError):
    status_code = 400
    detail = "Invalid or missing file URL"


class UpstreamTimeout(RelayError):
    status_code = 504
    detail = "Failed to reach source"


class UpstreamUnreachable(RelayError):
    status_code = 502
    detail = "Failed to reach source"


class UpstreamRejected(RelayError):
    status_code = 502
    detail = "Failed to fetch file"


class StreamingFailure(RelayError):
    status_code = 500
    detail = "Error streaming file"


SessionFactory = Callable[[], aiohttp.ClientSession]


def create_session() -> aiohttp.ClientSession:
    """Create the client session owned by a single relay request.

    No total timeout: the header deadline is enforced by the caller and the
    body may legitimately take longer than it. Decompression is disabled so
    the payload is forwarded exactly as the origin sent it.
    """
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=None),
        auto_decompress=False,
    )


def get_session_factory() -> SessionFactory:
    """FastAPI dependency returning the outbound session factory."""
    return create_session


class UpstreamResponse:
    """An upstream response whose headers have arrived and whose body is unread.

    Owns both the response and its session; ``close`` releases them and is
    safe to call more than once.
    """

    def __init__(self, session: Any, response: Any):
        self._session = session
        self._response = response
        self._closed = False

    @property
    def status(self) -> int:
        return self._response.status

    @property
    def ok(self) -> bool:
        return 200 <= self._response.status < 300

    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers

    async def read_chunk(self, size: int) -> bytes:
        return await self._response.content.read(size)

    def iter_chunks(self, size: int) -> AsyncIterator[bytes]:
        return self._response.content.iter_chunked(size)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        try:
            self._response.release()
        finally:
            await self._session.close()
        # Only once the session is really closed, so a cancelled close can be retried
        self._closed = True


async def open_upstream(
    url: str,
    *,
    timeout: float,
    session_factory: SessionFactory = create_session,
    headers: Optional[Dict[str, str]] = None,
) -> UpstreamResponse:
    """Issue a GET to ``url`` and wait at most ``timeout`` seconds for its headers.

    Raises:
        UpstreamTimeout: no response headers within the deadline; the
            in-flight request is cancelled.
        UpstreamUnreachable: the connection failed before a response arrived.
    """
    request_headers = {
        'Accept': '*/*',
        'Accept-Encoding': 'identity',
    }
    if headers:
        request_headers.update(headers)

    session = session_factory()
    try:
        response = await asyncio.wait_for(
            session.get(url, headers=request_headers, allow_redirects=True),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        await session.close()
        logger.warning("Upstream timed out after %.1fs url=%s", timeout, url)
        raise UpstreamTimeout() from e
    except aiohttp.ClientError as e:
        await session.close()
        logger.warning("Upstream unreachable url=%s: %s", url, e)
        raise UpstreamUnreachable() from e
    except BaseException:
        await session.close()
        raise

    logger.debug("Upstream responded status=%s url=%s", response.status, url)
    return UpstreamResponse(session, response)
