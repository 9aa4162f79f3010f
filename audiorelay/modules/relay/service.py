import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Mapping, Optional, Sequence
from urllib.parse import quote, unquote, urlsplit

from .client import InvalidTarget, StreamingFailure, UpstreamRejected, UpstreamResponse

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}
FALLBACK_FILENAME = "download.bin"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_DISPOSITION_FILENAME = re.compile(r"filename\*=UTF-8''([^;]+)|filename=\"?([^\";]+)\"?", re.IGNORECASE)
_UNSAFE_FILENAME_CHARS = re.compile(r'[\x00-\x1f\x7f"\\]')
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def validate_target(values: Sequence[str]) -> str:
    """Return the single target URL from the ``url`` query values.

    Accepts exactly one non-empty absolute http(s) URL with a host.
    """
    if len(values) != 1:
        raise InvalidTarget()
    value = values[0].strip()
    if not value:
        raise InvalidTarget()
    try:
        parts = urlsplit(value)
        # Accessing port validates it
        parts.port
    except ValueError as exc:
        raise InvalidTarget() from exc
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.hostname:
        raise InvalidTarget()
    return value


def decode_uri_component(raw: str) -> str:
    """Percent-decode ``raw`` as UTF-8.

    Raises ValueError on a malformed escape (a ``%`` without two hex digits)
    or on bytes that are not valid UTF-8.
    """
    if _MALFORMED_ESCAPE.search(raw):
        raise ValueError(f"Malformed percent escape in {raw!r}")
    return unquote(raw, errors="strict")


def _percent_decode(raw: str) -> str:
    try:
        return decode_uri_component(raw)
    except ValueError:
        return raw


def derive_filename(url: str, content_disposition: Optional[str]) -> str:
    """Pick the attachment name from the upstream header, then the URL path."""
    if content_disposition:
        match = _DISPOSITION_FILENAME.search(content_disposition)
        if match:
            hinted = match.group(1) or match.group(2)
            if hinted:
                return _percent_decode(hinted)

    path = urlsplit(url).path
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return FALLBACK_FILENAME
    return _percent_decode(segments[-1])


def sanitize_filename(name: str) -> str:
    """Drop characters that could break out of a quoted header parameter."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", name).strip()
    return cleaned or FALLBACK_FILENAME


def build_content_disposition(filename: str) -> str:
    try:
        filename.encode("latin-1")
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
    return f'attachment; filename="{filename}"'


def build_relay_headers(url: str, upstream_headers: Mapping[str, str]) -> Dict[str, str]:
    filename = sanitize_filename(derive_filename(url, upstream_headers.get("Content-Disposition")))
    headers = {
        "Content-Disposition": build_content_disposition(filename),
        "Content-Type": upstream_headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
    }
    content_length = upstream_headers.get("Content-Length")
    if content_length:
        headers["Content-Length"] = content_length
    content_encoding = upstream_headers.get("Content-Encoding")
    if content_encoding:
        headers["Content-Encoding"] = content_encoding
    return headers


@dataclass
class RelayOutcome:
    """A committed relay: headers for the client plus the body still to forward."""

    url: str
    upstream: UpstreamResponse
    headers: Dict[str, str]
    first_chunk: bytes
    chunk_size: int
    bytes_sent: int = 0

    async def body(self) -> AsyncIterator[bytes]:
        """Forward the upstream body chunk by chunk.

        A failure here happens after the 200 has been committed, so the
        original exception is re-raised and the server aborts the connection.
        The upstream is released on every exit path, including cancellation
        when the client goes away.
        """
        completed = False
        try:
            self.bytes_sent += len(self.first_chunk)
            yield self.first_chunk
            self.first_chunk = b""
            async for chunk in self.upstream.iter_chunks(self.chunk_size):
                if not chunk:
                    continue
                self.bytes_sent += len(chunk)
                yield chunk
            completed = True
        except Exception as exc:
            logger.warning(
                "Stream aborted after %d bytes url=%s: %s", self.bytes_sent, self.url, exc
            )
            raise
        finally:
            await self.upstream.close()
            if completed:
                logger.info("Relayed %d bytes url=%s", self.bytes_sent, self.url)
            elif self.bytes_sent:
                logger.info("Relay closed early after %d bytes url=%s", self.bytes_sent, self.url)


async def prepare_relay(url: str, upstream: UpstreamResponse, *, chunk_size: int) -> RelayOutcome:
    """Check the upstream response and read its first chunk before committing.

    The upstream is closed on every failure path.

    Raises:
        UpstreamRejected: non-success status, or a body with no bytes.
        StreamingFailure: the body failed before anything was sent.
    """
    try:
        if not upstream.ok:
            status = upstream.status or None
            logger.warning("Upstream rejected status=%s url=%s", upstream.status, url)
            raise UpstreamRejected(status_code=status)

        try:
            first_chunk = await upstream.read_chunk(chunk_size)
        except Exception as exc:
            logger.error("Failed to read upstream body url=%s: %s", url, exc)
            raise StreamingFailure() from exc

        if not first_chunk:
            logger.warning("Upstream returned no body status=%s url=%s", upstream.status, url)
            raise UpstreamRejected()
    except BaseException:
        await upstream.close()
        raise

    return RelayOutcome(
        url=url,
        upstream=upstream,
        headers=build_relay_headers(url, upstream.headers),
        first_chunk=first_chunk,
        chunk_size=chunk_size,
    )
