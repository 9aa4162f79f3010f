"""Download relay: fetch a remote file and stream it back as an attachment."""

from .client import (
    InvalidTarget,
    RelayError,
    StreamingFailure,
    UpstreamRejected,
    UpstreamResponse,
    UpstreamTimeout,
    UpstreamUnreachable,
    create_session,
    get_session_factory,
    open_upstream,
)
from .service import (
    FALLBACK_FILENAME,
    RelayOutcome,
    build_content_disposition,
    build_relay_headers,
    decode_uri_component,
    derive_filename,
    prepare_relay,
    sanitize_filename,
    validate_target,
)

__all__ = [
    "RelayError",
    "InvalidTarget",
    "UpstreamTimeout",
    "UpstreamUnreachable",
    "UpstreamRejected",
    "StreamingFailure",
    "UpstreamResponse",
    "create_session",
    "get_session_factory",
    "open_upstream",
    "FALLBACK_FILENAME",
    "RelayOutcome",
    "build_content_disposition",
    "build_relay_headers",
    "decode_uri_component",
    "derive_filename",
    "prepare_relay",
    "sanitize_filename",
    "validate_target",
]
