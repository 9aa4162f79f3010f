import asyncio
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import aiohttp
import pytest

from audiorelay.modules.relay import (
    StreamingFailure,
    UpstreamRejected,
    UpstreamResponse,
    UpstreamTimeout,
    UpstreamUnreachable,
    open_upstream,
    prepare_relay,
)
from relay_stubs import _ResponseStub, _SessionStub


def _loop_run(coro):
    return asyncio.run(coro)


def test_mid_stream_error_propagates_and_releases_upstream():
    response = _ResponseStub(chunks=(b"first", b"second"), error=aiohttp.ClientPayloadError("reset"))
    session = _SessionStub(response=response)
    received = []

    async def _run():
        outcome = await prepare_relay(
            "https://host/a.mp3", UpstreamResponse(session, response), chunk_size=1024
        )
        with pytest.raises(aiohttp.ClientPayloadError):
            async for chunk in outcome.body():
                received.append(chunk)
        return outcome

    outcome = _loop_run(_run())

    assert received == [b"first", b"second"]
    assert outcome.bytes_sent == len(b"firstsecond")
    assert response.released
    assert session.closed


def test_client_disconnect_closes_upstream():
    response = _ResponseStub(chunks=(b"one", b"two", b"three"))
    session = _SessionStub(response=response)

    async def _run():
        outcome = await prepare_relay(
            "https://host/a.mp3", UpstreamResponse(session, response), chunk_size=1024
        )
        body = outcome.body()
        first = await body.__anext__()
        await body.aclose()
        return first

    assert _loop_run(_run()) == b"one"
    assert response.released
    assert session.closed


def test_upstream_close_is_idempotent():
    response = _ResponseStub()
    session = _SessionStub(response=response)
    upstream = UpstreamResponse(session, response)

    async def _run():
        await upstream.close()
        await upstream.close()

    _loop_run(_run())
    assert upstream.closed
    assert session.closed


def test_upstream_close_can_be_retried_after_cancellation():
    response = _ResponseStub()
    session = _SessionStub(response=response, cancel_close_once=True)
    upstream = UpstreamResponse(session, response)

    async def _run():
        with pytest.raises(asyncio.CancelledError):
            await upstream.close()
        assert not upstream.closed
        await upstream.close()

    _loop_run(_run())
    assert session.close_calls == 2
    assert upstream.closed
    assert session.closed


@pytest.mark.parametrize("status", [300, 304])
def test_prepare_relay_mirrors_redirect_status(status):
    response = _ResponseStub(status=status)
    session = _SessionStub(response=response)

    with pytest.raises(UpstreamRejected) as excinfo:
        _loop_run(prepare_relay("https://host/a.mp3", UpstreamResponse(session, response), chunk_size=8))

    assert excinfo.value.status_code == status
    assert excinfo.value.detail == "Failed to fetch file"
    assert session.closed


def test_prepare_relay_wraps_first_read_failure():
    response = _ResponseStub(chunks=(), error=aiohttp.ClientPayloadError("boom"))
    session = _SessionStub(response=response)

    with pytest.raises(StreamingFailure) as excinfo:
        _loop_run(prepare_relay("https://host/a.mp3", UpstreamResponse(session, response), chunk_size=8))

    assert excinfo.value.status_code == 500
    assert isinstance(excinfo.value.__cause__, aiohttp.ClientPayloadError)


def test_open_upstream_timeout():
    session = _SessionStub(hang=True)

    with pytest.raises(UpstreamTimeout):
        _loop_run(open_upstream("https://host/a.mp3", timeout=0.01, session_factory=lambda: session))

    assert session.cancelled
    assert session.closed


def test_open_upstream_deadline_does_not_fire_after_response():
    session = _SessionStub()

    async def _run():
        upstream = await open_upstream("https://host/a.mp3", timeout=0.01, session_factory=lambda: session)
        await asyncio.sleep(0.05)
        return upstream

    upstream = _loop_run(_run())

    assert upstream.status == 200
    assert not session.cancelled
    assert not session.closed


def test_open_upstream_unreachable():
    session = _SessionStub(error=aiohttp.ServerDisconnectedError())

    with pytest.raises(UpstreamUnreachable):
        _loop_run(open_upstream("https://host/a.mp3", timeout=1, session_factory=lambda: session))

    assert session.closed
