import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from audiorelay.core.config import Settings, get_settings

from .client import SessionFactory, get_session_factory, open_upstream
from .service import prepare_relay, validate_target

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/download", response_class=StreamingResponse, summary="Relay a remote file as an attachment")
async def download(
    request: Request,
    settings: Settings = Depends(get_settings),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Fetch the file named by the ``url`` query parameter and stream it back."""
    target = validate_target(request.query_params.getlist("url"))

    logger.info("Relaying url=%s", target)
    upstream = await open_upstream(
        target,
        timeout=settings.RELAY_TIMEOUT_SECONDS,
        session_factory=session_factory,
        headers={"User-Agent": settings.RELAY_USER_AGENT},
    )
    outcome = await prepare_relay(target, upstream, chunk_size=settings.RELAY_CHUNK_SIZE)

    return StreamingResponse(
        outcome.body(),
        status_code=200,
        headers=outcome.headers,
        background=BackgroundTask(upstream.close),
    )
