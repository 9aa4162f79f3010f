import logging
from pathlib import Path

# FastAPI imports
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

# Package imports
from audiorelay import __version__

# API imports
from audiorelay.api import api_router
from audiorelay.modules.relay.client import RelayError
from audiorelay.modules.relay.routes import router as relay_router

# Core imports
from audiorelay.core.config import settings
from audiorelay.core.lifespan import lifespan

# Middleware imports
from audiorelay.middleware import RequestLoggingMiddleware

# Logging configuration
logger = logging.getLogger(__name__)


async def relay_error_handler(request: Request, exc: RelayError) -> PlainTextResponse:
    return PlainTextResponse(exc.detail, status_code=exc.status_code)


def create_application() -> FastAPI:
    application = FastAPI(
        title="Audio Link Relay",
        description="Predefined audio links with a same-origin download relay",
        version=__version__,
        lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "Content-Length"],
    )

    application.add_middleware(RequestLoggingMiddleware)
    application.add_exception_handler(RelayError, relay_error_handler)

    application.include_router(relay_router, tags=["relay"])
    application.include_router(api_router, prefix=settings.API_PREFIX or "/api/v1")

    @application.get("/health")
    async def health_check():
        return {"status": "healthy"}

    # Mounted last so it never shadows the API routes
    if settings.STATIC_DIR:
        static_dir = Path(settings.STATIC_DIR)
        if static_dir.is_dir():
            application.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        else:
            logger.warning("STATIC_DIR %s is not a directory; static assets disabled", static_dir)
    else:
        @application.get("/", tags=["App"], summary="App Version")
        async def root():
            return {
                "message": "Audio link relay is running!",
                "version": __version__,
            }

    return application

app = create_application()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("audiorelay.main:app", host=settings.HOST, port=settings.PORT)
