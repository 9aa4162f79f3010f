import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from audiorelay.core.config import settings
from audiorelay.modules.links.service import load_link_catalog

# Configure logger
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("📚 Loading predefined links...")
    app.state.link_catalog = load_link_catalog(
        links_file=settings.LINKS_FILE,
        links_dir=settings.LINKS_DIR,
        relay_base_url=settings.RELAY_BASE_URL,
    )
    logger.info(
        "🚀 Relay ready: %d languages, timeout=%.1fs",
        len(app.state.link_catalog),
        settings.RELAY_TIMEOUT_SECONDS,
    )

    yield

    # Shutdown
    logger.info("🛑 Shutting down relay")
