from fastapi import APIRouter

# Import module routers
from audiorelay.modules.links.routes import router as links_router

# Create main API router
api_router = APIRouter()

# Include module routers
api_router.include_router(links_router, tags=["links"])
