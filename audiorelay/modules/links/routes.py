import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from audiorelay.core.config import Settings, get_settings

from .schemas import FrontendConfigResponse, LanguageLinksResponse, LinkCatalogResponse
from .service import LinkCatalog, filter_links

router = APIRouter()
logger = logging.getLogger(__name__)


def get_link_catalog(request: Request) -> LinkCatalog:
    """FastAPI dependency returning the catalog loaded at startup."""
    return getattr(request.app.state, "link_catalog", None) or {}


@router.get("/links", response_model=LinkCatalogResponse, summary="List predefined links for every language")
async def list_links(catalog: LinkCatalog = Depends(get_link_catalog)) -> LinkCatalogResponse:
    return LinkCatalogResponse(languages=list(catalog), links=catalog)


@router.get("/links/{language}", response_model=LanguageLinksResponse, summary="List or search links for one language")
async def language_links(
    language: str,
    q: Optional[str] = Query(None, description="Case-insensitive match on the link label"),
    catalog: LinkCatalog = Depends(get_link_catalog),
) -> LanguageLinksResponse:
    """Return the links of ``language``, optionally filtered by label."""
    entries = catalog.get(language)
    if entries is None:
        raise HTTPException(status_code=404, detail=f"Unknown language: {language}")

    matches = filter_links(entries, q)
    return LanguageLinksResponse(language=language, query=q, count=len(matches), links=matches)


@router.get("/config", response_model=FrontendConfigResponse, summary="Front-end configuration")
async def frontend_config(settings: Settings = Depends(get_settings)) -> FrontendConfigResponse:
    return FrontendConfigResponse(relay_base_url=settings.RELAY_BASE_URL)
