from pydantic import BaseModel
from typing import Dict, List, Optional


class LinkEntry(BaseModel):
    url: str
    name: str
    download_url: Optional[str] = None


class LinkCatalogResponse(BaseModel):
    languages: List[str]
    links: Dict[str, List[LinkEntry]]


class LanguageLinksResponse(BaseModel):
    language: str
    query: Optional[str] = None
    count: int
    links: List[LinkEntry]


class FrontendConfigResponse(BaseModel):
    relay_base_url: str
    download_path: str = "/download"
