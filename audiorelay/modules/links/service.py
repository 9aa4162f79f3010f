import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import quote

from audiorelay.modules.relay.service import decode_uri_component

from .schemas import LinkEntry

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "//"
TEXT_KEY_SUFFIX = "Text"

LinkSource = Union[str, Iterable[str], None]
LinkCatalog = Dict[str, List[LinkEntry]]

_EXTENSION = re.compile(r"\.[^/.]+$")
_SEPARATORS = re.compile(r"[-_]")
_WHITESPACE = re.compile(r"\s+")
_URI_COMPONENT_SAFE = "!~*'()"


class LinkSourceError(Exception):
    """Raised when a configured links source cannot be read or parsed."""


def extract_name_from_url(url: str) -> str:
    """Human-friendly label for a link: last path segment without extension."""
    clean_url = url.split("?")[0].split("#")[0]
    filename = clean_url.split("/")[-1]
    try:
        filename = decode_uri_component(filename)
    except ValueError:
        return url
    filename = _EXTENSION.sub("", filename)
    filename = _SEPARATORS.sub(" ", filename)
    filename = _WHITESPACE.sub(" ", filename).strip()
    return filename or url


def build_download_url(url: str, relay_base_url: Optional[str]) -> str:
    """Route ``url`` through the relay when a base address is configured."""
    if not relay_base_url:
        return url
    return f"{relay_base_url.rstrip('/')}/download?url={quote(url, safe=_URI_COMPONENT_SAFE)}"


def parse_predefined_links(source: LinkSource, relay_base_url: Optional[str] = None) -> List[LinkEntry]:
    """Turn a newline-separated string (or pre-split list) of URLs into entries.

    Blank lines and lines starting with ``//`` are skipped.
    """
    if source is None:
        return []
    lines = source.split("\n") if isinstance(source, str) else list(source)

    entries: List[LinkEntry] = []
    for line in lines:
        url = str(line).strip()
        if not url or url.startswith(COMMENT_PREFIX):
            continue
        entries.append(
            LinkEntry(
                url=url,
                name=extract_name_from_url(url),
                download_url=build_download_url(url, relay_base_url),
            )
        )
    return entries


def filter_links(entries: List[LinkEntry], query: Optional[str]) -> List[LinkEntry]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(entries)
    return [entry for entry in entries if needle in entry.name.lower()]


def _load_json_source(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise LinkSourceError(f"Unable to read links file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise LinkSourceError(f"Links file {path} must contain a JSON object")

    sources: Dict[str, Any] = {}
    for key, value in data.items():
        if not isinstance(value, (str, list)) and value is not None:
            raise LinkSourceError(f"Links for '{key}' must be a string or a list")
        language = key
        if key.endswith(TEXT_KEY_SUFFIX) and len(key) > len(TEXT_KEY_SUFFIX):
            language = key[: -len(TEXT_KEY_SUFFIX)]
            # The plain key wins when both are present
            if language in data:
                continue
        sources[language] = value
    return sources


def _load_dir_source(path: Path) -> Dict[str, str]:
    if not path.is_dir():
        raise LinkSourceError(f"Links directory {path} does not exist")
    sources: Dict[str, str] = {}
    for file_path in sorted(path.glob("*.txt")):
        try:
            sources[file_path.stem] = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise LinkSourceError(f"Unable to read links file {file_path}: {exc}") from exc
    return sources


def load_link_catalog(
    links_file: Optional[str] = None,
    links_dir: Optional[str] = None,
    relay_base_url: Optional[str] = None,
) -> LinkCatalog:
    """Build the per-language link lists from the configured sources.

    Directory files are read after the JSON file and replace languages it
    already defined.
    """
    sources: Dict[str, Any] = {}
    if links_file:
        sources.update(_load_json_source(Path(links_file)))
    if links_dir:
        sources.update(_load_dir_source(Path(links_dir)))

    catalog: LinkCatalog = {}
    for language, source in sources.items():
        catalog[language] = parse_predefined_links(source, relay_base_url)
        logger.info("Loaded %d links for language=%s", len(catalog[language]), language)
    return catalog
