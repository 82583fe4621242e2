"""Paginated folder and album listings from the remote gallery API."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar
from urllib.parse import urlencode

from gallery_mirror.errors import DecodeError
from gallery_mirror.fetcher import RetryingFetcher

PAGE_SIZE = 50
ALBUM_URI_PREFIX = "/api/v2/album/"

FOLDER = "Folder"
ALBUM = "Album"

T = TypeVar("T")


@dataclass
class TreeNode:
    name: str
    kind: str
    remote_id: str


@dataclass
class ImageRecord:
    remote_file_name: str
    content_hash: Optional[str]
    remote_url: Optional[str]


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    page_start: int = 1
    page_count: int = 0
    total_count: int = 0


def _listing_params(api_key: str, start: int) -> List[tuple]:
    # ordered so the same (id, start) always yields the same URL
    return [
        ("APIKey", api_key),
        ("_accept", "application/json"),
        ("Type", "Folder Album Page"),
        ("SortMethod", "Organizer"),
        ("SortDirection", "Descending"),
        ("count", str(PAGE_SIZE)),
        ("start", str(start)),
    ]


def folder_url(base_url: str, api_key: str, node_id: str, start: int) -> str:
    params = _listing_params(api_key, start)
    return f"{base_url.rstrip('/')}/api/v2/node/{node_id}!children?{urlencode(params)}"


def album_url(base_url: str, api_key: str, album_id: str, start: int) -> str:
    params = _listing_params(api_key, start)
    params.append(("_expand", "LargestImage"))
    return f"{base_url.rstrip('/')}/api/v2/album/{album_id}!images?{urlencode(params)}"


def _response_body(doc: Any) -> Dict:
    if not isinstance(doc, dict) or not isinstance(doc.get("Response"), dict):
        raise DecodeError("page body has no 'Response' object")
    return doc["Response"]


def _pages(response: Dict) -> tuple:
    pages = response.get("Pages")
    if not isinstance(pages, dict):
        raise DecodeError("page body has no 'Pages' object")
    try:
        return int(pages["Start"]), int(pages["Count"]), int(pages["Total"])
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodeError(f"malformed 'Pages' object: {pages!r}") from exc


def _items(response: Dict, key: str) -> List[Dict]:
    items = response.get(key)
    if items is None:
        return []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise DecodeError(f"'{key}' is not a list of objects")
    return items


def parse_node(raw: Dict) -> TreeNode:
    try:
        name = raw["Name"]
        kind = raw["Type"]
    except KeyError as exc:
        raise DecodeError(f"node is missing field {exc}") from exc
    if kind == ALBUM:
        album_uri = ((raw.get("Uris") or {}).get("Album") or {}).get("Uri") or ""
        if not album_uri:
            raise DecodeError(f"album node {name!r} has no album URI")
        remote_id = album_uri[len(ALBUM_URI_PREFIX):] if album_uri.startswith(ALBUM_URI_PREFIX) else album_uri
    else:
        remote_id = raw.get("NodeID") or ""
        if kind == FOLDER and not remote_id:
            raise DecodeError(f"folder node {name!r} has no NodeID")
    return TreeNode(name=name, kind=kind, remote_id=remote_id)


def resolve_image(raw: Dict, expansions: Dict) -> ImageRecord:
    """Build an ImageRecord, preferring the archived copy over the expansion table.

    When neither location yields a URL the record is returned with
    ``remote_url`` set to None; the walker reports it as unresolved.
    """
    file_name = raw.get("FileName")
    if not file_name:
        raise DecodeError("image is missing 'FileName'")
    if raw.get("ArchivedUri"):
        return ImageRecord(file_name, raw.get("ArchivedMD5") or None, raw["ArchivedUri"])
    ref = ((raw.get("Uris") or {}).get("LargestImage") or {}).get("Uri")
    largest: Dict = {}
    if ref:
        largest = (expansions.get(ref) or {}).get("LargestImage") or {}
    return ImageRecord(file_name, largest.get("MD5") or None, largest.get("Url") or None)


class PagedTreeClient:
    """Builds listing URLs and decodes one page per call."""

    def __init__(self, fetcher: RetryingFetcher, base_url: str, api_key: str) -> None:
        self.fetcher = fetcher
        self.base_url = base_url
        self.api_key = api_key

    def list_folder_children(self, node_id: str, start: int) -> Page[TreeNode]:
        doc = self.fetcher.fetch_json(folder_url(self.base_url, self.api_key, node_id, start))
        response = _response_body(doc)
        page_start, count, total = _pages(response)
        nodes = [parse_node(raw) for raw in _items(response, "Node")]
        return Page(items=nodes, page_start=page_start, page_count=count, total_count=total)

    def list_album_images(self, album_id: str, start: int) -> Page[ImageRecord]:
        doc = self.fetcher.fetch_json(album_url(self.base_url, self.api_key, album_id, start))
        response = _response_body(doc)
        page_start, count, total = _pages(response)
        expansions = doc.get("Expansions") or {}
        if not isinstance(expansions, dict):
            raise DecodeError("'Expansions' is not an object")
        images = [resolve_image(raw, expansions) for raw in _items(response, "AlbumImage")]
        return Page(items=images, page_start=page_start, page_count=count, total_count=total)
