from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from adlinkton.services.favicons import FaviconStore
from adlinkton.services.links import (
    insert_link,
    link_exists,
    sanitize_html,
    validate_url,
)


class LinkImportError(Exception):
    pass


class InvalidUrlError(LinkImportError):
    def __init__(self, url: str):
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class DuplicateLinkError(LinkImportError):
    def __init__(self, url: str):
        super().__init__(f"Duplicate link: {url}")
        self.url = url


@dataclass
class LinkImportResult:
    link_id: int
    favicon_path: str | None


def parse_add_date(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        timestamp = int(float(str(value).strip()))
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def import_link(
    user_id: int,
    url: str,
    name: str,
    category_id: int | None,
    *,
    favicons: FaviconStore,
    add_date: str | None = None,
    inline_icon: str | None = None,
    favicon_timeout: float = 2.0,
) -> LinkImportResult:
    url = (url or "").strip()
    if not validate_url(url):
        raise InvalidUrlError(url)
    if link_exists(user_id, url):
        raise DuplicateLinkError(url)

    favicon_path = None
    if inline_icon and inline_icon.startswith("data:image/"):
        favicon_path = favicons.save_data_url(inline_icon, url)
    if not favicon_path:
        favicon_path = favicons.fetch(url, timeout=favicon_timeout)

    link = insert_link(
        user_id=user_id,
        url=url,
        name=sanitize_html(name.strip()),
        favicon_path=favicon_path,
        created_at=parse_add_date(add_date),
        category_ids=[category_id] if category_id is not None else None,
    )
    return LinkImportResult(link_id=link.id, favicon_path=favicon_path)
