from __future__ import annotations

import html
from datetime import datetime
from urllib.parse import urlsplit

from adlinkton.extensions import db
from adlinkton.models import Link, link_categories, utcnow


MAX_URL_LENGTH = 2048


def validate_url(url: str) -> bool:
    if not url or len(url) > MAX_URL_LENGTH:
        return False
    if any(ch.isspace() for ch in url):
        return False
    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def sanitize_html(value: str) -> str:
    return html.escape(value, quote=True)


def link_exists(user_id: int, url: str) -> bool:
    return (
        db.session.query(Link.id).filter_by(user_id=user_id, url=url).first()
        is not None
    )


def insert_link(
    user_id: int,
    url: str,
    name: str,
    favicon_path: str | None,
    created_at: datetime | None = None,
    category_ids: list[int] | None = None,
    is_favorite: bool = False,
) -> Link:
    link = Link(
        user_id=user_id,
        url=url,
        name=name,
        favicon_path=favicon_path,
        is_favorite=is_favorite,
        created_at=created_at or utcnow(),
    )
    db.session.add(link)
    db.session.flush()

    for index, category_id in enumerate(category_ids or []):
        db.session.execute(
            link_categories.insert().values(
                link_id=link.id, category_id=category_id, sort_order=index
            )
        )
    return link
