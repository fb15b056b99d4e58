from __future__ import annotations

from adlinkton.extensions import db
from adlinkton.models import DEFAULT_DISPLAY_MODE, DEFAULT_LINK_COUNT, Category
from adlinkton.services.links import sanitize_html


def get_or_create_category(user_id: int, name: str, parent_id: int | None) -> int:
    name = sanitize_html(name.strip())

    existing = (
        db.session.query(Category.id)
        .filter_by(user_id=user_id, name=name, parent_id=parent_id)
        .first()
    )
    if existing is not None:
        return existing.id

    category = Category(
        user_id=user_id,
        parent_id=parent_id,
        name=name,
        display_mode=DEFAULT_DISPLAY_MODE,
        default_count=DEFAULT_LINK_COUNT,
        sort_order=0,
    )
    db.session.add(category)
    db.session.flush()
    return category.id
