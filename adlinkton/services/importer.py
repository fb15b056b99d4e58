"""Turns a parsed bookmark tree into categories and links for one user.

The whole import shares the request's database session and is committed
once at the end. Entries that fail validation or duplicate an existing link
are counted as skipped; anything else aborts and rolls the import back.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from adlinkton.extensions import db
from adlinkton.services.bookmark_import import (
    ImportedFolder,
    ImportedLink,
    ImportedNode,
    parse_bookmark_html,
)
from adlinkton.services.categories import get_or_create_category
from adlinkton.services.favicons import FaviconStore
from adlinkton.services.link_import import LinkImportError, import_link


logger = logging.getLogger(__name__)

ROOT_CATEGORY_NAME = "Imported Bookmarks"


@dataclass
class ImportStats:
    folders: int = 0
    links: int = 0
    skipped: int = 0
    favicons_fetched: int = 0

    def merge(self, other: ImportStats) -> ImportStats:
        self.folders += other.folders
        self.links += other.links
        self.skipped += other.skipped
        self.favicons_fetched += other.favicons_fetched
        return self

    def as_dict(self) -> dict:
        return asdict(self)


def _import_link(
    user_id: int,
    link: ImportedLink,
    category_id: int,
    favicons: FaviconStore,
    favicon_timeout: float,
) -> ImportStats:
    if not link.url or not link.name:
        logger.info("Skipping bookmark with empty url or name: %r", link.url)
        return ImportStats(skipped=1)

    try:
        result = import_link(
            user_id,
            link.url,
            link.name,
            category_id,
            favicons=favicons,
            add_date=link.add_date,
            inline_icon=link.icon,
            favicon_timeout=favicon_timeout,
        )
    except LinkImportError as exc:
        logger.info("Skipping bookmark %r: %s", link.name, exc)
        return ImportStats(skipped=1)

    return ImportStats(links=1, favicons_fetched=1 if result.favicon_path else 0)


def _import_nodes(
    user_id: int,
    nodes: list[ImportedNode],
    category_id: int,
    favicons: FaviconStore,
    favicon_timeout: float,
) -> ImportStats:
    stats = ImportStats()
    for node in nodes:
        if isinstance(node, ImportedFolder):
            target_id = category_id
            if node.name:
                target_id = get_or_create_category(user_id, node.name, category_id)
                stats.folders += 1
            # nameless folders spill their contents into the enclosing category
            stats.merge(
                _import_nodes(
                    user_id, node.children, target_id, favicons, favicon_timeout
                )
            )
        elif isinstance(node, ImportedLink):
            stats.merge(
                _import_link(user_id, node, category_id, favicons, favicon_timeout)
            )
    return stats


def import_bookmark_tree(
    user_id: int,
    nodes: list[ImportedNode],
    favicons: FaviconStore,
    favicon_timeout: float = 2.0,
) -> ImportStats:
    root_id = get_or_create_category(user_id, ROOT_CATEGORY_NAME, None)
    stats = ImportStats(folders=1)
    return stats.merge(
        _import_nodes(user_id, nodes, root_id, favicons, favicon_timeout)
    )


def run_bookmark_import(
    user_id: int,
    html: str | bytes,
    favicons: FaviconStore,
    favicon_timeout: float = 2.0,
) -> ImportStats:
    try:
        nodes = parse_bookmark_html(html)
        stats = import_bookmark_tree(user_id, nodes, favicons, favicon_timeout)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Imported bookmarks for user %s: %s", user_id, stats.as_dict()
    )
    return stats
