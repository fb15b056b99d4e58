from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Union

from bs4 import BeautifulSoup, Tag


_STRUCTURAL_TAGS = {"dt", "dl", "h3", "a"}


class BookmarkParseError(ValueError):
    pass


@dataclass
class ImportedLink:
    url: str
    name: str
    add_date: str | None = None
    icon: str | None = None


@dataclass
class ImportedFolder:
    name: str
    children: list[ImportedNode] = field(default_factory=list)


ImportedNode = Union[ImportedFolder, ImportedLink]


def _structural_children(node: Tag) -> Iterator[Tag]:
    # Stray wrappers such as the <p> after every <DL> are looked through.
    for child in node.children:
        if not isinstance(child, Tag):
            continue
        if (child.name or "").lower() in _STRUCTURAL_TAGS:
            yield child
        else:
            yield from _structural_children(child)


def _first(tags: list[Tag], name: str) -> Tag | None:
    for tag in tags:
        if tag.name == name:
            return tag
    return None


def _attr(tag: Tag, name: str) -> str | None:
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip() if isinstance(value, str) else None


def _parse_link(anchor: Tag) -> ImportedLink:
    return ImportedLink(
        url=_attr(anchor, "href") or "",
        name=anchor.get_text(strip=True),
        add_date=_attr(anchor, "add_date"),
        icon=_attr(anchor, "icon"),
    )


def _folder_body(
    dt: Tag, heading: Tag, children: list[Tag], claimed: set[int]
) -> Tag | None:
    """Find the DL holding a folder's contents.

    A DL inside the folder's own DT wins. Otherwise the body is the first DL
    after the heading in document order, as long as no other heading or link
    comes first. Parsers relocate that DL when DT, DD or P tags are left
    unclosed, but they keep it in document order.
    """
    body = _first(children, "dl")
    if body is None:
        following = heading.find_next(["dl", "h3", "a"])
        if following is None or following.name != "dl":
            return None
        body = following

    if id(body) in claimed:
        return None
    enclosing = dt.find_parent("dl")
    if enclosing is not None and not any(p is enclosing for p in body.parents):
        return None
    return body


def _parse_entry(dt: Tag, claimed: set[int]) -> list[ImportedNode]:
    """Parse one DT into nodes of the list that contains it.

    DTs nested inside this one are a parser artifact of unclosed tags and
    belong to the same list, after the folder or link this DT holds.
    """
    children = list(_structural_children(dt))
    heading = _first(children, "h3")
    nodes: list[ImportedNode] = []

    if heading is not None:
        folder = ImportedFolder(name=heading.get_text(strip=True))
        body = _folder_body(dt, heading, children, claimed)
        if body is not None:
            claimed.add(id(body))
            folder.children.extend(_parse_list(body, claimed))
        nodes.append(folder)

    for child in children:
        if id(child) in claimed:
            continue
        if child.name == "a":
            nodes.append(_parse_link(child))
        elif child.name == "dt":
            nodes.extend(_parse_entry(child, claimed))
        elif child.name == "dl":
            claimed.add(id(child))
            nodes.extend(_parse_list(child, claimed))
    return nodes


def _parse_list(dl: Tag, claimed: set[int]) -> list[ImportedNode]:
    nodes: list[ImportedNode] = []
    for child in _structural_children(dl):
        if id(child) in claimed:
            continue
        if child.name == "dt":
            nodes.extend(_parse_entry(child, claimed))
        elif child.name == "dl":
            nodes.extend(_parse_list(child, claimed))
    return nodes


def parse_bookmark_soup(soup: BeautifulSoup) -> list[ImportedNode]:
    root = soup.find("dl")
    if not isinstance(root, Tag):
        raise BookmarkParseError("No bookmarks found in file")
    return _parse_list(root, set())


def parse_bookmark_html(html: str | bytes) -> list[ImportedNode]:
    # bytes let bs4 honour the charset declared in the export's META tag
    return parse_bookmark_soup(BeautifulSoup(html, "lxml"))

