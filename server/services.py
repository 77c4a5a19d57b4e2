"""Link services: add/edit/icon logic shared by the web routes and the CLI.

Keeps validation and favicon handling separate from routes and storage.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from .favicons import FaviconResolver, domain_from_url
from .logging_config import get_logger
from .models import NAME_MAX_LENGTH, Link
from .repository import LinkRepository

logger = get_logger(__name__)


def normalize_name(name: Optional[str]) -> str:
    """Strip and silently truncate a display name."""
    return (name or "").strip()[:NAME_MAX_LENGTH]


def _require(name: str, href: str) -> None:
    if not name or not href:
        raise ValueError("Name and URL are required")


def add_link(
    repo: LinkRepository,
    resolver: FaviconResolver,
    name: str,
    href: str,
    favicon: str = "",
) -> Link:
    """Create a link at the end of the list.

    An explicit favicon is stored as given; otherwise the icon is discovered
    from the target site. A miss stores None so the listing retries later.
    """
    name = normalize_name(name)
    href = (href or "").strip()
    _require(name, href)

    favicon = (favicon or "").strip()
    img = favicon or resolver.discover(domain_from_url(href))

    link = repo.create(name, href, img)
    logger.info(f"Added link {link.id} ({href}) at position {link.position}")
    return link


def edit_link(
    repo: LinkRepository,
    link_id: int,
    name: str,
    href: str,
    favicon: str = "",
) -> bool:
    """Update name, URL and icon. An empty favicon clears the icon for good.

    Returns False when the link does not exist.
    """
    name = normalize_name(name)
    href = (href or "").strip()
    _require(name, href)

    img = (favicon or "").strip()
    updated = repo.update(link_id, name, href, img)
    if updated:
        logger.info(f"Edited link {link_id}")
    return updated


def resolve_missing_icons(
    repo: LinkRepository,
    resolver: FaviconResolver,
    links: Iterable[Link],
) -> int:
    """Discover icons for links with img None and cache hits into the store.

    Returns the number of icons cached. Store failures are logged only.
    """
    cached = 0
    for link in links:
        if link.img is not None:
            continue
        icon = resolver.discover(domain_from_url(link.href))
        if not icon:
            continue
        try:
            repo.set_img(link.id, icon)
        except SQLAlchemyError as exc:
            logger.warning(f"Could not cache favicon for link {link.id}: {exc}")
            continue
        cached += 1
    return cached


def refresh_icons(
    repo: LinkRepository,
    resolver: FaviconResolver,
    all_links: bool = False,
) -> int:
    """Re-discover icons for unresolved links, or for every link with all_links.

    Links whose icon was explicitly cleared ("") are left alone.
    """
    if not all_links:
        return resolve_missing_icons(repo, resolver, repo.links_without_icon())

    refreshed = 0
    for link in repo.list_ordered():
        if link.img == "":
            continue
        icon = resolver.discover(domain_from_url(link.href))
        if not icon or icon == link.img:
            continue
        try:
            repo.set_img(link.id, icon)
        except SQLAlchemyError as exc:
            logger.warning(f"Could not store favicon for link {link.id}: {exc}")
            continue
        refreshed += 1
    return refreshed
