"""Data Access Layer for newtab.

Encapsulates database operations on the links table using SQLModel/SQLAlchemy.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, func, select

from .logging_config import get_logger
from .models import Link

logger = get_logger(__name__)

DIRECTIONS = ("up", "down")

# Parking spot for the moving row during a swap; valid positions are >= 0
SENTINEL_POSITION = -1


class LinkRepository:
    """Data access layer over one session.

    Mutating methods commit on success. Store errors propagate as
    SQLAlchemyError after the session has been rolled back, except in
    `move`, which reports failure as a no-op.
    """

    def __init__(self, session: Session):
        self.session = session

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    # --- Read Methods ---

    def get(self, link_id: int) -> Optional[Link]:
        return self.session.get(Link, link_id)

    def list_ordered(self) -> List[Link]:
        """Return all links sorted by position (display order)."""
        statement = select(Link).order_by(col(Link.position))
        return list(self.session.exec(statement).all())

    def max_position(self) -> Optional[int]:
        return self.session.exec(select(func.max(Link.position))).one()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(Link)).one()

    def links_without_icon(self) -> List[Link]:
        """Links whose icon was never resolved (img IS NULL)."""
        statement = (
            select(Link).where(col(Link.img).is_(None)).order_by(col(Link.position))
        )
        return list(self.session.exec(statement).all())

    # --- Write Methods ---

    def create(self, name: Optional[str], href: str, img: Optional[str] = None) -> Link:
        """Insert a link at the end of the list (max position + 1, or 0)."""
        max_pos = self.max_position()
        position = 0 if max_pos is None else max_pos + 1

        link = Link(name=name, href=href, img=img, position=position)
        self.session.add(link)
        self._commit()
        self.session.refresh(link)
        return link

    def update(self, link_id: int, name: Optional[str], href: str, img: Optional[str]) -> bool:
        """Overwrite name, href and img. img is always written, None included.

        Returns False when the link does not exist.
        """
        link = self.session.get(Link, link_id)
        if link is None:
            return False
        link.name = name
        link.href = href
        link.img = img
        self.session.add(link)
        self._commit()
        return True

    def set_img(self, link_id: int, img: Optional[str]) -> None:
        link = self.session.get(Link, link_id)
        if link is None:
            return
        link.img = img
        self.session.add(link)
        self._commit()

    def delete(self, link_id: int) -> bool:
        """Hard delete. Deleting a missing id is not an error."""
        link = self.session.get(Link, link_id)
        if link is None:
            return False
        self.session.delete(link)
        self._commit()
        return True

    def move(self, link_id: int, direction: str) -> bool:
        """Swap the link with its nearest neighbour in *direction*.

        Returns False (and changes nothing) when the link is missing, it is
        already first/last, or the swap fails.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction: {direction!r}")

        link = self.session.get(Link, link_id)
        if link is None:
            return False
        current = link.position

        if direction == "up":
            statement = (
                select(Link)
                .where(Link.position < current)
                .order_by(col(Link.position).desc())
            )
        else:
            statement = (
                select(Link)
                .where(Link.position > current)
                .order_by(col(Link.position).asc())
            )
        neighbor = self.session.exec(statement.limit(1)).first()
        if neighbor is None:
            return False
        neighbor_position = neighbor.position

        # Three flushed steps so a unique index on position never sees a duplicate
        try:
            link.position = SENTINEL_POSITION
            self.session.add(link)
            self.session.flush()

            neighbor.position = current
            self.session.add(neighbor)
            self.session.flush()

            link.position = neighbor_position
            self.session.add(link)
            self.session.flush()

            self.session.commit()
        except SQLAlchemyError as exc:
            logger.warning(f"Move of link {link_id} {direction} rolled back: {exc}")
            self.session.rollback()
            return False
        return True
