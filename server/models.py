"""SQLModel database models for newtab."""

from typing import Optional

from sqlmodel import Field, SQLModel

NAME_MAX_LENGTH = 20


class LinkBase(SQLModel):
    name: Optional[str] = Field(default=None, max_length=NAME_MAX_LENGTH)
    href: str
    # None: not resolved yet. "": cleared by the user, never re-resolved.
    img: Optional[str] = None
    position: int = Field(default=0, unique=True)


class Link(LinkBase, table=True):
    __tablename__ = "links"
    # AUTOINCREMENT keeps ids of deleted rows from being handed out again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
