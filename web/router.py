"""FastAPI router for the link list page and its form/query endpoints."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from server.favicons import FaviconResolver, domain_from_url
from server.logging_config import get_logger
from server.repository import DIRECTIONS, LinkRepository
from server import services

logger = get_logger(__name__)


# Paths: support PyInstaller bundle (sys._MEIPASS) and normal run
if getattr(sys, "frozen", False):
    _base = Path(sys._MEIPASS) / "web"
else:
    _base = Path(__file__).resolve().parent
TEMPLATES_DIR = _base / "templates"
STATIC_DIR = _base / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["domain"] = lambda url: domain_from_url(url) or url

router = APIRouter(tags=["links"])


# --- Dependencies ---


def get_repository(request: Request) -> Iterator[LinkRepository]:
    """One session per request on the engine built at startup."""
    with Session(request.app.state.engine) as session:
        yield LinkRepository(session)


def get_resolver(request: Request) -> FaviconResolver:
    return request.app.state.resolver


def _back_to_list() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=303)


def _parse_id(value: Optional[str]) -> Optional[int]:
    """Return a positive integer id, or None when *value* is not one."""
    try:
        link_id = int((value or "").strip())
    except ValueError:
        return None
    return link_id if link_id > 0 else None


def _require_id(value: Optional[str]) -> int:
    if not (value or "").strip():
        raise HTTPException(status_code=400, detail="Missing id")
    link_id = _parse_id(value)
    if link_id is None:
        raise HTTPException(status_code=400, detail="Invalid id")
    return link_id


def _store_failure(verb: str, exc: SQLAlchemyError) -> HTTPException:
    logger.error(f"Failed to {verb} link: {exc}")
    return HTTPException(status_code=500, detail=f"Failed to {verb} link: {exc}")


# --- Listing ---


@router.get("/")
def list_links(
    request: Request,
    repo: LinkRepository = Depends(get_repository),
    resolver: FaviconResolver = Depends(get_resolver),
):
    """Render all links in position order, resolving icons not looked up yet."""
    try:
        links = repo.list_ordered()
        if request.app.state.config.favicons.resolve_on_render:
            if services.resolve_missing_icons(repo, resolver, links):
                links = repo.list_ordered()
    except SQLAlchemyError as exc:
        logger.error(f"Database query error: {exc}")
        raise HTTPException(status_code=500, detail="Database query error")

    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "links": links,
            "fallback_icon": resolver.fallback,
        },
    )


# --- Mutations ---


@router.post("/add")
def add_link(
    name: str = Form(""),
    url: str = Form(""),
    favicon: str = Form(""),
    repo: LinkRepository = Depends(get_repository),
    resolver: FaviconResolver = Depends(get_resolver),
):
    try:
        services.add_link(repo, resolver, name, url, favicon)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError as exc:
        raise _store_failure("insert", exc)
    return _back_to_list()


@router.get("/edit", include_in_schema=False)
def edit_link_get():
    """Menu link followed without JS; nothing to do."""
    return _back_to_list()


@router.post("/edit")
def edit_link(
    id: str = Form(""),
    name: str = Form(""),
    url: str = Form(""),
    favicon: str = Form(""),
    repo: LinkRepository = Depends(get_repository),
):
    link_id = _require_id(id)
    try:
        if not services.edit_link(repo, link_id, name, url, favicon):
            logger.debug(f"Edit of missing link {link_id} ignored")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError as exc:
        raise _store_failure("update", exc)
    return _back_to_list()


def _delete(link_id: int, repo: LinkRepository) -> RedirectResponse:
    try:
        if repo.delete(link_id):
            logger.info(f"Deleted link {link_id}")
    except SQLAlchemyError as exc:
        raise _store_failure("delete", exc)
    return _back_to_list()


@router.get("/delete")
def delete_link_get(
    id: Optional[str] = None,
    repo: LinkRepository = Depends(get_repository),
):
    return _delete(_require_id(id), repo)


@router.post("/delete")
def delete_link_post(
    id: str = Form(""),
    repo: LinkRepository = Depends(get_repository),
):
    return _delete(_require_id(id), repo)


@router.get("/move")
def move_link(
    id: Optional[str] = None,
    dir: Optional[str] = None,
    repo: LinkRepository = Depends(get_repository),
):
    """Swap a link with its neighbour. Every failure is a silent redirect."""
    direction = (dir or "").strip().lower()
    link_id = _parse_id(id)
    if link_id is None or direction not in DIRECTIONS:
        return _back_to_list()

    try:
        moved = repo.move(link_id, direction)
    except SQLAlchemyError as exc:
        logger.warning(f"Move lookup failed for link {link_id}: {exc}")
        moved = False
    if not moved:
        logger.debug(f"Move {direction} of link {link_id} was a no-op")
    return _back_to_list()


@router.post("/move", include_in_schema=False)
def move_link_post():
    return _back_to_list()


# --- Diagnostics ---


@router.get("/headers")
def echo_headers(request: Request) -> PlainTextResponse:
    """Echo the request headers, one `Name: value` per line."""
    lines = [f"{name}: {value}\n" for name, value in request.headers.items()]
    return PlainTextResponse("".join(lines))
