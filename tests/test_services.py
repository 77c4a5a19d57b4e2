"""Tests for add/edit/icon services."""

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from server import services
from server.database import open_database
from server.favicons import FaviconResolver
from server.repository import LinkRepository


class StubResolver(FaviconResolver):
    """Resolver answering from a dict instead of the network."""

    def __init__(self, icons=None):
        super().__init__(fallback="/static/earth.svg")
        self.icons = icons or {}
        self.calls = []

    def discover(self, domain):
        self.calls.append(domain)
        return self.icons.get(domain)


@pytest.fixture
def repo(tmp_path):
    engine = open_database(tmp_path / "links.sqlite")
    with Session(engine) as session:
        yield LinkRepository(session)
    engine.dispose()


def test_normalize_name_truncates_to_20_characters():
    assert services.normalize_name("  abcdefghijklmnopqrstuvwxyz ") == "abcdefghijklmnopqrst"
    assert services.normalize_name(None) == ""


def test_add_link_stores_first_20_characters(repo):
    link = services.add_link(repo, StubResolver(), "x" * 25, "https://a.example/", "/i.png")
    assert repo.get(link.id).name == "x" * 20


def test_add_link_discovers_icon_when_not_given(repo):
    resolver = StubResolver({"a.example": "https://a.example/icon.png"})
    link = services.add_link(repo, resolver, "a", "https://a.example/page")

    assert resolver.calls == ["a.example"]
    assert link.img == "https://a.example/icon.png"


def test_add_link_keeps_explicit_icon_without_lookup(repo):
    resolver = StubResolver({"a.example": "https://a.example/icon.png"})
    link = services.add_link(repo, resolver, "a", "https://a.example/", "https://img/x.png")

    assert resolver.calls == []
    assert link.img == "https://img/x.png"


def test_add_link_miss_leaves_icon_unresolved(repo):
    link = services.add_link(repo, StubResolver(), "a", "https://a.example/")
    assert link.img is None


@pytest.mark.parametrize("name,href", [("", "https://a.example/"), ("a", ""), ("  ", "  ")])
def test_add_link_requires_name_and_url(repo, name, href):
    with pytest.raises(ValueError):
        services.add_link(repo, StubResolver(), name, href)
    assert repo.count() == 0


def test_edit_link_with_empty_favicon_clears_icon(repo):
    link = repo.create("a", "https://a.example/", "https://a.example/icon.png")

    assert services.edit_link(repo, link.id, "b", "https://b.example/", "") is True
    stored = repo.get(link.id)
    assert stored.img == ""
    assert stored.name == "b"
    assert stored.position == link.position


def test_edit_link_missing_id(repo):
    assert services.edit_link(repo, 77, "b", "https://b.example/") is False


def test_resolve_missing_icons_caches_hits_only(repo):
    repo.create("hit", "https://hit.example/", None)
    repo.create("miss", "https://miss.example/", None)
    repo.create("cleared", "https://cleared.example/", "")
    resolver = StubResolver({
        "hit.example": "https://hit.example/f.ico",
        "cleared.example": "https://cleared.example/f.ico",
    })

    cached = services.resolve_missing_icons(repo, resolver, repo.list_ordered())

    assert cached == 1
    assert resolver.calls == ["hit.example", "miss.example"]
    assert [link.img for link in repo.list_ordered()] == ["https://hit.example/f.ico", None, ""]


def test_refresh_icons_all_skips_cleared(repo):
    repo.create("old", "https://old.example/", "https://old.example/old.png")
    repo.create("cleared", "https://cleared.example/", "")
    resolver = StubResolver({
        "old.example": "https://old.example/new.png",
        "cleared.example": "https://cleared.example/f.ico",
    })

    assert services.refresh_icons(repo, resolver, all_links=True) == 1
    assert [link.img for link in repo.list_ordered()] == ["https://old.example/new.png", ""]


def test_refresh_icons_all_survives_store_errors(repo, monkeypatch):
    repo.create("a", "https://a.example/", "https://a.example/old.png")
    repo.create("b", "https://b.example/", None)
    resolver = StubResolver({
        "a.example": "https://a.example/new.png",
        "b.example": "https://b.example/new.png",
    })

    def failing_set_img(link_id, img):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(repo, "set_img", failing_set_img)

    assert services.refresh_icons(repo, resolver, all_links=True) == 0
    assert resolver.calls == ["a.example", "b.example"]
