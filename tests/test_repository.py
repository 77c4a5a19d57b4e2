"""Tests for link storage and reordering."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from server.database import open_database
from server.models import Link
from server.repository import LinkRepository


@pytest.fixture
def engine(tmp_path):
    engine = open_database(tmp_path / "links.sqlite")
    yield engine
    engine.dispose()


@pytest.fixture
def repo(engine):
    with Session(engine) as session:
        yield LinkRepository(session)


def _names(repo: LinkRepository) -> list:
    return [link.name for link in repo.list_ordered()]


def _add_all(repo: LinkRepository, *names: str) -> list:
    return [repo.create(name, f"https://{name}.example/").id for name in names]


def test_create_appends_positions_from_zero(repo):
    assert repo.max_position() is None

    first = repo.create("a", "https://a.example/")
    second = repo.create("b", "https://b.example/")

    assert first.position == 0
    assert second.position == 1
    assert second.id > first.id
    assert repo.max_position() == 1


def test_ids_are_not_reused_after_delete(repo):
    a, b = _add_all(repo, "a", "b")
    repo.delete(b)
    c = repo.create("c", "https://c.example/").id
    assert c > b


def test_href_is_required_by_the_store(repo):
    with pytest.raises(IntegrityError):
        repo.create("broken", None)
    assert repo.count() == 0


def test_move_up_and_down_swap_neighbours(repo):
    a, b, c = _add_all(repo, "a", "b", "c")

    assert repo.move(c, "up") is True
    assert _names(repo) == ["a", "c", "b"]

    assert repo.move(a, "down") is True
    assert _names(repo) == ["c", "a", "b"]


def test_move_up_on_first_is_noop(repo):
    a, b = _add_all(repo, "a", "b")
    assert repo.move(a, "up") is False
    assert _names(repo) == ["a", "b"]


def test_move_down_on_last_is_noop(repo):
    a, b = _add_all(repo, "a", "b")
    assert repo.move(b, "down") is False
    assert _names(repo) == ["a", "b"]


def test_move_up_then_down_restores_order(repo):
    ids = _add_all(repo, "a", "b", "c", "d")
    before = [(link.id, link.position) for link in repo.list_ordered()]

    assert repo.move(ids[2], "up")
    assert repo.move(ids[2], "down")

    assert [(link.id, link.position) for link in repo.list_ordered()] == before


def test_move_uses_nearest_neighbour_across_gaps(repo):
    a, b, c, d = _add_all(repo, "a", "b", "c", "d")
    repo.delete(b)
    repo.delete(c)

    assert repo.move(d, "up") is True
    ordered = repo.list_ordered()
    assert [link.name for link in ordered] == ["d", "a"]
    assert [link.position for link in ordered] == [0, 3]


def test_move_missing_link_is_noop(repo):
    _add_all(repo, "a")
    assert repo.move(999, "up") is False


def test_failed_swap_rolls_back(repo):
    a, b = _add_all(repo, "a", "b")
    # a row already parked where the swap wants to park
    repo.session.add(Link(name="parked", href="https://p.example/", position=-1))
    repo.session.commit()

    assert repo.move(b, "up") is False
    ordered = repo.list_ordered()
    assert [link.name for link in ordered] == ["parked", "a", "b"]
    assert [link.position for link in ordered] == [-1, 0, 1]


def test_move_rejects_unknown_direction(repo):
    (a,) = _add_all(repo, "a")
    with pytest.raises(ValueError):
        repo.move(a, "sideways")


def test_positions_stay_unique(repo):
    ids = _add_all(repo, "a", "b", "c", "d", "e")
    for link_id, direction in [
        (ids[0], "down"), (ids[4], "up"), (ids[2], "up"), (ids[1], "down"),
        (ids[0], "down"), (ids[3], "up"), (ids[4], "down"),
    ]:
        repo.move(link_id, direction)
    repo.create("f", "https://f.example/")

    positions = [link.position for link in repo.list_ordered()]
    assert len(positions) == len(set(positions)) == 6
    assert min(positions) >= 0


def test_update_always_writes_img(repo):
    link = repo.create("a", "https://a.example/", "https://a.example/icon.png")

    assert repo.update(link.id, "renamed", "https://b.example/", None) is True
    stored = repo.get(link.id)
    assert stored.name == "renamed"
    assert stored.href == "https://b.example/"
    assert stored.img is None


def test_update_missing_link_returns_false(repo):
    assert repo.update(42, "x", "https://x.example/", "") is False


def test_delete_missing_id_leaves_others_alone(repo):
    _add_all(repo, "a", "b", "c")
    before = [(link.id, link.position) for link in repo.list_ordered()]

    assert repo.delete(12345) is False
    assert [(link.id, link.position) for link in repo.list_ordered()] == before


def test_delete_does_not_renumber(repo):
    a, b, c = _add_all(repo, "a", "b", "c")
    repo.delete(b)
    assert [link.position for link in repo.list_ordered()] == [0, 2]


def test_links_without_icon_skips_cleared(repo):
    repo.create("unset", "https://u.example/", None)
    repo.create("cleared", "https://c.example/", "")
    repo.create("set", "https://s.example/", "https://s.example/i.png")

    assert [link.name for link in repo.links_without_icon()] == ["unset"]
