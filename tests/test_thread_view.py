"""Tests for the stable sort snapshot, new-item pinning and per-parent pagination."""

import asyncio
from dataclasses import replace

import pytest

from fakes import make_node

from thread_sync.core.tree.ops import update
from thread_sync.view.thread_view import ThreadSortPaginator, sort_nodes


def _ids(page) -> list:
    return [n.id for n in page.items]


def _view(store, settings, *children):
    store._publish((make_node("art", children=children),))
    view = ThreadSortPaginator(store, settings)
    view.navigate("art")
    return view


def test_top_order_is_held_while_scores_change(store, settings) -> None:
    """Live score changes update the label, not the position."""

    view = _view(store, settings, make_node("a", parent_id="art", up=5), make_node("b", parent_id="art", up=3))
    assert _ids(view.view()) == ["a", "b"]

    store._publish(update(store.roots, "a", lambda n: replace(n, upvote_count=1)))

    page = view.view()
    assert _ids(page) == ["a", "b"]
    assert page.items[0].upvote_count == 1

    view.resort()
    assert _ids(view.view()) == ["b", "a"]


def test_sort_modes_and_tie_break() -> None:
    """Top sorts by score then recency; newest by recency; unknown modes raise."""

    old_high = make_node("old", up=2, minute=1)
    new_high = make_node("new", up=2, minute=5)
    low = make_node("low", up=0, minute=9)

    assert [n.id for n in sort_nodes([old_high, low, new_high], "top")] == ["new", "old", "low"]
    assert [n.id for n in sort_nodes([old_high, low, new_high], "newest")] == ["low", "new", "old"]
    with pytest.raises(ValueError):
        sort_nodes([], "random")


def test_changing_sort_mode_recomputes(store, settings) -> None:
    """A new sort mode discards the held order."""

    view = _view(
        store,
        settings,
        make_node("a", parent_id="art", up=5, minute=1),
        make_node("b", parent_id="art", up=1, minute=2),
    )
    assert _ids(view.view()) == ["a", "b"]

    view.set_sort_mode("newest")
    assert _ids(view.view()) == ["b", "a"]


def test_session_new_items_are_pinned_until_resort(store, settings) -> None:
    """Items created in this session stay on top until the next resort."""

    view = _view(store, settings, make_node("a", parent_id="art", up=5), make_node("b", parent_id="art", up=3))
    assert _ids(view.view()) == ["a", "b"]

    result = asyncio.run(store.create("art", "first!"))
    assert _ids(view.view()) == [result.node_id, "a", "b"]

    view.resort()
    # score 0 now sorts below the others
    assert _ids(view.view()) == ["a", "b", result.node_id]


def test_navigation_folds_pinned_items(store, settings) -> None:
    """Navigating again folds pinned items into the sorted order."""

    view = _view(store, settings, make_node("a", parent_id="art", up=5))
    view.view()
    result = asyncio.run(store.create("art", "reply"))
    assert _ids(view.view())[0] == result.node_id

    view.navigate("art")
    assert _ids(view.view()) == ["a", result.node_id]


def test_unseen_children_append_and_deleted_ids_skip(store, settings) -> None:
    """New children join at the end and removed ones drop out of the held order."""

    view = _view(store, settings, make_node("a", parent_id="art", up=1), make_node("b", parent_id="art", up=3))
    assert _ids(view.view()) == ["b", "a"]

    def swap_children(n):
        return replace(n, children=(n.children[0], make_node("c", parent_id="art", up=9)))

    store._publish(update(store.roots, "art", swap_children))
    assert _ids(view.view()) == ["a", "c"]


def test_pagination_cursors_are_independent(store, settings) -> None:
    """Each parent keeps its own visible count."""

    p1_replies = [make_node(f"p1-{i}", parent_id="p1", minute=i) for i in range(15)]
    p2_replies = [make_node(f"p2-{i}", parent_id="p2", minute=i) for i in range(5)]
    top = [make_node("p1", parent_id="art", children=p1_replies, up=2), make_node("p2", parent_id="art", children=p2_replies)]
    top += [make_node(f"t{i}", parent_id="art", minute=i) for i in range(12)]
    view = _view(store, settings, *top)

    root_page = view.view()
    assert len(root_page.items) == 10
    assert root_page.total == 14
    assert root_page.remaining == 4

    assert view.visible_count("p1") == 2
    assert view.load_more("p1") == 12
    page = view.view("p1")
    assert len(page.items) == 12
    assert page.remaining == 3

    assert view.visible_count("p2") == 2
    assert len(view.view("p2").items) == 2
    assert view.view("p2").has_more
    assert view.visible_count() == 10

    view.load_more()
    assert len(view.view().items) == 14
    assert not view.view().has_more


def test_unknown_parent_yields_empty_page(store, settings) -> None:
    """A missing focus gives an empty page, not an error."""

    view = ThreadSortPaginator(store, settings)
    assert view.view().items == ()
    view.navigate("ghost")
    assert view.view().total == 0
