"""Stable, paginated ordering of a node's replies for display.

The order of a parent's children is computed once, on first display or after
an explicit re-sort, and cached as a list of ids. Each render resolves those
ids against the live tree, so counts update in place while positions hold
still. Session-new replies that the cached order does not know yet are shown
first; the next re-sort or navigation folds them in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from thread_sync.config import ClientSettings
from thread_sync.core.models.node import Node, score
from thread_sync.services.content_store import ContentStore


SortMode = Literal["top", "newest"]

ROOT_KEY = "root"


def sort_nodes(nodes: Sequence[Node], mode: SortMode) -> List[Node]:
    if mode == "top":
        return sorted(nodes, key=lambda n: (-score(n), -n.created_at.timestamp()))
    if mode == "newest":
        return sorted(nodes, key=lambda n: -n.created_at.timestamp())
    raise ValueError(f"unknown sort mode: {mode!r}")


@dataclass(frozen=True)
class ThreadPage:
    items: Tuple[Node, ...]
    total: int
    visible_count: int

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.visible_count)

    @property
    def has_more(self) -> bool:
        return self.total > self.visible_count


class ThreadSortPaginator:
    def __init__(self, store: ContentStore, settings: Optional[ClientSettings] = None) -> None:
        settings = settings or ClientSettings()
        self._store = store
        self._root_page_size = settings.root_page_size
        self._reply_page_size = settings.reply_page_size
        self._page_step = settings.page_step

        self.sort_mode: SortMode = "top"
        self.focus_id: Optional[str] = None
        self._orders: Dict[str, List[str]] = {}
        self._cursors: Dict[str, int] = {}

    def navigate(self, node_id: str) -> None:
        """Show the replies of `node_id`; all snapshots and cursors start over."""
        self.focus_id = node_id
        self._orders.clear()
        self._cursors.clear()

    def set_sort_mode(self, mode: SortMode) -> None:
        if mode not in ("top", "newest"):
            raise ValueError(f"unknown sort mode: {mode!r}")
        self.sort_mode = mode
        self._orders.clear()

    def resort(self, parent_id: Optional[str] = None) -> None:
        self._orders.pop(self._key(parent_id), None)

    def visible_count(self, parent_id: Optional[str] = None) -> int:
        key = self._key(parent_id)
        default = self._root_page_size if key == ROOT_KEY else self._reply_page_size
        return self._cursors.get(key, default)

    def load_more(self, parent_id: Optional[str] = None) -> int:
        key = self._key(parent_id)
        self._cursors[key] = self.visible_count(parent_id) + self._page_step
        return self._cursors[key]

    def ordered(self, parent_id: Optional[str] = None) -> List[Node]:
        parent = self._parent(parent_id)
        if parent is None:
            return []
        children = parent.children
        key = self._key(parent_id)

        order = self._orders.get(key)
        if order is None:
            order = [n.id for n in sort_nodes(children, self.sort_mode)]
            self._orders[key] = order

        by_id = {c.id: c for c in children}
        known = set(order)
        new_ids = self._store.new_ids

        pinned = [c for c in reversed(children) if c.id in new_ids and c.id not in known]
        cached = [by_id[i] for i in order if i in by_id]
        unseen = sort_nodes(
            [c for c in children if c.id not in known and c.id not in new_ids], self.sort_mode
        )
        return pinned + cached + unseen

    def view(self, parent_id: Optional[str] = None) -> ThreadPage:
        """Replies of `parent_id`, or of the focused node when None."""
        items = self.ordered(parent_id)
        visible = self.visible_count(parent_id)
        return ThreadPage(items=tuple(items[:visible]), total=len(items), visible_count=visible)

    def _key(self, parent_id: Optional[str]) -> str:
        if parent_id is None or parent_id == self.focus_id:
            return ROOT_KEY
        return parent_id

    def _parent(self, parent_id: Optional[str]) -> Optional[Node]:
        target = parent_id if parent_id is not None else self.focus_id
        if target is None:
            return None
        return self._store.get_by_id(target)
