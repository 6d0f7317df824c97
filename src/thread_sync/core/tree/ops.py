"""Recursive lookup, copy-on-write update and removal over a node forest.

## Structural sharing

`update` and `remove_anywhere` rebuild only the path from a top-level node to
the touched node. Every other node, and every sibling tuple that contains no
touched node, is returned by reference. When nothing matches, the input
tuple itself is returned, so `result is tree` is a valid no-op check.

Ids are unique across the whole forest, so lookups never need a parent path.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Optional, Sequence, Tuple

from thread_sync.core.models.node import Node


Tree = Tuple[Node, ...]
Transform = Callable[[Node], Node]


def locate(tree: Sequence[Node], node_id: str) -> Optional[Node]:
    """Depth-first search: each node is checked before its children."""
    for node in tree:
        if node.id == node_id:
            return node
        if node.children:
            found = locate(node.children, node_id)
            if found is not None:
                return found
    return None


def update(tree: Tree, node_id: str, transform: Transform) -> Tree:
    """Replace the node with `node_id` by `transform(node)`.

    `transform` must be pure and must not mutate its argument.
    """
    changed = False
    out: list[Node] = []
    for node in tree:
        updated = node
        if node.id == node_id:
            updated = transform(node)
        elif node.children:
            children = update(node.children, node_id, transform)
            if children is not node.children:
                updated = replace(node, children=children)
        if updated is not node:
            changed = True
        out.append(updated)
    return tuple(out) if changed else tree


def remove_anywhere(tree: Tree, node_id: str) -> Tree:
    """Drop the node with `node_id`, and with it its whole subtree, at any depth."""
    changed = False
    out: list[Node] = []
    for node in tree:
        if node.id == node_id:
            changed = True
            continue
        updated = node
        if node.children:
            children = remove_anywhere(node.children, node_id)
            if children is not node.children:
                updated = replace(node, children=children)
                changed = True
        out.append(updated)
    return tuple(out) if changed else tree


def parent_chain(tree: Sequence[Node], node_id: str) -> Optional[list[Node]]:
    """Return the nodes from the top level down to `node_id` (inclusive), or None."""
    for node in tree:
        if node.id == node_id:
            return [node]
        if node.children:
            below = parent_chain(node.children, node_id)
            if below is not None:
                return [node] + below
    return None


def find_root_id(tree: Sequence[Node], node_id: str) -> Optional[str]:
    chain = parent_chain(tree, node_id)
    if not chain:
        return None
    return chain[0].id


def iter_nodes(tree: Sequence[Node]):
    for node in tree:
        yield node
        yield from iter_nodes(node.children)
