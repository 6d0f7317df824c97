"""Immutable node model shared by articles and comments.

A node owns its subtree: `children` holds the replies physically, so dropping a
node from its parent drops every descendant with it. All collection fields are
tuples and the dataclass is frozen, which means a published tree can never be
observed half-updated. Updates build new nodes with `dataclasses.replace`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal, Optional, Tuple


Vote = Literal["upvote", "downvote"]
Direction = Literal["up", "down"]

DIRECTION_TO_VOTE: dict[str, Vote] = {"up": "upvote", "down": "downvote"}


@dataclass(frozen=True)
class Voter:
    voter_id: str
    vote: Vote


@dataclass(frozen=True)
class Node:
    id: str
    parent_id: Optional[str]
    title: str
    content: str
    owner_id: str
    owner_username: str
    created_at: datetime
    updated_at: datetime
    images: Tuple[str, ...] = ()
    upvote_count: int = 0
    downvote_count: int = 0
    voters: Tuple[Voter, ...] = ()
    children: Tuple["Node", ...] = ()
    comments_count: int = 0
    slug: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


def vote_of(node: Node, user_id: str) -> Optional[Vote]:
    for voter in node.voters:
        if voter.voter_id == user_id:
            return voter.vote
    return None


def score(node: Node) -> int:
    return node.upvote_count - node.downvote_count


def with_voter(node: Node, user_id: str, vote: Optional[Vote]) -> Node:
    """Return `node` with exactly one (or, for `vote=None`, zero) entries for `user_id`."""
    others = tuple(v for v in node.voters if v.voter_id != user_id)
    if vote is not None:
        others = others + (Voter(voter_id=user_id, vote=vote),)
    if others == node.voters:
        return node
    return replace(node, voters=others)
