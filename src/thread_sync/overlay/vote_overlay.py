from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Dict, Optional

from thread_sync.core.models.node import Node, Vote, vote_of, with_voter
from thread_sync.persistence.base import KeyValueStorage


logger = logging.getLogger(__name__)

_VALID_VOTES = ("upvote", "downvote")


class VoteOverlay:
    """Per-user memory of the caller's own vote on each node.

    The bulk list endpoint does not return per-user vote relations, so without
    this record the vote buttons would reset to "no vote" on every reload.

    Storage is best-effort: unreadable or corrupt records read as empty, and
    failed writes are logged and dropped.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    @staticmethod
    def storage_key(user_id: str) -> str:
        return f"votes.{user_id}"

    def get(self, user_id: str, node_id: str) -> Optional[Vote]:
        return self._read(user_id).get(node_id)

    def set(self, user_id: str, node_id: str, vote: Optional[Vote]) -> None:
        votes = self._read(user_id)
        if vote is None:
            if node_id not in votes:
                return
            del votes[node_id]
        else:
            votes[node_id] = vote
        self._write(user_id, votes)

    def apply_to(self, node: Node, user_id: Optional[str]) -> Node:
        """Synthesize the user's voter entry from the overlay when the payload lacks one.

        Applies to the whole subtree, so nested replies fetched at depth get the
        same treatment as the node itself.
        """
        if not user_id:
            return node
        return self._apply(node, user_id, self._read(user_id))

    def _apply(self, node: Node, user_id: str, votes: Dict[str, Vote]) -> Node:
        out = node
        persisted = votes.get(node.id)
        if persisted is not None and vote_of(node, user_id) is None:
            out = with_voter(out, user_id, persisted)
        if node.children:
            children = tuple(self._apply(c, user_id, votes) for c in node.children)
            if any(a is not b for a, b in zip(children, node.children)):
                out = replace(out, children=children)
        return out

    def _read(self, user_id: str) -> Dict[str, Vote]:
        try:
            raw = self._storage.get(self.storage_key(user_id))
        except (OSError, ValueError):
            logger.debug("vote overlay read failed", extra={"user_id": user_id})
            return {}
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.debug("vote overlay corrupt, ignoring", extra={"user_id": user_id})
            return {}
        if not isinstance(parsed, dict):
            return {}
        return {str(k): v for k, v in parsed.items() if v in _VALID_VOTES}

    def _write(self, user_id: str, votes: Dict[str, Vote]) -> None:
        try:
            self._storage.set(self.storage_key(user_id), json.dumps(votes, separators=(",", ":")))
        except OSError:
            logger.warning("vote overlay write failed", extra={"user_id": user_id})
