"""Snapshot / apply / confirm-or-rollback protocol for user-initiated mutations.

```
            apply()                 confirm()
  (new) ───────────▶ APPLYING ─────────────▶ CONFIRMED
                        │
                        │ rollback()
                        ▼
                   ROLLED_BACK
```

The snapshot is the whole published tree, taken before the optimistic edit.
Rollback republishes it as is, which also discards any other optimistic edit
that landed while this one was in flight. There is no per-node rollback.

Actions that are refused locally never reach this machine: they report
`REFUSED` and send nothing. Non-optimistic actions (create, edit) that fail
report `FAILED`; there is nothing to restore for them.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from thread_sync.core.tree.ops import Tree

if TYPE_CHECKING:
    from thread_sync.services.content_store import ContentStore


logger = logging.getLogger(__name__)


class MutationState(str, enum.Enum):
    REFUSED = "refused"
    APPLYING = "applying"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass(frozen=True)
class MutationResult:
    state: MutationState
    message: Optional[str] = None
    node_id: Optional[str] = None

    @property
    def accepted(self) -> bool:
        """True when the action was dispatched (whatever the server said)."""
        return self.state is not MutationState.REFUSED

    @property
    def ok(self) -> bool:
        return self.state is MutationState.CONFIRMED

    @classmethod
    def refused(cls, message: str, node_id: Optional[str] = None) -> "MutationResult":
        return cls(state=MutationState.REFUSED, message=message, node_id=node_id)

    @classmethod
    def failed(cls, message: str, node_id: Optional[str] = None) -> "MutationResult":
        return cls(state=MutationState.FAILED, message=message, node_id=node_id)


class OptimisticMutation:
    def __init__(self, store: "ContentStore", action: str, node_id: str, user_id: str) -> None:
        self._store = store
        self.action = action
        self.node_id = node_id
        self.user_id = user_id
        self.snapshot: Tree = store.roots
        self.state: Optional[MutationState] = None

    def _log_extra(self) -> dict:
        return {"node_id": self.node_id, "user_id": self.user_id, "action": self.action}

    def apply(self, edit: Callable[[Tree], Tree]) -> None:
        if self.state is not None:
            raise RuntimeError(f"mutation already {self.state.value}")
        self._store._publish(edit(self._store.roots))
        self.state = MutationState.APPLYING
        logger.debug("optimistic edit applied", extra=self._log_extra())

    def confirm(self, reconcile: Optional[Callable[[Tree], Tree]] = None) -> MutationResult:
        self._require_applying()
        if reconcile is not None:
            self._store._publish(reconcile(self._store.roots))
        self.state = MutationState.CONFIRMED
        logger.info("mutation confirmed", extra=self._log_extra())
        return MutationResult(state=self.state, node_id=self.node_id)

    def rollback(self, message: str) -> MutationResult:
        self._require_applying()
        self._store._publish(self.snapshot)
        self.state = MutationState.ROLLED_BACK
        logger.warning("mutation rolled back: %s", message, extra=self._log_extra())
        return MutationResult(state=self.state, message=message, node_id=self.node_id)

    def _require_applying(self) -> None:
        if self.state is not MutationState.APPLYING:
            raise RuntimeError(f"mutation not applying (state={self.state})")
