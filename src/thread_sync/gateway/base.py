from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from thread_sync.core.models.node import Direction
from thread_sync.core.protocol.payloads import BackendArticle


class GatewayError(Exception):
    """A dispatched request failed; `message` is safe to show to the user."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class UploadFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class VoteResult:
    voted: bool
    upvote_count: int
    downvote_count: int


@dataclass(frozen=True)
class VoteTally:
    upvote_count: int
    downvote_count: int


class RemoteGateway(Protocol):
    async def list_roots(self) -> list[BackendArticle]: ...

    async def get_detail(self, node_id: str, depth: int) -> BackendArticle: ...

    async def create(self, parent_id: Optional[str], title: str, content: str) -> BackendArticle: ...

    async def update(self, node_id: str, title: Optional[str], content: Optional[str]) -> BackendArticle: ...

    async def upload_images(self, node_id: str, files: Sequence[UploadFile]) -> None: ...

    async def vote(self, node_id: str, direction: Direction) -> VoteResult: ...

    async def delete(self, node_id: str) -> None: ...

    async def get_vote_counts(self, node_id: str) -> VoteTally: ...
