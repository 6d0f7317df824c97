from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from thread_sync.core.models.node import Direction


logger = logging.getLogger(__name__)


class ArticleServiceError(Exception):
    status_code = 400


class NotFoundError(ArticleServiceError):
    status_code = 404


class ForbiddenError(ArticleServiceError):
    status_code = 403


@dataclass
class _Image:
    path: str
    filename: str
    created_at: datetime


@dataclass
class _Article:
    id: str
    title: str
    content: str
    author_id: str
    parent_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    child_ids: List[str] = field(default_factory=list)
    images: List[_Image] = field(default_factory=list)
    upvoters: List[str] = field(default_factory=list)
    downvoters: List[str] = field(default_factory=list)


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class ArticleService:
    """In-memory backend for articles and their nested comments.

    Serves the same JSON shapes as the production backend, including its
    quirk that the list view carries neither nested comments nor voters.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._articles: Dict[str, _Article] = {}
        self._root_ids: List[str] = []
        self._usernames: Dict[str, str] = {}
        self._tokens: Dict[str, str] = {}

    def register_user(self, user_id: str, username: str, token: str) -> None:
        self._usernames[user_id] = username
        self._tokens[token] = user_id

    def authenticate(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return self._tokens.get(token)

    async def list_full(self) -> List[Dict[str, Any]]:
        async with self._lock:
            return [self._to_wire(self._articles[i], depth=0, with_voters=False) for i in self._root_ids]

    async def get_full(self, article_id: str, depth: int) -> Dict[str, Any]:
        async with self._lock:
            return self._to_wire(self._get(article_id), depth=max(0, depth), with_voters=True)

    async def create(self, user_id: str, title: str, content: str, parent_id: Optional[str]) -> Dict[str, Any]:
        async with self._lock:
            if parent_id is not None:
                self._get(parent_id)
            now = datetime.now(timezone.utc)
            article = _Article(
                id=uuid.uuid4().hex,
                title=title,
                content=content,
                author_id=user_id,
                parent_id=parent_id,
                created_at=now,
                updated_at=now,
            )
            self._articles[article.id] = article
            if parent_id is None:
                self._root_ids.insert(0, article.id)
            else:
                self._articles[parent_id].child_ids.append(article.id)
            logger.info("article created", extra={"node_id": article.id, "user_id": user_id, "action": "create"})
            # Mirrors production: the echo carries authorId but no author relation.
            return self._to_wire(article, depth=0, with_voters=True, with_author=False)

    async def update(
        self, user_id: str, article_id: str, title: Optional[str], content: Optional[str]
    ) -> Dict[str, Any]:
        async with self._lock:
            article = self._owned(user_id, article_id)
            if title:
                article.title = title
            if content:
                article.content = content
            article.updated_at = datetime.now(timezone.utc)
            return self._to_wire(article, depth=0, with_voters=True)

    async def delete(self, user_id: str, article_id: str) -> None:
        async with self._lock:
            article = self._owned(user_id, article_id)
            if article.parent_id is None:
                self._root_ids.remove(article_id)
            else:
                parent = self._articles.get(article.parent_id)
                if parent is not None:
                    parent.child_ids.remove(article_id)
            self._drop_subtree(article_id)
            logger.info("article deleted", extra={"node_id": article_id, "user_id": user_id, "action": "delete"})

    async def vote(self, user_id: str, article_id: str, direction: Direction) -> Dict[str, Any]:
        async with self._lock:
            article = self._get(article_id)
            same, other = (
                (article.upvoters, article.downvoters) if direction == "up" else (article.downvoters, article.upvoters)
            )
            if user_id in same:
                same.remove(user_id)
            else:
                same.append(user_id)
                if user_id in other:
                    other.remove(user_id)
            return {
                "upvoted": user_id in article.upvoters,
                "downvoted": user_id in article.downvoters,
                "upvoteCount": len(article.upvoters),
                "downvoteCount": len(article.downvoters),
            }

    async def vote_counts(self, article_id: str) -> Dict[str, int]:
        async with self._lock:
            article = self._get(article_id)
            return {"upvoteCount": len(article.upvoters), "downvoteCount": len(article.downvoters)}

    async def add_images(self, user_id: str, article_id: str, filenames: Sequence[str]) -> None:
        async with self._lock:
            article = self._owned(user_id, article_id)
            now = datetime.now(timezone.utc)
            for name in filenames:
                stored = f"{uuid.uuid4().hex}-{name}"
                article.images.append(_Image(path=f"uploads/images/{stored}", filename=stored, created_at=now))

    def _get(self, article_id: str) -> _Article:
        article = self._articles.get(article_id)
        if article is None:
            raise NotFoundError("Article not found")
        return article

    def _owned(self, user_id: str, article_id: str) -> _Article:
        article = self._get(article_id)
        if article.author_id != user_id:
            raise ForbiddenError("You can only modify your own articles")
        return article

    def _drop_subtree(self, article_id: str) -> None:
        article = self._articles.pop(article_id, None)
        if article is None:
            return
        for child_id in article.child_ids:
            self._drop_subtree(child_id)

    def _to_wire(
        self, article: _Article, depth: int, with_voters: bool, with_author: bool = True
    ) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": article.id,
            "title": article.title,
            "content": article.content,
            "authorId": article.author_id,
            "parentId": article.parent_id,
            "commentsCount": len(article.child_ids),
            "images": [
                {"path": img.path, "filename": img.filename, "createdAt": _iso(img.created_at)}
                for img in article.images
            ],
            "createdAt": _iso(article.created_at),
            "updatedAt": _iso(article.updated_at),
        }
        if with_author:
            out["author"] = {"id": article.author_id, "username": self._usernames.get(article.author_id)}
        if with_voters:
            out["upvoters"] = [{"id": uid} for uid in article.upvoters]
            out["downvoters"] = [{"id": uid} for uid in article.downvoters]
        if depth > 0:
            out["comments"] = [
                self._to_wire(self._articles[cid], depth - 1, with_voters=with_voters)
                for cid in article.child_ids
            ]
        return out
