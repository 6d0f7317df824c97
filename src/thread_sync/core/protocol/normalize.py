"""Conversion of backend payloads into the immutable `Node` shape."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from thread_sync.core.models.node import Node, Voter
from thread_sync.core.protocol.payloads import BackendArticle, BackendImage


_DATED_PATH = re.compile(r"uploads/images/\d{4}/\d{2}/\d{2}/")
_BASE64_BODY = re.compile(r"^[A-Za-z0-9+/=]+$")
_BASE64_MIN_LENGTH = 100


class UserDirectory:
    """Owner id -> username cache, kept apart from the nodes themselves."""

    def __init__(self) -> None:
        self._names: Dict[str, str] = {}

    def remember(self, user_id: str, username: str) -> None:
        self._names[user_id] = username

    def lookup(self, user_id: str) -> Optional[str]:
        return self._names.get(user_id)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_image_path(image: Union[BackendImage, str, None]) -> str:
    if not image:
        return ""
    if isinstance(image, str):
        return image

    raw_path = (image.path or "").strip()
    filename = (image.filename or raw_path.replace("\\", "/").split("/")[-1]).strip()

    if _DATED_PATH.search(raw_path.replace("\\", "/")):
        return raw_path

    # Stored paths often miss the date segments the files actually live under.
    if filename and image.created_at is not None:
        return f"uploads/images/{image.created_at:%Y/%m/%d}/{filename}"

    return raw_path or filename


def absolutize_image_url(url: str, api_base_url: str) -> str:
    if not url:
        return url
    trimmed = url.strip()
    if trimmed.startswith(("http://", "https://", "data:")):
        return trimmed

    compact = re.sub(r"\s+", "", trimmed)
    if len(trimmed) > _BASE64_MIN_LENGTH and _BASE64_BODY.match(compact):
        if trimmed.startswith("/9j/"):
            return f"data:image/jpeg;base64,{trimmed}"
        return f"data:image/png;base64,{trimmed}"

    base = api_base_url.rstrip("/")
    if trimmed.startswith("/"):
        return f"{base}{trimmed}"
    return f"{base}/{trimmed}"


class Normalizer:
    def __init__(self, api_base_url: str, users: Optional[UserDirectory] = None) -> None:
        self._api_base_url = api_base_url
        self.users = users if users is not None else UserDirectory()

    def to_node(self, payload: BackendArticle) -> Node:
        owner_id = payload.author_id or (payload.author.id if payload.author else None) or "unknown"
        username = payload.author.username if payload.author else None
        if username:
            self.users.remember(owner_id, username)

        upvoters = payload.upvoters or []
        downvoters = payload.downvoters or []
        voters = tuple(Voter(voter_id=u.id, vote="upvote") for u in upvoters) + tuple(
            Voter(voter_id=u.id, vote="downvote") for u in downvoters
        )

        images = []
        for image in payload.images or []:
            path = resolve_image_path(image)
            if path:
                images.append(absolutize_image_url(path, self._api_base_url))

        children = tuple(self.to_node(c) for c in payload.comments or [])
        comments_count = payload.comments_count if payload.comments_count is not None else len(children)

        return Node(
            id=payload.id,
            parent_id=payload.parent_id,
            title=payload.title,
            content=payload.content,
            owner_id=owner_id,
            owner_username=username or self.users.lookup(owner_id) or owner_id,
            created_at=payload.created_at or utc_now(),
            updated_at=payload.updated_at or utc_now(),
            images=tuple(images),
            upvote_count=len(upvoters),
            downvote_count=len(downvoters),
            voters=voters,
            children=children,
            comments_count=comments_count,
            slug=payload.slug,
        )

    def stamp_owner(self, node: Node, user_id: str, username: str) -> Node:
        """Attribute a freshly created node to the local actor."""
        self.users.remember(user_id, username)
        return replace(node, owner_id=user_id, owner_username=username)
