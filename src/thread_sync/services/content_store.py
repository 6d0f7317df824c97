from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Coroutine, Iterable, List, Optional, Sequence, Set

from thread_sync.config import ClientSettings
from thread_sync.core.models.node import DIRECTION_TO_VOTE, Direction, Node, vote_of, with_voter
from thread_sync.core.protocol.normalize import Normalizer, utc_now
from thread_sync.core.tree.ops import Tree, find_root_id, locate, remove_anywhere, update
from thread_sync.gateway.base import GatewayError, RemoteGateway, UploadFile
from thread_sync.overlay.vote_overlay import VoteOverlay
from thread_sync.services.mutation import MutationResult, MutationState, OptimisticMutation
from thread_sync.session.auth_session import AuthSession


logger = logging.getLogger(__name__)

Subscriber = Callable[[Tree], None]


def validate_upload(upload: UploadFile, max_bytes: int) -> Optional[str]:
    if not upload.content_type.startswith("image/"):
        return f"{upload.filename} is not an image"
    if len(upload.content) > max_bytes:
        return f"{upload.filename} is larger than {max_bytes} bytes"
    return None


def derive_reply_title(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def merge_keep(fresh: Node, existing: Optional[Node]) -> Node:
    """Merge a shallow list payload over a node we may already know in depth.

    Children and images the shallow payload lacks are kept, as is the local
    vote tally until the dedicated count refresh lands.
    """
    if existing is None:
        return fresh
    keep_children = not fresh.children and bool(existing.children)
    return replace(
        fresh,
        children=existing.children if keep_children else fresh.children,
        comments_count=existing.comments_count if keep_children else fresh.comments_count,
        images=fresh.images or existing.images,
        voters=existing.voters,
        upvote_count=existing.upvote_count,
        downvote_count=existing.downvote_count,
    )


class ContentStore:
    """Canonical in-memory node forest, kept in sync with the remote service.

    Every change publishes a new top-level tuple and bumps `generation`;
    untouched branches keep their identity. Reads always see a complete
    snapshot.

    Responses are applied in the order they resolve, with no per-node request
    sequencing: a late response can still write its payload after a newer
    action or a rollback (last network response wins). Outgoing requests are
    never cancelled.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        session: AuthSession,
        overlay: VoteOverlay,
        settings: Optional[ClientSettings] = None,
        normalizer: Optional[Normalizer] = None,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._overlay = overlay
        self._settings = settings or ClientSettings()
        self._normalizer = normalizer or Normalizer(self._settings.api_base_url)

        self._roots: Tree = ()
        self._generation = 0
        self._subscribers: List[Subscriber] = []
        self._new_ids: Set[str] = set()
        self._background: Set[asyncio.Task] = set()

        self.is_loading = False
        self.error: Optional[str] = None

    # -- publication -------------------------------------------------------

    @property
    def roots(self) -> Tree:
        return self._roots

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def new_ids(self) -> frozenset:
        """Ids created during this session; the thread view pins them above its cached order."""
        return frozenset(self._new_ids)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, tree: Tree) -> None:
        if tree is self._roots:
            return
        self._roots = tree
        self._generation += 1
        for callback in list(self._subscribers):
            callback(tree)

    # -- reads -------------------------------------------------------------

    def get_by_id(self, node_id: str) -> Optional[Node]:
        return locate(self._roots, node_id)

    def find_root_id(self, node_id: str) -> Optional[str]:
        return find_root_id(self._roots, node_id)

    def is_upvoted(self, node: Node) -> bool:
        user_id = self._session.user_id
        return bool(user_id) and vote_of(node, user_id) == "upvote"

    def is_downvoted(self, node: Node) -> bool:
        user_id = self._session.user_id
        return bool(user_id) and vote_of(node, user_id) == "downvote"

    def can_edit(self, node: Node) -> bool:
        user_id = self._session.user_id
        return bool(user_id) and node.owner_id == user_id

    def can_delete(self, node: Node) -> bool:
        return self.can_edit(node)

    # -- fetches -----------------------------------------------------------

    async def load(self) -> bool:
        """Fetch the shallow list of top-level nodes and merge it in."""
        self.is_loading = True
        try:
            payloads = await self._gateway.list_roots()
        except GatewayError as exc:
            logger.error("failed to load list: %s", exc.message, extra={"action": "load"})
            self.error = exc.message
            self.is_loading = False
            return False

        user_id = self._session.user_id
        nodes = []
        for payload in payloads:
            fresh = self._normalizer.to_node(payload)
            merged = merge_keep(fresh, locate(self._roots, fresh.id))
            nodes.append(self._overlay.apply_to(merged, user_id))

        self._publish(tuple(nodes))
        self.is_loading = False
        self.error = None
        logger.info("list loaded", extra={"action": "load", "user_id": user_id or "-"})

        # The list endpoint carries no vote relations; counts arrive separately.
        self.refresh_vote_counts(n.id for n in nodes)
        return True

    async def load_detail(self, node_id: str, depth: Optional[int] = None) -> Optional[Node]:
        """Fetch one node with replies resolved to `depth` and merge it in.

        Children and images are taken from the server wholesale; the node's own
        tally is kept until the count refresh completes.
        """
        depth = depth if depth is not None else self._settings.detail_depth
        try:
            payload = await self._gateway.get_detail(node_id, depth)
        except GatewayError as exc:
            logger.error(
                "failed to load detail: %s", exc.message, extra={"node_id": node_id, "action": "load_detail"}
            )
            return None

        node = self._overlay.apply_to(self._normalizer.to_node(payload), self._session.user_id)

        if locate(self._roots, node_id) is None:
            self._publish((node,) + self._roots)
        else:
            self._publish(
                update(
                    self._roots,
                    node_id,
                    lambda old: replace(
                        node,
                        voters=old.voters,
                        upvote_count=old.upvote_count,
                        downvote_count=old.downvote_count,
                    ),
                )
            )

        self.refresh_vote_counts([node_id])
        return self.get_by_id(node_id)

    def refresh_vote_counts(self, node_ids: Iterable[str]) -> None:
        seen: Set[str] = set()
        for node_id in node_ids:
            if not node_id or node_id in seen:
                continue
            seen.add(node_id)
            self._spawn_background(self._refresh_counts(node_id), action="refresh_counts", node_id=node_id)

    async def _refresh_counts(self, node_id: str) -> None:
        tally = await self._gateway.get_vote_counts(node_id)
        self._publish(
            update(
                self._roots,
                node_id,
                lambda n: replace(n, upvote_count=tally.upvote_count, downvote_count=tally.downvote_count),
            )
        )

    # -- background work ---------------------------------------------------

    def _spawn_background(self, coro: Coroutine, *, action: str, node_id: str) -> None:
        """Run `coro` fire-and-forget.

        Gateway failures inside it are dropped with a debug record: for
        non-interactive refreshes, stale data beats an error state.
        """

        async def runner() -> None:
            try:
                await coro
            except GatewayError as exc:
                logger.debug(
                    "background %s failed: %s", action, exc.message, extra={"node_id": node_id, "action": action}
                )

        task = asyncio.get_running_loop().create_task(runner())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for all background work, including work spawned while waiting."""
        while self._background:
            await asyncio.gather(*list(self._background))

    # -- mutations ---------------------------------------------------------

    async def vote(self, node_id: str, direction: Direction) -> MutationResult:
        actor = self._session.actor
        if actor is None or not self._session.is_authenticated:
            return MutationResult.refused("Sign in to vote.", node_id)
        if locate(self._roots, node_id) is None:
            return MutationResult.refused("Node not found.", node_id)

        target = DIRECTION_TO_VOTE[direction]
        opposite = "downvote" if target == "upvote" else "upvote"
        user_id = actor.user_id

        def toggle(node: Node) -> Node:
            prev = vote_of(node, user_id)
            counts = {"upvote": node.upvote_count, "downvote": node.downvote_count}
            if prev == target:
                counts[target] = max(0, counts[target] - 1)
                new_vote = None
            else:
                counts[target] += 1
                if prev == opposite:
                    counts[opposite] = max(0, counts[opposite] - 1)
                new_vote = target
            toggled = with_voter(node, user_id, new_vote)
            return replace(toggled, upvote_count=counts["upvote"], downvote_count=counts["downvote"])

        mutation = OptimisticMutation(self, f"vote:{direction}", node_id, user_id)
        mutation.apply(lambda tree: update(tree, node_id, toggle))

        try:
            result = await self._gateway.vote(node_id, direction)
        except GatewayError as exc:
            return mutation.rollback(exc.message)

        server_vote = target if result.voted else None
        self._overlay.set(user_id, node_id, server_vote)

        def reconcile(node: Node) -> Node:
            reconciled = with_voter(node, user_id, server_vote)
            return replace(reconciled, upvote_count=result.upvote_count, downvote_count=result.downvote_count)

        return mutation.confirm(lambda tree: update(tree, node_id, reconcile))

    async def upvote(self, node_id: str) -> MutationResult:
        return await self.vote(node_id, "up")

    async def downvote(self, node_id: str) -> MutationResult:
        return await self.vote(node_id, "down")

    async def delete(self, node_id: str) -> MutationResult:
        actor = self._session.actor
        if actor is None or not self._session.is_authenticated:
            logger.warning("delete refused: not signed in", extra={"node_id": node_id, "action": "delete"})
            return MutationResult.refused("Sign in to delete.", node_id)

        node = locate(self._roots, node_id)
        if node is None:
            return MutationResult.refused("Node not found.", node_id)
        if node.owner_id != actor.user_id:
            logger.warning(
                "delete refused: not the owner",
                extra={"node_id": node_id, "user_id": actor.user_id, "action": "delete"},
            )
            return MutationResult.refused("You can only delete your own content.", node_id)

        def detach(tree: Tree) -> Tree:
            if node.parent_id is not None:
                tree = update(
                    tree,
                    node.parent_id,
                    lambda p: replace(p, comments_count=max(0, p.comments_count - 1)),
                )
            return remove_anywhere(tree, node_id)

        mutation = OptimisticMutation(self, "delete", node_id, actor.user_id)
        mutation.apply(detach)

        try:
            await self._gateway.delete(node_id)
        except GatewayError as exc:
            return mutation.rollback(exc.message)

        self._new_ids.discard(node_id)
        return mutation.confirm()

    async def create(
        self,
        parent_id: Optional[str],
        content: str,
        images: Sequence[UploadFile] = (),
        title: Optional[str] = None,
    ) -> MutationResult:
        """Create an article (`parent_id=None`) or a reply.

        The node is inserted only once the server has echoed it back, and only
        if its parent is held locally. Images are uploaded afterwards; an
        upload failure is reported in `message` but leaves the created node in
        place. The root re-fetch that follows a successful upload runs in the
        background (see `drain`).
        """
        text = content.strip()
        if not text:
            return MutationResult.refused("Content must not be empty.")

        actor = self._session.actor
        if actor is None or not self._session.is_authenticated:
            return MutationResult.refused("Sign in to post.")

        if parent_id is None:
            heading = (title or "").strip()
            if not heading:
                return MutationResult.refused("Title must not be empty.")
        else:
            heading = derive_reply_title(text, self._settings.reply_title_length)

        for upload in images:
            problem = validate_upload(upload, self._settings.max_image_bytes)
            if problem:
                return MutationResult.refused(problem)

        try:
            payload = await self._gateway.create(parent_id, heading, text)
        except GatewayError as exc:
            logger.warning(
                "create failed: %s", exc.message, extra={"node_id": parent_id or "-", "action": "create"}
            )
            return MutationResult.failed(exc.message)

        node = self._normalizer.stamp_owner(self._normalizer.to_node(payload), actor.user_id, actor.username)
        if node.parent_id != parent_id:
            node = replace(node, parent_id=parent_id)

        if parent_id is None:
            tree = (node,) + self._roots
        else:
            now = utc_now()
            tree = update(
                self._roots,
                parent_id,
                lambda p: replace(
                    p,
                    children=p.children + (node,),
                    comments_count=p.comments_count + 1,
                    updated_at=now,
                ),
            )
        if tree is self._roots:
            logger.info(
                "created reply under a parent not held locally",
                extra={"node_id": node.id, "user_id": actor.user_id, "action": "create"},
            )
        else:
            self._publish(tree)
            self._new_ids.add(node.id)
            logger.info("node created", extra={"node_id": node.id, "user_id": actor.user_id, "action": "create"})

        upload_message = None
        if images:
            upload_message = await self._upload_images(node.id, images)

        return MutationResult(state=MutationState.CONFIRMED, message=upload_message, node_id=node.id)

    async def _upload_images(self, node_id: str, images: Sequence[UploadFile]) -> Optional[str]:
        try:
            await self._gateway.upload_images(node_id, images)
        except GatewayError as exc:
            logger.warning("image upload failed: %s", exc.message, extra={"node_id": node_id, "action": "upload"})
            return f"Failed to upload images: {exc.message}"

        # Resolved image URLs only come back with a full-depth fetch of the owning root.
        root_id = self.find_root_id(node_id) or node_id
        self._spawn_background(
            self.load_detail(root_id, self._settings.detail_depth), action="upload_refresh", node_id=root_id
        )
        return None

    async def edit(
        self, node_id: str, title: Optional[str] = None, content: Optional[str] = None
    ) -> MutationResult:
        actor = self._session.actor
        node = locate(self._roots, node_id)
        if actor is None or node is None or node.owner_id != actor.user_id:
            return MutationResult.refused("You can only edit your own content.", node_id)

        new_title = title.strip() if title else None
        new_content = content.strip() if content else None
        if not new_title and not new_content:
            return MutationResult.refused("Nothing to update.", node_id)

        try:
            payload = await self._gateway.update(node_id, new_title, new_content)
        except GatewayError as exc:
            logger.warning("edit failed: %s", exc.message, extra={"node_id": node_id, "action": "edit"})
            return MutationResult.failed(exc.message, node_id)

        edited = self._normalizer.to_node(payload)

        def apply_edit(old: Node) -> Node:
            return replace(
                old,
                title=edited.title,
                content=edited.content,
                updated_at=edited.updated_at,
                images=edited.images or old.images,
            )

        self._publish(update(self._roots, node_id, apply_edit))
        return MutationResult(state=MutationState.CONFIRMED, node_id=node_id)
