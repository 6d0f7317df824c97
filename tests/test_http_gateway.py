"""End-to-end tests: ContentStore over HttpGateway against the reference backend.

The backend runs in-process behind `httpx.ASGITransport`; no socket is opened.
"""

import asyncio

import httpx
import pytest

from thread_sync.client import build_store
from thread_sync.gateway.base import GatewayError, UploadFile
from thread_sync.gateway.http import HttpGateway, describe_http_error
from thread_sync.main import create_app
from thread_sync.services.article_service import ArticleService, NotFoundError
from thread_sync.services.mutation import MutationState
from thread_sync.session.auth_session import Actor, AuthSession
from thread_sync.view.thread_view import ThreadSortPaginator


def _backend() -> ArticleService:
    service = ArticleService()
    service.register_user("alice", "Alice", "tok-alice")
    service.register_user("bob", "Bob", "tok-bob")
    return service


def _client(service: ArticleService) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=create_app(service)), base_url="http://api.test")


def _signed_in(user_id: str, username: str) -> AuthSession:
    session = AuthSession()
    session.sign_in(Actor(user_id=user_id, username=username), token=f"tok-{user_id}")
    return session


def _store(service, session, settings):
    gateway = HttpGateway("http://api.test", session, client=_client(service))
    return build_store(settings, session, gateway=gateway)


def test_thread_round_trip(settings) -> None:
    """Two clients create, vote, read and delete a thread over HTTP."""

    service = _backend()
    alice = _signed_in("alice", "Alice")
    bob = _signed_in("bob", "Bob")

    async def run() -> None:
        store = _store(service, alice, settings)
        created = await store.create(None, "Body of the article", title="Hello")
        assert created.ok
        article_id = created.node_id

        reply = await store.create(article_id, "first reply")
        nested = await store.create(reply.node_id, "nested reply")
        assert nested.ok

        voted = await store.vote(article_id, "up")
        assert voted.ok
        assert store.get_by_id(article_id).upvote_count == 1

        # a second client sees the shallow list, then loads the thread
        other = _store(service, bob, settings)
        assert await other.load()
        await other.drain()
        listed = other.get_by_id(article_id)
        assert listed.children == ()
        assert listed.comments_count == 1
        assert listed.upvote_count == 1
        assert listed.owner_username == "Alice"

        detail = await other.load_detail(article_id, depth=5)
        assert [c.id for c in detail.children] == [reply.node_id]
        assert other.get_by_id(nested.node_id).content == "nested reply"

        view = ThreadSortPaginator(other, settings)
        view.navigate(article_id)
        assert [n.id for n in view.view().items] == [reply.node_id]
        assert [n.id for n in view.view(reply.node_id).items] == [nested.node_id]

        # bob cannot delete alice's reply; alice can, and it takes the nested one along
        assert not (await other.delete(reply.node_id)).accepted
        assert (await store.delete(reply.node_id)).ok
        with pytest.raises(NotFoundError):
            await service.get_full(nested.node_id, 1)

        await other.load_detail(article_id)
        await other.drain()
        assert other.get_by_id(article_id).children == ()

    asyncio.run(run())


def test_image_upload_resolves_dated_urls(settings) -> None:
    """Uploaded images come back as absolute URLs after the background refresh."""

    service = _backend()
    alice = _signed_in("alice", "Alice")

    async def run() -> None:
        store = _store(service, alice, settings)
        png = UploadFile(filename="cat.png", content=b"\x89PNG....", content_type="image/png")
        created = await store.create(None, "with a picture", images=[png], title="Pics")
        assert created.ok and created.message is None
        await store.drain()

        node = store.get_by_id(created.node_id)
        assert len(node.images) == 1
        assert node.images[0].startswith("http://api.test/uploads/images/")
        assert node.images[0].endswith("-cat.png")

    asyncio.run(run())


def test_server_rejection_rolls_back_vote(settings) -> None:
    """A 404 from the server rolls the optimistic vote back with the server's message."""

    service = _backend()
    alice = _signed_in("alice", "Alice")

    async def run() -> None:
        store = _store(service, alice, settings)
        created = await store.create(None, "text", title="T")
        before = store.roots

        # the node vanishes server-side; the vote request gets a 404
        await service.delete("alice", created.node_id)
        result = await store.vote(created.node_id, "down")

        assert result.state is MutationState.ROLLED_BACK
        assert result.message == "Article not found"
        assert store.roots == before

    asyncio.run(run())


def test_unauthorized_signs_out(settings) -> None:
    """A 401 response clears the session."""

    service = _backend()
    session = AuthSession()
    session.sign_in(Actor(user_id="mallory", username="M"), token="forged")

    async def run() -> None:
        gateway = HttpGateway("http://api.test", session, client=_client(service))
        with pytest.raises(GatewayError) as info:
            await gateway.create(None, "t", "c")
        assert info.value.status_code == 401
        assert info.value.message == "Session expired. Please sign in again."

    asyncio.run(run())
    assert not session.is_authenticated


def test_transport_failure_is_translated() -> None:
    """Connection errors surface as a readable message with no status code."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async def run() -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://api.test")
        gateway = HttpGateway("http://api.test", AuthSession(), client=client)
        with pytest.raises(GatewayError) as info:
            await gateway.list_roots()
        assert info.value.message == "Cannot connect to server. Please check your connection."
        assert info.value.status_code is None

    asyncio.run(run())


def test_error_messages() -> None:
    """HTTP statuses map to user-facing messages."""

    assert describe_http_error(403, "nope") == "You do not have permission to access this resource."
    assert describe_http_error(404, None) == "Resource not found."
    assert describe_http_error(404, "Article not found") == "Article not found"
    assert describe_http_error(500, "trace") == "Internal server error. Please try again later."
    assert describe_http_error(418, None) == "HTTP Error: 418"
    assert describe_http_error(422, "bad body") == "bad body"
