"""Tests for turning backend payloads into nodes."""

from datetime import datetime, timezone

from fakes import make_payload

from thread_sync.core.protocol.normalize import Normalizer, absolutize_image_url, resolve_image_path
from thread_sync.core.protocol.payloads import BackendArticle, BackendImage


def test_nested_payload_becomes_node_tree() -> None:
    """Nested comments become child nodes with owners, voters and counts."""

    payload = make_payload(
        "a1",
        upvoters=["u1", "u2"],
        downvoters=["u3"],
        comments=[make_payload("c1", parent_id="a1", author="bob", comments=[])],
    )
    node = Normalizer("http://api.test").to_node(BackendArticle.model_validate(payload))

    assert node.upvote_count == 2
    assert node.downvote_count == 1
    assert [(v.voter_id, v.vote) for v in node.voters] == [("u1", "upvote"), ("u2", "upvote"), ("u3", "downvote")]
    assert node.children[0].owner_username == "Bob"
    assert node.children[0].children == ()
    assert node.comments_count == 1


def test_username_falls_back_to_cache_then_id() -> None:
    """Missing usernames come from the user cache, then from the owner id."""

    normalizer = Normalizer("http://api.test")
    normalizer.to_node(BackendArticle.model_validate(make_payload("a1", author="carol")))

    bare = BackendArticle.model_validate({"id": "a2", "authorId": "carol"})
    assert normalizer.to_node(bare).owner_username == "Carol"

    unknown = BackendArticle.model_validate({"id": "a3", "authorId": "dave"})
    assert normalizer.to_node(unknown).owner_username == "dave"

    nobody = BackendArticle.model_validate({"id": "a4"})
    node = normalizer.to_node(nobody)
    assert node.owner_id == "unknown"
    assert node.children == ()
    assert node.images == ()


def test_image_paths_gain_date_segments() -> None:
    """Undated image paths are placed under their creation date."""

    created = datetime(2024, 2, 3, tzinfo=timezone.utc)
    dated = BackendImage(path="uploads/images/2023/01/09/x.png")
    undated = BackendImage(path="uploads/images/y.png", created_at=created)

    assert resolve_image_path(dated) == "uploads/images/2023/01/09/x.png"
    assert resolve_image_path(undated) == "uploads/images/2024/02/03/y.png"
    assert resolve_image_path(BackendImage(filename="z.png")) == "z.png"
    assert resolve_image_path("already/a/url.png") == "already/a/url.png"


def test_image_urls_are_absolutised() -> None:
    """Relative paths join the API base; absolute and data URLs pass through."""

    base = "http://api.test/"
    assert absolutize_image_url("https://cdn/x.png", base) == "https://cdn/x.png"
    assert absolutize_image_url("/uploads/x.png", base) == "http://api.test/uploads/x.png"
    assert absolutize_image_url("uploads/x.png", base) == "http://api.test/uploads/x.png"

    jpeg = "/9j/" + "A" * 200
    png = "iVBOR" + "B" * 200
    assert absolutize_image_url(jpeg, base) == f"data:image/jpeg;base64,{jpeg}"
    assert absolutize_image_url(png, base) == f"data:image/png;base64,{png}"
