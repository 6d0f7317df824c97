"""pytest configuration for thread-sync.

Puts the src directory on the import path (the tests also run from a plain
checkout) and provides the store fixtures shared by the test modules.
"""

import os
import sys

import pytest

_SRC = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from fakes import FakeGateway  # noqa: E402

from thread_sync.config import ClientSettings  # noqa: E402
from thread_sync.overlay.vote_overlay import VoteOverlay  # noqa: E402
from thread_sync.persistence.memory import InMemoryStorage  # noqa: E402
from thread_sync.services.content_store import ContentStore  # noqa: E402
from thread_sync.session.auth_session import Actor, AuthSession  # noqa: E402


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(api_base_url="http://api.test", vote_storage_dir=None)


@pytest.fixture
def session() -> AuthSession:
    s = AuthSession()
    s.sign_in(Actor(user_id="alice", username="Alice"), token="tok-alice")
    return s


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def overlay(storage: InMemoryStorage) -> VoteOverlay:
    return VoteOverlay(storage)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store(gateway: FakeGateway, session: AuthSession, overlay: VoteOverlay, settings: ClientSettings) -> ContentStore:
    return ContentStore(gateway=gateway, session=session, overlay=overlay, settings=settings)
