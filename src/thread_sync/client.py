"""Wiring for a client-side data layer from settings."""

from typing import Optional

from thread_sync.config import ClientSettings
from thread_sync.gateway.base import RemoteGateway
from thread_sync.gateway.http import HttpGateway
from thread_sync.overlay.vote_overlay import VoteOverlay
from thread_sync.persistence.base import KeyValueStorage
from thread_sync.persistence.file import JsonFileStorage
from thread_sync.persistence.memory import InMemoryStorage
from thread_sync.services.content_store import ContentStore
from thread_sync.session.auth_session import AuthSession


def build_storage(settings: ClientSettings) -> KeyValueStorage:
    if settings.vote_storage_dir is not None:
        return JsonFileStorage(settings.vote_storage_dir)
    return InMemoryStorage()


def build_store(
    settings: ClientSettings,
    session: AuthSession,
    gateway: Optional[RemoteGateway] = None,
    storage: Optional[KeyValueStorage] = None,
) -> ContentStore:
    if gateway is None:
        gateway = HttpGateway(settings.api_base_url, session, timeout=settings.request_timeout_seconds)
    overlay = VoteOverlay(storage if storage is not None else build_storage(settings))
    return ContentStore(gateway=gateway, session=session, overlay=overlay, settings=settings)
