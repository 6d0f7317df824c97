from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Actor:
    user_id: str
    username: str


class AuthSession:
    """Holds the signed-in actor and bearer token.

    Obtaining and refreshing tokens belongs to the authentication service;
    this class only carries the result.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._actor: Optional[Actor] = None
        self._token: Optional[str] = None

    @property
    def actor(self) -> Optional[Actor]:
        with self._lock:
            return self._actor

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token

    @property
    def user_id(self) -> Optional[str]:
        actor = self.actor
        return actor.user_id if actor else None

    @property
    def is_authenticated(self) -> bool:
        with self._lock:
            return self._actor is not None and bool(self._token)

    def sign_in(self, actor: Actor, token: str) -> None:
        with self._lock:
            self._actor = actor
            self._token = token

    def sign_out(self) -> None:
        with self._lock:
            self._actor = None
            self._token = None
