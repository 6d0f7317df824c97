from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx
from pydantic import ValidationError

from thread_sync.core.models.node import Direction
from thread_sync.core.protocol.payloads import (
    BackendArticle,
    CreateRequest,
    UpdateRequest,
    VoteCounts,
    VoteResponse,
    dump_wire,
)
from thread_sync.gateway.base import GatewayError, RemoteGateway, UploadFile, VoteResult, VoteTally
from thread_sync.session.auth_session import AuthSession


logger = logging.getLogger(__name__)


def describe_http_error(status_code: int, backend_message: Optional[str]) -> str:
    if status_code == 401:
        return "Session expired. Please sign in again."
    if status_code == 403:
        return "You do not have permission to access this resource."
    if status_code == 404:
        return backend_message or "Resource not found."
    if status_code == 500:
        return "Internal server error. Please try again later."
    return backend_message or f"HTTP Error: {status_code}"


def _backend_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class HttpGateway(RemoteGateway):
    """RemoteGateway over the backend's JSON HTTP API.

    Every failure leaves this class as a `GatewayError`; nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        session: AuthSession,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._session = session
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_roots(self) -> list[BackendArticle]:
        body = await self._request("GET", "/article/full")
        return [self._parse(BackendArticle, item) for item in body or []]

    async def get_detail(self, node_id: str, depth: int) -> BackendArticle:
        body = await self._request("GET", f"/article/full/{node_id}", params={"depth": depth})
        return self._parse(BackendArticle, body)

    async def create(self, parent_id: Optional[str], title: str, content: str) -> BackendArticle:
        req = CreateRequest(title=title, content=content, parent_id=parent_id)
        body = await self._request("POST", "/article/create/", json=dump_wire(req))
        return self._parse(BackendArticle, body)

    async def update(self, node_id: str, title: Optional[str], content: Optional[str]) -> BackendArticle:
        req = UpdateRequest(title=title, content=content)
        body = await self._request("PATCH", f"/article/{node_id}", json=dump_wire(req))
        return self._parse(BackendArticle, body)

    async def upload_images(self, node_id: str, files: Sequence[UploadFile]) -> None:
        if not files:
            return
        multipart = [("files", (f.filename, f.content, f.content_type)) for f in files]
        await self._request("POST", "/images/upload-multiple", data={"articleId": node_id}, files=multipart)

    async def vote(self, node_id: str, direction: Direction) -> VoteResult:
        path = "upvote" if direction == "up" else "downvote"
        body = await self._request("POST", f"/article/{node_id}/{path}", json={})
        resp = self._parse(VoteResponse, body)
        voted = resp.upvoted if direction == "up" else resp.downvoted
        return VoteResult(
            voted=voted is True,
            upvote_count=resp.upvote_count,
            downvote_count=resp.downvote_count,
        )

    async def delete(self, node_id: str) -> None:
        await self._request("DELETE", f"/article/{node_id}")

    async def get_vote_counts(self, node_id: str) -> VoteTally:
        body = await self._request("GET", f"/article/{node_id}/votes")
        counts = self._parse(VoteCounts, body)
        return VoteTally(upvote_count=counts.upvote_count, downvote_count=counts.downvote_count)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {}
        token = self._session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("gateway transport error", extra={"action": f"{method} {path}"})
            raise GatewayError("Cannot connect to server. Please check your connection.") from exc

        if response.is_error:
            message = describe_http_error(response.status_code, _backend_message(response))
            logger.warning(
                "gateway request failed: %s", message, extra={"action": f"{method} {path}"}
            )
            if response.status_code == 401:
                self._session.sign_out()
            raise GatewayError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError("Unexpected response from server.", status_code=response.status_code) from exc

    @staticmethod
    def _parse(model: Any, body: Any) -> Any:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise GatewayError("Unexpected response from server.") from exc
