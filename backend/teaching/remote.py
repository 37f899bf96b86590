"""
Remote collaborator contract for ordered collections, plus the HTTP client for
course modules.

Design:
- The cache layer only knows `CollectionRemoteProtocol`; it never builds URLs.
- `HttpModulesRemote` talks to the module API (`web.routes.modules`) via httpx.
  Callers own the client lifetime (`aclose()` or `async with`).
- Every failure becomes a `RemoteError` with a human-readable message; the
  raw error codes are kept for logs only.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, TypeVar

import httpx

from .config import CacheSettings
from .errors import RemoteError
from .models import Module, OrderedEntity

logger = logging.getLogger("coursedeck.teaching.remote")

E = TypeVar("E", bound=OrderedEntity)


class CollectionRemoteProtocol(Protocol[E]):
    """Remote source of truth for one kind of ordered collection."""

    async def fetch(self, parent_id: str) -> List[E]: ...

    async def create(self, parent_id: str, fields: Mapping[str, Any]) -> E: ...

    async def update(self, parent_id: str, entity_id: str, patch: Mapping[str, Any]) -> E: ...

    async def delete(self, parent_id: str, entity_id: str) -> None: ...

    async def reorder(self, parent_id: str, ordered: Sequence[Mapping[str, Any]]) -> None: ...


_MESSAGES = {
    "invalid_title": "Title is required and must be at most 200 characters.",
    "invalid_description": "Description must be at most 2000 characters.",
    "not_found": "Module not found.",
    "module_not_found": "Module not found.",
    "module_mismatch": "The module list changed in the meantime. Please reload and try again.",
    "duplicate_module_ids": "Each module may appear only once in the new order.",
    "empty_reorder": "There is nothing to reorder.",
    "forbidden": "You are not allowed to change the modules of this course.",
}
_FALLBACK_MESSAGE = "The server could not complete the request. Please try again."


def _error_from_response(resp: httpx.Response) -> RemoteError:
    code: Optional[str] = None
    message: Optional[str] = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") if isinstance(body.get("message"), str) else None
        detail = body.get("detail")
        code = detail if isinstance(detail, str) else body.get("error")
    if not message:
        message = _MESSAGES.get(code or "", _FALLBACK_MESSAGE)
    return RemoteError(message, status_code=resp.status_code, code=code)


class HttpModulesRemote:
    """Course modules over HTTP (`/api/teaching/courses/{course_id}/modules`)."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "HttpModulesRemote":
        client = httpx.AsyncClient(base_url=settings.api_base_url, timeout=settings.api_timeout_seconds)
        return cls(client)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpModulesRemote":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @staticmethod
    def _base(course_id: str) -> str:
        return f"/api/teaching/courses/{course_id}/modules"

    async def _send(self, method: str, url: str, *, expect: Sequence[int], **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("module api %s failed err=%s", method, exc.__class__.__name__)
            raise RemoteError("Could not reach the server. Please check your connection.") from exc
        if resp.status_code not in expect:
            err = _error_from_response(resp)
            logger.info("module api %s status=%s code=%s", method, resp.status_code, err.code)
            raise err
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteError(_FALLBACK_MESSAGE, status_code=resp.status_code, code="invalid_json") from exc

    @staticmethod
    def _module(resp: httpx.Response, row: Any) -> Module:
        try:
            return Module.from_api(row)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.info("module api row rejected status=%s err=%s", resp.status_code, exc.__class__.__name__)
            raise RemoteError(_FALLBACK_MESSAGE, status_code=resp.status_code, code="invalid_shape") from exc

    async def fetch(self, parent_id: str) -> List[Module]:
        resp = await self._send("GET", self._base(parent_id), expect=(200,))
        body = self._json(resp)
        rows = body.get("modules") if isinstance(body, dict) else body
        if not isinstance(rows, list):
            raise RemoteError(_FALLBACK_MESSAGE, status_code=resp.status_code, code="invalid_shape")
        return [self._module(resp, row) for row in rows]

    async def create(self, parent_id: str, fields: Mapping[str, Any]) -> Module:
        payload: Dict[str, Any] = {"title": fields.get("title"), "description": fields.get("description") or ""}
        resp = await self._send("POST", self._base(parent_id), expect=(200, 201), json=payload)
        return self._module(resp, self._json(resp))

    async def update(self, parent_id: str, entity_id: str, patch: Mapping[str, Any]) -> Module:
        resp = await self._send(
            "PATCH", f"{self._base(parent_id)}/{entity_id}", expect=(200,), json=dict(patch)
        )
        return self._module(resp, self._json(resp))

    async def delete(self, parent_id: str, entity_id: str) -> None:
        await self._send("DELETE", f"{self._base(parent_id)}/{entity_id}", expect=(200, 204))

    async def reorder(self, parent_id: str, ordered: Sequence[Mapping[str, Any]]) -> None:
        payload = {"ordered_modules": [{"id": o["id"], "position": int(o["position"])} for o in ordered]}
        await self._send("POST", f"{self._base(parent_id)}/reorder", expect=(200,), json=payload)


__all__ = ["CollectionRemoteProtocol", "HttpModulesRemote"]
