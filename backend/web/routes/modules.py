"""
Course modules API (list/create/update/delete/reorder).

Why:
    Authoritative source of truth for a course's ordered modules. The client
    cache (`teaching.remote.HttpModulesRemote`) talks to these endpoints; the
    in-memory repository keeps local/offline runs and tests self-contained.

Notes:
    - Positions are dense 1..n per course at all times: create appends at
      n+1, delete resequences, reorder requires the complete id set and
      assigns 1..n from the submitted list order.
    - Contract errors are explicit 400s (`{"error": "bad_request", "detail": ...}`),
      never FastAPI 422s, so clients can map `detail` to a message.
    - Tests can call `set_repo` to swap the implementation.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from pydantic.functional_validators import field_validator

modules_router = APIRouter(tags=["Modules"])
logger = logging.getLogger("coursedeck.web.modules")

_UNSET = object()


@dataclass
class ModuleRecord:
    id: str
    course_id: str
    title: str
    description: str
    position: int
    created_at: str
    updated_at: str
    counts: Dict[str, int] = field(default_factory=lambda: {"lessons": 0, "attachments": 0, "quizzes": 0})


def _clean_title(title: Any) -> str:
    if not isinstance(title, str):
        raise ValueError("invalid_title")
    t = title.strip()
    if not t or len(t) > 200:
        raise ValueError("invalid_title")
    return t


def _clean_description(description: Any) -> str:
    if description is None:
        return ""
    if not isinstance(description, str) or len(description.strip()) > 2000:
        raise ValueError("invalid_description")
    return description.strip()


class _ModulesRepo:
    def __init__(self) -> None:
        self.modules: Dict[str, ModuleRecord] = {}
        self.modules_by_course: Dict[str, List[str]] = {}

    def list_modules(self, course_id: str) -> List[ModuleRecord]:
        ids = self.modules_by_course.get(course_id, [])
        items = [self.modules[mid] for mid in ids if mid in self.modules]
        items.sort(key=lambda m: (m.position, m.id))
        return items

    def create_module(self, course_id: str, *, title: Any, description: Any = None) -> ModuleRecord:
        t = _clean_title(title)
        d = _clean_description(description)
        now = datetime.now(timezone.utc).isoformat()
        bucket = self.modules_by_course.setdefault(course_id, [])
        module = ModuleRecord(
            id=str(uuid4()),
            course_id=course_id,
            title=t,
            description=d,
            position=len(bucket) + 1,
            created_at=now,
            updated_at=now,
        )
        self.modules[module.id] = module
        bucket.append(module.id)
        return module

    def update_module(self, course_id: str, module_id: str, *, title=_UNSET, description=_UNSET) -> ModuleRecord | None:
        module = self.modules.get(module_id)
        if not module or module.course_id != course_id:
            return None
        if title is not _UNSET:
            module.title = _clean_title(title)
        if description is not _UNSET:
            module.description = _clean_description(description)
        module.updated_at = datetime.now(timezone.utc).isoformat()
        return module

    def delete_module(self, course_id: str, module_id: str) -> bool:
        """Delete a module and resequence the remaining positions."""
        module = self.modules.get(module_id)
        if not module or module.course_id != course_id:
            return False
        self.modules.pop(module_id, None)
        self.modules_by_course[course_id] = [mid for mid in self.modules_by_course.get(course_id, []) if mid != module_id]
        self._resequence(course_id)
        return True

    def reorder_modules(self, course_id: str, ordered: List[Dict[str, Any]]) -> List[ModuleRecord]:
        if not ordered:
            raise ValueError("empty_reorder")
        ids = [str(o.get("id") or "") for o in ordered]
        if len(set(ids)) != len(ids):
            raise ValueError("duplicate_module_ids")
        existing = set(self.modules_by_course.get(course_id, []))
        if set(ids) != existing:
            if any(mid not in self.modules for mid in set(ids) - existing):
                raise LookupError("module_not_found")
            raise ValueError("module_mismatch")
        # Submitted positions are advisory; the list order decides (1..n).
        now = datetime.now(timezone.utc).isoformat()
        for position, module_id in enumerate(ids, start=1):
            module = self.modules[module_id]
            if module.position != position:
                module.position = position
                module.updated_at = now
        self.modules_by_course[course_id] = ids
        return self.list_modules(course_id)

    def _resequence(self, course_id: str) -> None:
        bucket = [mid for mid in self.modules_by_course.get(course_id, []) if mid in self.modules]
        bucket.sort(key=lambda mid: self.modules[mid].position)
        now = datetime.now(timezone.utc).isoformat()
        for idx, module_id in enumerate(bucket, start=1):
            module = self.modules[module_id]
            if module.position != idx:
                module.position = idx
                module.updated_at = now
        self.modules_by_course[course_id] = bucket


_REPO: _ModulesRepo | None = None


def _get_repo() -> _ModulesRepo:
    global _REPO
    if _REPO is None:
        _REPO = _ModulesRepo()
    return _REPO


def set_repo(repo: _ModulesRepo | None) -> None:
    """Swap the repository (tests); None resets to a fresh in-memory repo on next use."""
    global _REPO
    _REPO = repo


class ModuleCreatePayload(BaseModel):
    # Loose typing; title/description constraints are enforced as 400s below
    title: object | None = Field(default=None)
    description: object | None = Field(default=None)


class ModuleUpdatePayload(BaseModel):
    title: object | None = Field(default=None)
    description: object | None = Field(default=None)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class ModuleReorderPayload(BaseModel):
    ordered_modules: object | None = None


def _serialize_module(m: ModuleRecord) -> dict:
    return asdict(m)


def _bad_request(detail: str) -> JSONResponse:
    return JSONResponse({"error": "bad_request", "detail": detail}, status_code=400)


def _not_found() -> JSONResponse:
    return JSONResponse({"error": "not_found", "detail": "module_not_found"}, status_code=404)


@modules_router.get("/api/teaching/courses/{course_id}/modules")
async def list_modules(course_id: str):
    """
    List a course's modules ordered by position.

    Behavior:
        - 200 with the modules (possibly empty).
    """
    modules = _get_repo().list_modules(course_id)
    return JSONResponse(content=[_serialize_module(m) for m in modules], status_code=200)


@modules_router.post("/api/teaching/courses/{course_id}/modules")
async def create_module(course_id: str, payload: ModuleCreatePayload):
    """
    Create a module at the next position.

    Behavior:
        - 201 with the created module.
        - 400 `invalid_title` / `invalid_description`.
    """
    try:
        module = _get_repo().create_module(course_id, title=payload.title, description=payload.description)
    except ValueError as exc:
        return _bad_request(str(exc))
    logger.info("module created cid=%s mid=%s pos=%s", course_id[-6:], module.id[-6:], module.position)
    return JSONResponse(content=_serialize_module(module), status_code=201)


@modules_router.post("/api/teaching/courses/{course_id}/modules/reorder")
async def reorder_modules(course_id: str, payload: ModuleReorderPayload):
    """
    Reorder a course's modules atomically.

    Parameters:
        payload: `ordered_modules`, the complete list of `{id, position}` in
        the new order; positions are renumbered 1..n from that order.

    Behavior:
        - 200 with the modules in their new order.
        - 400 on contract errors (empty, duplicates, mismatch).
        - 404 when an id belongs to no course module at all.
    """
    ordered = payload.ordered_modules
    if not isinstance(ordered, list) or any(not isinstance(o, dict) for o in ordered):
        return _bad_request("invalid_ordered_modules")
    try:
        modules = _get_repo().reorder_modules(course_id, ordered)
    except ValueError as exc:
        return _bad_request(str(exc))
    except LookupError:
        return _not_found()
    return JSONResponse(content=[_serialize_module(m) for m in modules], status_code=200)


@modules_router.patch("/api/teaching/courses/{course_id}/modules/{module_id}")
async def update_module(course_id: str, module_id: str, payload: ModuleUpdatePayload):
    """
    Update title and/or description; the position is not writable here.

    Behavior:
        - 200 with the updated module.
        - 400 when no field is given or a field is invalid.
        - 404 when the module is not part of the course.
    """
    fields_set = payload.model_fields_set & {"title", "description"}
    if not fields_set:
        return _bad_request("empty_payload")
    kwargs: Dict[str, Optional[object]] = {name: getattr(payload, name) for name in fields_set}
    try:
        module = _get_repo().update_module(course_id, module_id, **kwargs)
    except ValueError as exc:
        return _bad_request(str(exc))
    if module is None:
        return _not_found()
    return JSONResponse(content=_serialize_module(module), status_code=200)


@modules_router.delete("/api/teaching/courses/{course_id}/modules/{module_id}")
async def delete_module(course_id: str, module_id: str):
    """
    Delete a module and close the position gap.

    Behavior:
        - 204 on success.
        - 404 when the module is not part of the course.
    """
    if not _get_repo().delete_module(course_id, module_id):
        return _not_found()
    logger.info("module deleted cid=%s mid=%s", course_id[-6:], module_id[-6:])
    return Response(status_code=204)


__all__ = ["modules_router", "set_repo", "ModuleRecord"]
