"""Entities and input payloads for course module collections."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

from pydantic import BaseModel
from pydantic.functional_validators import field_validator


class OrderedEntity(Protocol):
    """Anything the ordered collection can hold: stable `id`, managed `position`."""

    @property
    def id(self) -> str: ...

    @property
    def position(self) -> int: ...


@dataclass(frozen=True)
class Module:
    id: str
    position: int
    title: str
    description: str = ""
    counts: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Module":
        """Build a module from an API row, tolerating missing optional keys."""
        raw_counts = data.get("counts") or data.get("_count") or {}
        counts = {str(k): int(v or 0) for k, v in dict(raw_counts).items()}
        return cls(
            id=str(data["id"]),
            position=int(data.get("position") or 0),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            counts=counts,
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position,
            "title": self.title,
            "description": self.description,
            "counts": dict(self.counts),
        }


def _clean_title(value: str) -> str:
    t = (value or "").strip()
    if not t:
        raise ValueError("Title is required")
    if len(t) > 200:
        raise ValueError("Title must be at most 200 characters")
    return t


def _clean_description(value: Optional[str]) -> str:
    d = (value or "").strip()
    if len(d) > 2000:
        raise ValueError("Description must be at most 2000 characters")
    return d


class ModuleCreatePayload(BaseModel):
    title: str
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _v_title(cls, value: str) -> str:
        return _clean_title(value)

    @field_validator("description")
    @classmethod
    def _v_description(cls, value: Optional[str]) -> str:
        return _clean_description(value)


class ModuleUpdatePayload(BaseModel):
    """Partial update; only fields explicitly provided end up in the patch."""

    title: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _v_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("Title must not be null")
        return _clean_title(value)

    @field_validator("description")
    @classmethod
    def _v_description(cls, value: Optional[str]) -> str:
        return _clean_description(value)

    def as_patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


__all__ = ["OrderedEntity", "Module", "ModuleCreatePayload", "ModuleUpdatePayload"]
