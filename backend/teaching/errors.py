"""Typed errors surfaced by the module cache layer.

Why:
    Callers (page adapters) display failures but never interpret transport
    details. Every failure therefore carries a human-readable `message`; codes
    and status values are kept for logging only.
"""
from __future__ import annotations

from typing import Optional

from pydantic import ValidationError


class RemoteError(Exception):
    """A remote collaborator call failed (network, server, or contract error)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class MutationError(Exception):
    """User-displayable failure of one optimistic mutation (already rolled back)."""

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        entity_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.entity_id = entity_id
        self.cause = cause

    def __repr__(self) -> str:
        return f"MutationError(kind={self.kind!r}, message={self.message!r})"


__all__ = ["MutationError", "RemoteError", "ValidationError"]
