"""Reconciliation policy: keep the optimistic state or refetch after success.

Create and update cannot change sibling positions, so their optimistic result
stays. Delete and reorder rewrite positions that another writer may have
touched meanwhile, so they refetch the authoritative order by default.
Failures always restore the snapshot, independent of this policy.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REORDER = "reorder"


class Reconcile(str, Enum):
    KEEP = "keep"
    REFETCH = "refetch"


_DEFAULT_ON_SUCCESS = {
    MutationKind.CREATE: Reconcile.KEEP,
    MutationKind.UPDATE: Reconcile.KEEP,
    MutationKind.DELETE: Reconcile.REFETCH,
    MutationKind.REORDER: Reconcile.REFETCH,
}


@dataclass(frozen=True)
class ReconciliationPolicy:
    # Single-user editing can opt into trusting the optimistic order.
    trust_optimistic_order: bool = False

    def on_success(self, kind: MutationKind) -> Reconcile:
        if self.trust_optimistic_order:
            return Reconcile.KEEP
        return _DEFAULT_ON_SUCCESS[MutationKind(kind)]

    def needs_refetch(self, kind: MutationKind) -> bool:
        return self.on_success(kind) is Reconcile.REFETCH


__all__ = ["MutationKind", "Reconcile", "ReconciliationPolicy"]
