"""
Reconciliation policy: which successful mutations refetch the authoritative list.
"""
from __future__ import annotations

import pytest

from teaching.reconciliation import MutationKind, Reconcile, ReconciliationPolicy


@pytest.mark.parametrize(
    "kind,expected",
    [
        (MutationKind.CREATE, Reconcile.KEEP),
        (MutationKind.UPDATE, Reconcile.KEEP),
        (MutationKind.DELETE, Reconcile.REFETCH),
        (MutationKind.REORDER, Reconcile.REFETCH),
    ],
)
def test_default_policy_refetches_position_changing_mutations(kind, expected):
    assert ReconciliationPolicy().on_success(kind) is expected


def test_trusting_optimistic_order_never_refetches():
    policy = ReconciliationPolicy(trust_optimistic_order=True)
    assert not any(policy.needs_refetch(kind) for kind in MutationKind)


def test_plain_string_kinds_are_accepted():
    assert ReconciliationPolicy().needs_refetch("reorder")
    assert not ReconciliationPolicy().needs_refetch("update")
