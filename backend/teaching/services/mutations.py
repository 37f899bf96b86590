"""Optimistic mutation coordinator for ordered collections.

Why:
    The page must reflect create/update/delete/reorder immediately while the
    remote call is still pending, and fall back to the exact prior state when
    that call fails. All four operations share one routine:

        snapshot -> apply locally -> await remote -> commit (maybe refetch) | restore

Behavior:
    - The local change is applied before the first `await`, i.e. in the same
      event-loop step as the user action.
    - At most one mutation per entity id is in flight; a second request for the
      same id is rejected (status `rejected`) without touching the store or the
      remote. Reorders are limited to one per collection.
    - Mutations on ids that are no longer in the collection are skipped: the
      entity is already gone, nothing to do.
    - Remote failures roll back and come back as a `MutationError` inside the
      outcome; nothing is raised to the caller and nothing retries.
    - Rollback restores the snapshot only while the collection still holds this
      mutation's own optimistic state. When another mutation changed the list
      in between, only this mutation's change is undone and the authoritative
      list is refetched.
    - A cancelled remote call rolls back the same way, then the cancellation
      propagates.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Mapping, Optional, TypeVar
from uuid import uuid4

from teaching.cache import CollectionCache
from teaching.collection import OrderedCollection, Snapshot
from teaching.errors import MutationError, RemoteError
from teaching.models import OrderedEntity
from teaching.reconciliation import MutationKind, ReconciliationPolicy
from teaching.remote import CollectionRemoteProtocol

logger = logging.getLogger("coursedeck.teaching.mutations")

E = TypeVar("E", bound=OrderedEntity)

APPLIED = "applied"
REJECTED = "rejected"
FAILED = "failed"
SKIPPED = "skipped"
INVALID = "invalid"

# In-flight key for operations that touch the whole collection.
_COLLECTION_KEY = "*"
TEMP_ID_PREFIX = "optimistic-"

_FALLBACK_MESSAGE = "Something went wrong. Your change was undone, please try again."


@dataclass
class MutationOutcome(Generic[E]):
    kind: MutationKind
    status: str
    entity_id: Optional[str] = None
    entity: Optional[E] = None
    error: Optional[MutationError] = None
    reconciled: bool = False

    @property
    def ok(self) -> bool:
        return self.status == APPLIED


def is_temporary_id(entity_id: str) -> bool:
    return entity_id.startswith(TEMP_ID_PREFIX)


class MutationCoordinator(Generic[E]):
    """Run optimistic mutations against the collections of one cache."""

    def __init__(
        self,
        cache: CollectionCache[E],
        remote: CollectionRemoteProtocol[E],
        *,
        build_entity: Callable[[str, Mapping[str, Any]], E],
        policy: Optional[ReconciliationPolicy] = None,
    ) -> None:
        self.cache = cache
        self.remote = remote
        self.policy = policy or ReconciliationPolicy()
        self._build_entity = build_entity
        # in_flight[parent_id][key] = kind; key is an entity id or _COLLECTION_KEY
        self._in_flight: Dict[str, Dict[str, MutationKind]] = {}

    # --- Pending state -----------------------------------------------------------
    def is_pending(
        self,
        parent_id: str,
        kind: Optional[MutationKind] = None,
        entity_id: Optional[str] = None,
    ) -> bool:
        bucket = self._in_flight.get(parent_id) or {}
        for key, running in bucket.items():
            if kind is not None and running != kind:
                continue
            if entity_id is not None and key != entity_id:
                continue
            return True
        return False

    def _claim(self, parent_id: str, key: str, kind: MutationKind) -> bool:
        bucket = self._in_flight.setdefault(parent_id, {})
        if key in bucket:
            return False
        bucket[key] = kind
        return True

    def _release(self, parent_id: str, key: str) -> None:
        bucket = self._in_flight.get(parent_id)
        if bucket is None:
            return
        bucket.pop(key, None)
        if not bucket:
            self._in_flight.pop(parent_id, None)

    def _reject(
        self, kind: MutationKind, parent_id: str, key: str, entity_id: Optional[str]
    ) -> MutationOutcome[E]:
        logger.info("mutation rejected kind=%s pid=%s key=%s (in flight)", kind.value, parent_id[-6:], key[-6:])
        return MutationOutcome(kind, REJECTED, entity_id=entity_id)

    # --- Loading -----------------------------------------------------------------
    async def refresh(self, parent_id: str) -> bool:
        """Fetch the authoritative list and load it; raises `RemoteError` on failure.

        Returns False when the load was deferred by an active drag gesture.
        """
        fresh = await self.remote.fetch(parent_id)
        return self.cache.open(parent_id).load(fresh)

    async def _refetch(self, kind: MutationKind, parent_id: str, collection: OrderedCollection[E]) -> bool:
        try:
            fresh = await self.remote.fetch(parent_id)
        except Exception as exc:
            logger.warning(
                "reconcile refetch failed kind=%s pid=%s err=%s", kind.value, parent_id[-6:], exc.__class__.__name__
            )
            return False
        if self.cache.get(parent_id) is not collection:
            logger.debug("reconcile dropped; collection evicted pid=%s", parent_id[-6:])
            return False
        collection.load(fresh)
        return True

    async def _reconcile(self, kind: MutationKind, parent_id: str, collection: OrderedCollection[E]) -> bool:
        if not self.policy.needs_refetch(kind):
            return False
        # A failed refetch keeps the optimistic preview; the mutation itself succeeded.
        return await self._refetch(kind, parent_id, collection)

    @staticmethod
    def _roll_back(
        collection: OrderedCollection[E],
        snapshot: Snapshot,
        applied_revision: int,
        undo: Callable[[OrderedCollection[E], Optional[E]], Any],
        preview: Optional[E],
    ) -> bool:
        """Undo one optimistic change; True when the exact snapshot was restored."""
        if collection.revision == applied_revision:
            collection.restore(snapshot)
            return True
        undo(collection, preview)
        return False

    # --- Generic protocol ----------------------------------------------------------
    async def _run(
        self,
        kind: MutationKind,
        parent_id: str,
        key: str,
        *,
        entity_id: Optional[str],
        apply: Callable[[OrderedCollection[E]], Optional[E]],
        undo: Callable[[OrderedCollection[E], Optional[E]], Any],
        call: Callable[[], Awaitable[Any]],
        commit: Optional[Callable[[OrderedCollection[E], Any, Optional[E]], Optional[E]]] = None,
    ) -> MutationOutcome[E]:
        collection = self.cache.open(parent_id)
        if not self._claim(parent_id, key, kind):
            return self._reject(kind, parent_id, key, entity_id)
        try:
            snapshot = collection.snapshot()
            preview = apply(collection)
            applied_revision = collection.revision
            try:
                result = await call()
            except Exception as exc:
                exact = self._roll_back(collection, snapshot, applied_revision, undo, preview)
                logger.warning(
                    "mutation rolled back kind=%s pid=%s key=%s exact=%s err=%s",
                    kind.value,
                    parent_id[-6:],
                    key[-6:],
                    exact,
                    exc.__class__.__name__,
                )
                # Overlapping mutations touched the list; the server decides.
                reconciled = False if exact else await self._refetch(kind, parent_id, collection)
                message = exc.message if isinstance(exc, RemoteError) else _FALLBACK_MESSAGE
                error = MutationError(message, kind=kind.value, entity_id=entity_id, cause=exc)
                return MutationOutcome(kind, FAILED, entity_id=entity_id, error=error, reconciled=reconciled)
            except BaseException:
                self._roll_back(collection, snapshot, applied_revision, undo, preview)
                logger.warning("mutation cancelled kind=%s pid=%s key=%s", kind.value, parent_id[-6:], key[-6:])
                raise
            entity = commit(collection, result, preview) if commit else preview
            reconciled = await self._reconcile(kind, parent_id, collection)
            return MutationOutcome(kind, APPLIED, entity_id=entity_id, entity=entity, reconciled=reconciled)
        finally:
            self._release(parent_id, key)

    # --- Operations ----------------------------------------------------------------
    async def create(self, parent_id: str, fields: Mapping[str, Any]) -> MutationOutcome[E]:
        temp_id = f"{TEMP_ID_PREFIX}{uuid4().hex}"
        fields = dict(fields)

        def apply(collection: OrderedCollection[E]) -> E:
            return collection.insert(self._build_entity(temp_id, fields))

        def commit(collection: OrderedCollection[E], created: E, preview: Optional[E]) -> Optional[E]:
            settled = collection.settle(temp_id, created)
            if settled is None and collection.get(created.id) is None:
                # A refetch replaced the list before the echo arrived.
                settled = collection.insert(created)
            return settled or collection.get(created.id)

        outcome = await self._run(
            MutationKind.CREATE,
            parent_id,
            temp_id,
            entity_id=temp_id,
            apply=apply,
            undo=lambda c, _: c.remove(temp_id),
            call=lambda: self.remote.create(parent_id, fields),
            commit=commit,
        )
        if outcome.ok and outcome.entity is not None:
            outcome.entity_id = outcome.entity.id
        return outcome

    async def update(self, parent_id: str, entity_id: str, patch: Mapping[str, Any]) -> MutationOutcome[E]:
        collection = self.cache.open(parent_id)
        if self.is_pending(parent_id, entity_id=entity_id):
            return self._reject(MutationKind.UPDATE, parent_id, entity_id, entity_id)
        before = collection.get(entity_id)
        if before is None:
            logger.debug("update skipped; unknown id pid=%s id=%s", parent_id[-6:], entity_id[-6:])
            return MutationOutcome(MutationKind.UPDATE, SKIPPED, entity_id=entity_id)
        patch = {k: v for k, v in dict(patch).items() if k not in ("id", "position")}
        previous = {k: getattr(before, k) for k in patch if hasattr(before, k)}

        def commit(collection: OrderedCollection[E], echoed: Optional[E], preview: Optional[E]) -> Optional[E]:
            if echoed is not None and getattr(echoed, "id", None) == entity_id:
                return collection.settle(entity_id, echoed)
            return collection.get(entity_id)

        return await self._run(
            MutationKind.UPDATE,
            parent_id,
            entity_id,
            entity_id=entity_id,
            apply=lambda c: c.update(entity_id, patch),
            undo=lambda c, _: c.update(entity_id, previous),
            call=lambda: self.remote.update(parent_id, entity_id, patch),
            commit=commit,
        )

    async def delete(self, parent_id: str, entity_id: str) -> MutationOutcome[E]:
        collection = self.cache.open(parent_id)
        if self.is_pending(parent_id, entity_id=entity_id):
            return self._reject(MutationKind.DELETE, parent_id, entity_id, entity_id)
        index = collection.index_of(entity_id)
        if index < 0:
            logger.debug("delete skipped; unknown id pid=%s id=%s", parent_id[-6:], entity_id[-6:])
            return MutationOutcome(MutationKind.DELETE, SKIPPED, entity_id=entity_id)

        def undo(c: OrderedCollection[E], removed: Optional[E]) -> None:
            if removed is not None and c.get(entity_id) is None:
                c.insert_at(index, removed)

        return await self._run(
            MutationKind.DELETE,
            parent_id,
            entity_id,
            entity_id=entity_id,
            apply=lambda c: c.remove(entity_id),
            undo=undo,
            call=lambda: self.remote.delete(parent_id, entity_id),
        )

    async def reorder(self, parent_id: str, from_index: int, to_index: int) -> MutationOutcome[E]:
        collection = self.cache.open(parent_id)
        if self.is_pending(parent_id, kind=MutationKind.REORDER):
            return self._reject(MutationKind.REORDER, parent_id, _COLLECTION_KEY, None)
        size = len(collection)
        if from_index == to_index or not (0 <= from_index < size and 0 <= to_index < size):
            return MutationOutcome(MutationKind.REORDER, SKIPPED)
        moved_id = collection.items[from_index].id
        payload: Dict[str, Any] = {}

        def apply(c: OrderedCollection[E]) -> Optional[E]:
            c.reorder(from_index, to_index)
            payload["ordered"] = c.positions_payload()
            return c.get(moved_id)

        def undo(c: OrderedCollection[E], _: Optional[E]) -> None:
            current = c.index_of(moved_id)
            if current >= 0:
                c.reorder(current, min(from_index, len(c) - 1))

        return await self._run(
            MutationKind.REORDER,
            parent_id,
            _COLLECTION_KEY,
            entity_id=moved_id,
            apply=apply,
            undo=undo,
            call=lambda: self.remote.reorder(parent_id, payload["ordered"]),
        )


__all__ = [
    "APPLIED",
    "FAILED",
    "INVALID",
    "REJECTED",
    "SKIPPED",
    "MutationCoordinator",
    "MutationOutcome",
    "is_temporary_id",
]
