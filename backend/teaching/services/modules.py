"""Module management for one course page.

Why:
    A course page lists modules, offers create/edit/delete dialogs and lets the
    instructor drag modules into a new order. This service keeps all state the
    page needs (list, pending flags, last error per action, drag state) so the
    rendering layer stays a thin adapter.

Notes:
    - Inputs are validated with the payload models before anything touches the
      store; invalid input comes back as an outcome with status `invalid`.
    - Drag is disabled while any mutation for the course is pending, including
      a create whose module has no server id yet.
    - Nothing here raises for remote failures; errors are kept on the service
      (`fetch_error`, `errors[kind]`) and returned in the outcome.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from teaching.cache import CollectionCache
from teaching.config import CacheSettings, load_settings
from teaching.drag import DragSessionManager, Point
from teaching.errors import MutationError, RemoteError
from teaching.models import Module, ModuleCreatePayload, ModuleUpdatePayload
from teaching.reconciliation import MutationKind, ReconciliationPolicy
from teaching.remote import CollectionRemoteProtocol
from teaching.services.mutations import (
    APPLIED,
    FAILED,
    INVALID,
    SKIPPED,
    MutationCoordinator,
    MutationOutcome,
    is_temporary_id,
)
from teaching.stats import CollectionStats, collection_stats

logger = logging.getLogger("coursedeck.teaching.modules")


def _draft_module(temp_id: str, fields: Mapping[str, Any]) -> Module:
    return Module(
        id=temp_id,
        position=0,
        title=str(fields.get("title") or ""),
        description=str(fields.get("description") or ""),
    )


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input."
    msg = str(errors[0].get("msg") or "Invalid input.")
    return msg.removeprefix("Value error, ")


class ModuleManagement:
    def __init__(
        self,
        course_id: str,
        remote: CollectionRemoteProtocol[Module],
        *,
        cache: Optional[CollectionCache[Module]] = None,
        settings: Optional[CacheSettings] = None,
        policy: Optional[ReconciliationPolicy] = None,
    ) -> None:
        if not course_id:
            raise ValueError("missing_course_id")
        settings = settings or load_settings()
        self.course_id = course_id
        self.cache: CollectionCache[Module] = cache if cache is not None else CollectionCache()
        self.coordinator: MutationCoordinator[Module] = MutationCoordinator(
            self.cache,
            remote,
            build_entity=_draft_module,
            policy=policy or ReconciliationPolicy(trust_optimistic_order=settings.trust_optimistic_order),
        )
        self.collection = self.cache.open(course_id)
        self.drag = DragSessionManager(
            self.collection,
            is_busy=lambda: self.coordinator.is_pending(self.course_id),
            activation_distance=settings.drag_activation_px,
        )
        self.is_loading = False
        self.fetch_error: Optional[RemoteError] = None
        self.errors: Dict[MutationKind, Optional[MutationError]] = {kind: None for kind in MutationKind}

    # --- Read model ------------------------------------------------------------------
    @property
    def modules(self) -> Tuple[Module, ...]:
        return self.collection.items

    @property
    def stats(self) -> CollectionStats:
        return collection_stats(self.collection.items)

    def _pending(self, kind: MutationKind) -> bool:
        return self.coordinator.is_pending(self.course_id, kind=kind)

    @property
    def is_creating(self) -> bool:
        return self._pending(MutationKind.CREATE)

    @property
    def is_updating(self) -> bool:
        return self._pending(MutationKind.UPDATE)

    @property
    def is_deleting(self) -> bool:
        return self._pending(MutationKind.DELETE)

    @property
    def is_reordering(self) -> bool:
        return self._pending(MutationKind.REORDER)

    @property
    def drag_enabled(self) -> bool:
        return self.drag.enabled

    # --- Lifecycle -------------------------------------------------------------------
    async def mount(self) -> bool:
        """Load the module list; keeps `fetch_error` instead of raising."""
        if self.cache.get(self.course_id) is not self.collection:
            raise RuntimeError("course_page_unmounted")
        self.is_loading = True
        try:
            await self.coordinator.refresh(self.course_id)
        except RemoteError as exc:
            self.fetch_error = exc
            logger.warning("module list fetch failed cid=%s status=%s", self.course_id[-6:], exc.status_code)
            return False
        finally:
            self.is_loading = False
        self.fetch_error = None
        return True

    refresh = mount

    def unmount(self) -> None:
        """Drop the course's cached list; a later page gets a fresh collection."""
        self.drag.cancel()
        self.cache.evict(self.course_id)

    # --- Mutations -------------------------------------------------------------------
    def _record(self, outcome: MutationOutcome[Module]) -> MutationOutcome[Module]:
        if outcome.status in (FAILED, INVALID):
            self.errors[outcome.kind] = outcome.error
        elif outcome.status in (APPLIED, SKIPPED):
            self.errors[outcome.kind] = None
        return outcome

    def _invalid(self, kind: MutationKind, exc: ValidationError, entity_id: Optional[str] = None) -> MutationOutcome[Module]:
        error = MutationError(_validation_message(exc), kind=kind.value, entity_id=entity_id, cause=exc)
        return self._record(MutationOutcome(kind, INVALID, entity_id=entity_id, error=error))

    async def create_module(self, title: str, description: Optional[str] = None) -> MutationOutcome[Module]:
        try:
            payload = ModuleCreatePayload(title=title, description=description)
        except ValidationError as exc:
            return self._invalid(MutationKind.CREATE, exc)
        fields = {"title": payload.title, "description": payload.description or ""}
        return self._record(await self.coordinator.create(self.course_id, fields))

    async def update_module(self, module_id: str, **changes: Any) -> MutationOutcome[Module]:
        try:
            patch = ModuleUpdatePayload(**changes).as_patch()
        except ValidationError as exc:
            return self._invalid(MutationKind.UPDATE, exc, module_id)
        if not patch:
            return MutationOutcome(MutationKind.UPDATE, SKIPPED, entity_id=module_id)
        return self._record(await self.coordinator.update(self.course_id, module_id, patch))

    async def delete_module(self, module_id: str) -> MutationOutcome[Module]:
        return self._record(await self.coordinator.delete(self.course_id, module_id))

    async def reorder_modules(self, from_index: int, to_index: int) -> MutationOutcome[Module]:
        return self._record(await self.coordinator.reorder(self.course_id, from_index, to_index))

    # --- Drag wiring -----------------------------------------------------------------
    def drag_start(self, module_id: str, point: Point = (0.0, 0.0)) -> bool:
        if is_temporary_id(module_id):
            return False
        return self.drag.pointer_down(module_id, point)

    def drag_move(self, point: Optional[Point] = None, **kwargs: Any) -> Optional[int]:
        return self.drag.pointer_move(point, **kwargs)

    async def drag_end(self) -> Optional[MutationOutcome[Module]]:
        """Drop the dragged module and send the reorder.

        A server list that arrived during the gesture was held back. It is
        applied here unless the reorder already reloaded the list: directly when
        the reorder did not go through, via a fresh fetch when it did.
        """
        intent = self.drag.pointer_up()
        if intent is None:
            return None
        outcome = await self.reorder_modules(intent.from_index, intent.to_index)
        if intent.deferred_load is None or outcome.reconciled:
            return outcome
        if self.cache.get(self.course_id) is not self.collection:
            return outcome
        if outcome.ok:
            await self.refresh()
        else:
            logger.debug("applying list held during drag cid=%s", self.course_id[-6:])
            self.collection.load(intent.deferred_load)
        return outcome

    def drag_cancel(self) -> None:
        self.drag.cancel()


__all__ = ["ModuleManagement"]
