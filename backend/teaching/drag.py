"""
Drag session state machine for reordering a collection by pointer gesture.

Why:
    A drag is a continuous gesture, a reorder is one discrete remote call. The
    manager turns pointer-down/move/up into at most one `ReorderIntent` per
    gesture without touching the store; the caller hands the intent to the
    mutation coordinator.

States:
    IDLE      no gesture
    ARMED     pressed on an item, pointer has not yet travelled the activation
              distance (a release here is a click)
    DRAGGING  `current_index` follows the item under the pointer (preview only)

Guards:
    - A gesture cannot start while `is_busy()` reports a pending mutation.
    - One session per collection; a second pointer-down is ignored.
    - While a session exists the collection defers loads; a cancel applies the
      deferred load, a drop that emits an intent hands it over on the intent
      (`deferred_load`) so the caller can apply it when the reorder does not
      end with a refetch.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from .collection import OrderedCollection
from .models import OrderedEntity
from .ordering import move

logger = logging.getLogger("coursedeck.teaching.drag")

Point = Tuple[float, float]


class DragPhase(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class ReorderIntent:
    entity_id: str
    from_index: int
    to_index: int
    # Server list that arrived mid-gesture; the caller applies it if the reorder does not reconcile.
    deferred_load: Optional[Tuple[OrderedEntity, ...]] = field(default=None, compare=False, repr=False)


@dataclass
class DragSession:
    active_entity_id: str
    source_index: int
    current_index: int
    origin: Point


def closest_center(coordinate: float, centers: Sequence[float]) -> int:
    """Index of the item whose center is nearest to `coordinate` (-1 when empty).

    Crossing the midpoint between two neighbours is exactly where the nearest
    center switches, so this doubles as the "crossed the midpoint" test.
    Ties go to the lower index.
    """
    best = -1
    best_distance = math.inf
    for idx, center in enumerate(centers):
        distance = abs(coordinate - center)
        if distance < best_distance:
            best, best_distance = idx, distance
    return best


class DragSessionManager:
    def __init__(
        self,
        collection: OrderedCollection[OrderedEntity],
        *,
        is_busy: Callable[[], bool] = lambda: False,
        activation_distance: float = 5.0,
        on_intent: Optional[Callable[[ReorderIntent], None]] = None,
    ) -> None:
        self.collection = collection
        self._is_busy = is_busy
        self.activation_distance = max(0.0, float(activation_distance))
        self._on_intent = on_intent
        self._phase = DragPhase.IDLE
        self._session: Optional[DragSession] = None

    # --- Introspection -------------------------------------------------------------
    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    @property
    def is_dragging(self) -> bool:
        return self._phase is DragPhase.DRAGGING

    @property
    def enabled(self) -> bool:
        return self._phase is DragPhase.IDLE and not self._is_busy()

    @property
    def active_entity(self) -> Optional[OrderedEntity]:
        """The dragged entity (for overlays), or None outside a drag."""
        if self._session is None or self._phase is not DragPhase.DRAGGING:
            return None
        return self.collection.get(self._session.active_entity_id)

    def preview(self) -> Tuple[OrderedEntity, ...]:
        """Items in the order the gesture would produce; the store is unchanged."""
        items = self.collection.items
        s = self._session
        if s is None or self._phase is not DragPhase.DRAGGING or s.source_index == s.current_index:
            return items
        if not (0 <= s.source_index < len(items) and 0 <= s.current_index < len(items)):
            return items
        return move(items, s.source_index, s.current_index)

    # --- Transitions -----------------------------------------------------------------
    def pointer_down(self, entity_id: str, point: Point = (0.0, 0.0)) -> bool:
        if self._phase is not DragPhase.IDLE:
            logger.debug("pointer_down ignored; session active")
            return False
        if self._is_busy():
            logger.debug("pointer_down ignored; mutation pending pid=%s", self.collection.parent_id[-6:])
            return False
        index = self.collection.index_of(entity_id)
        if index < 0:
            return False
        self._session = DragSession(
            active_entity_id=entity_id,
            source_index=index,
            current_index=index,
            origin=(float(point[0]), float(point[1])),
        )
        self.collection.suspend_loads()
        self._phase = DragPhase.ARMED
        if self.activation_distance == 0:
            self._activate()
        return True

    def pointer_move(
        self,
        point: Optional[Point] = None,
        *,
        over_id: Optional[str] = None,
        centers: Optional[Sequence[float]] = None,
    ) -> Optional[int]:
        """Track the pointer; returns the current preview index while dragging.

        `over_id` is the item resolved under the pointer by the caller; when it
        is absent and `centers` (item centers along the drag axis) are given,
        the nearest center to `point[1]` decides.
        """
        s = self._session
        if s is None:
            return None
        if self._phase is DragPhase.ARMED:
            if point is None:
                return None
            travelled = math.hypot(point[0] - s.origin[0], point[1] - s.origin[1])
            if travelled < self.activation_distance:
                return None
            self._activate()
        target = -1
        if over_id is not None:
            target = self.collection.index_of(over_id)
        elif centers is not None and point is not None:
            target = closest_center(point[1], centers)
        if 0 <= target < len(self.collection) and target != s.current_index:
            s.current_index = target
            logger.debug("drag preview index=%s", target)
        return s.current_index

    def pointer_up(self) -> Optional[ReorderIntent]:
        """Finish the gesture; emits an intent only when the item actually moved."""
        s = self._session
        if s is None:
            return None
        if self._phase is not DragPhase.DRAGGING:
            self._finish()
            return None
        source = self.collection.index_of(s.active_entity_id)
        target = min(s.current_index, len(self.collection) - 1)
        if source < 0 or source == target:
            self._finish()
            return None
        self._session = None
        self._phase = DragPhase.IDLE
        intent = ReorderIntent(
            entity_id=s.active_entity_id,
            from_index=source,
            to_index=target,
            deferred_load=self.collection.release_loads(),
        )
        logger.debug("drag drop %s -> %s", intent.from_index, intent.to_index)
        if self._on_intent is not None:
            self._on_intent(intent)
        return intent

    def cancel(self) -> None:
        """Abort the gesture (explicit cancel or external reload) without an intent."""
        if self._session is None:
            return
        logger.debug("drag cancelled pid=%s", self.collection.parent_id[-6:])
        self._finish()

    def _activate(self) -> None:
        self._phase = DragPhase.DRAGGING
        logger.debug("drag started pid=%s", self.collection.parent_id[-6:])

    def _finish(self) -> None:
        self._session = None
        self._phase = DragPhase.IDLE
        self.collection.resume_loads()


__all__ = ["DragPhase", "DragSession", "DragSessionManager", "ReorderIntent", "closest_center"]
