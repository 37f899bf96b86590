"""
In-memory stand-in for the module API used by cache/coordinator unit tests.

Provides ``FakeModulesRemote`` implementing ``CollectionRemoteProtocol`` with:
    - an authoritative server list (dense positions, like the real API),
    - a call log (``calls``) to assert how many remote requests were issued,
    - per-operation failure switches (``fail``) and gates (``hold``) that keep a
      call pending until the test releases it.
"""
from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Sequence

from teaching.errors import RemoteError
from teaching.models import Module


def make_modules(*titles: str) -> List[Module]:
    return [Module(id=f"id-{t}", position=i, title=t) for i, t in enumerate(titles, start=1)]


class FakeModulesRemote:
    def __init__(self, modules: Sequence[Module] = ()) -> None:
        self.server: List[Module] = list(modules)
        self.calls: List[tuple] = []
        self.fail: set[str] = set()
        self._gates: Dict[str, asyncio.Event] = {}
        self._seq = 0

    # --- Test controls -------------------------------------------------------------
    def hold(self, op: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[op] = gate
        return gate

    def release(self, op: str) -> None:
        gate = self._gates.pop(op, None)
        if gate is not None:
            gate.set()

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    async def _enter(self, op: str, *args: Any) -> None:
        self.calls.append((op, *args))
        gate = self._gates.get(op)
        if gate is not None:
            await gate.wait()
        if op in self.fail:
            raise RemoteError(f"{op} failed on the server", status_code=500, code=f"{op}_failed")

    def _resequence(self) -> None:
        self.server = [replace(m, position=i) for i, m in enumerate(self.server, start=1)]

    # --- Protocol ------------------------------------------------------------------
    async def fetch(self, parent_id: str) -> List[Module]:
        await self._enter("fetch", parent_id)
        return sorted(self.server, key=lambda m: m.position)

    async def create(self, parent_id: str, fields: Mapping[str, Any]) -> Module:
        await self._enter("create", parent_id, dict(fields))
        self._seq += 1
        module = Module(
            id=f"srv-{self._seq}",
            position=len(self.server) + 1,
            title=fields["title"],
            description=fields.get("description") or "",
            counts={"lessons": 0},
        )
        self.server.append(module)
        return module

    async def update(self, parent_id: str, entity_id: str, patch: Mapping[str, Any]) -> Module:
        await self._enter("update", parent_id, entity_id, dict(patch))
        for idx, module in enumerate(self.server):
            if module.id == entity_id:
                self.server[idx] = replace(module, **dict(patch))
                return self.server[idx]
        raise RemoteError("Module not found.", status_code=404, code="not_found")

    async def delete(self, parent_id: str, entity_id: str) -> None:
        await self._enter("delete", parent_id, entity_id)
        self.server = [m for m in self.server if m.id != entity_id]
        self._resequence()

    async def reorder(self, parent_id: str, ordered: Sequence[Mapping[str, Any]]) -> None:
        await self._enter("reorder", parent_id, [dict(o) for o in ordered])
        positions = {o["id"]: int(o["position"]) for o in ordered}
        self.server = sorted(
            (replace(m, position=positions.get(m.id, m.position)) for m in self.server),
            key=lambda m: m.position,
        )
