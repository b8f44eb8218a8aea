"""Client-side optimistic updates: tentative apply, then reconcile or revert.

The store keeps the last server truth per entity and a list of tentative
patches keyed by request id. The displayed view is the server truth with the
pending patches applied in order. Confirming a request replaces the truth
with the server's post-transition state; rejecting it drops the patch so the
view falls back to the last truth.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4


@dataclass
class PendingMutation:
    request_id: str
    entity_key: str
    patch: dict[str, Any]


@dataclass
class OptimisticStore:
    _truth: dict[str, dict[str, Any]] = field(default_factory=dict)
    _pending: dict[str, PendingMutation] = field(default_factory=dict)

    def load(self, entity_key: str, state: dict[str, Any]) -> None:
        """Record server truth for an entity, ignoring states older than the current one."""
        current = self._truth.get(entity_key)
        if current is not None and state.get("version", 0) < current.get("version", 0):
            return
        self._truth[entity_key] = dict(state)

    def truth(self, entity_key: str) -> dict[str, Any] | None:
        state = self._truth.get(entity_key)
        return dict(state) if state is not None else None

    def view(self, entity_key: str) -> dict[str, Any] | None:
        """What a UI should display: truth plus pending tentative patches."""
        state = self._truth.get(entity_key)
        pending = [p for p in self._pending.values() if p.entity_key == entity_key]
        if state is None and not pending:
            return None
        merged = dict(state or {})
        for mutation in pending:
            merged.update(mutation.patch)
        return merged

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    def apply(
        self, entity_key: str, patch: dict[str, Any], request_id: str | None = None
    ) -> str:
        """Tentatively apply ``patch`` and return the request id that tracks it."""
        request_id = request_id or str(uuid4())
        self._pending[request_id] = PendingMutation(request_id, entity_key, dict(patch))
        return request_id

    def confirm(self, request_id: str, server_state: dict[str, Any] | None = None) -> None:
        """Drop the tentative patch and adopt the server's post-transition state."""
        mutation = self._pending.pop(request_id, None)
        if server_state is None:
            return
        if mutation is not None:
            self.load(mutation.entity_key, server_state)
        elif "id" in server_state:
            self.load(str(server_state["id"]), server_state)

    def reject(self, request_id: str) -> dict[str, Any] | None:
        """Discard the tentative patch and return the restored view."""
        mutation = self._pending.pop(request_id, None)
        if mutation is None:
            return None
        return self.view(mutation.entity_key)
