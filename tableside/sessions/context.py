"""
Context resolution against a session's conversation history.

References arrive already tagged by the external language layer.  Each kind
is resolved by scanning history from the most recent entry backwards.  When
nothing qualifies, or the latest turn names several candidates, the resolver
raises ``AmbiguousReference`` rather than guessing, and the caller asks the
diner to clarify.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

from ..chat.models import QueryIntent, ReferenceKind
from ..errors import AmbiguousReference
from .models import ConversationEntry, Session
from .registry import SessionRegistry


class ResolvedReference(BaseModel):
    kind: ReferenceKind
    entity_type: Literal["dish", "customer"]
    entity_ids: list[str]


def _latest_focus(session: Session, attr: str) -> list[str] | None:
    """Distinct ids of the most recent entry that focused anything of *attr*."""
    for entry in reversed(session.history):
        ids = getattr(entry, attr)
        if ids:
            return list(dict.fromkeys(ids))
    return None


def _previous_dish(session: Session, last: str) -> list[str] | None:
    """Dishes of the most recent earlier turn that discussed something other than *last*."""
    for entry in reversed(session.history):
        others = [d for d in dict.fromkeys(entry.focus_dish_ids) if d != last]
        if others:
            return others
    return None


def append_entry(
    session: Session,
    at: datetime,
    intent: QueryIntent,
    entities: dict[str, Any] | None = None,
    focus_dish_ids: list[str] | None = None,
    focus_customer_ids: list[str] | None = None,
) -> ConversationEntry:
    """Append a history entry to *session*; the caller holds the session lock."""
    entry = ConversationEntry(
        sequence=len(session.history) + 1,
        at=at,
        intent=intent,
        entities=entities or {},
        focus_dish_ids=list(focus_dish_ids or []),
        focus_customer_ids=list(focus_customer_ids or []),
    )
    session.history.append(entry)
    return entry.model_copy(deep=True)


class ContextResolver:
    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    def resolve(self, session_id: str, kind: ReferenceKind) -> ResolvedReference:
        session = self._registry.get(session_id)
        return self.resolve_in(session, kind)

    def resolve_in(self, session: Session, kind: ReferenceKind) -> ResolvedReference:
        """Resolve *kind* against a session the caller already holds.

        A singular reference whose latest candidate turn focused several
        entities is ambiguous.
        """
        if kind in (ReferenceKind.last_dish, ReferenceKind.previous_dish):
            dishes = _latest_focus(session, "focus_dish_ids")
            if dishes is not None and len(dishes) == 1 and kind is ReferenceKind.previous_dish:
                dishes = _previous_dish(session, dishes[0])
            if dishes is not None and len(dishes) == 1:
                return ResolvedReference(kind=kind, entity_type="dish", entity_ids=dishes)

        elif kind is ReferenceKind.last_customer:
            customers = _latest_focus(session, "focus_customer_ids")
            if customers is not None and len(customers) == 1:
                return ResolvedReference(kind=kind, entity_type="customer", entity_ids=customers)

        elif kind is ReferenceKind.group:
            if session.customers:
                ordered = sorted(session.customers, key=lambda c: c.seat)
                return ResolvedReference(
                    kind=kind,
                    entity_type="customer",
                    entity_ids=[c.customer_id for c in ordered],
                )

        raise AmbiguousReference(
            f"nothing in the conversation singles out {kind.value!r}",
            operation="resolve_reference",
            session_id=session.session_id,
            reference=kind.value,
        )

    def record(
        self,
        session_id: str,
        intent: QueryIntent,
        entities: dict[str, Any] | None = None,
        focus_dish_ids: list[str] | None = None,
        focus_customer_ids: list[str] | None = None,
    ) -> ConversationEntry:
        """Append a history entry; sequence numbers are assigned under the session lock."""

        def _append(session: Session) -> ConversationEntry:
            return append_entry(
                session,
                self._registry.now(),
                intent,
                entities=entities,
                focus_dish_ids=focus_dish_ids,
                focus_customer_ids=focus_customer_ids,
            )

        return self._registry.apply(session_id, "record_query", _append)
