"""
Structured query intake.

The external language layer hands over an already-classified query: an
intent, explicit entities and a list of tagged references.  This module
binds the references against the session, checks every id it was given, and
appends the turn to the conversation history so later references resolve.
"""
from __future__ import annotations

import logging

from ..errors import AmbiguousReference, NotFound
from ..menu.catalog import DishCatalog
from ..sessions.context import ContextResolver, append_entry
from ..sessions.models import Session
from ..sessions.registry import SessionRegistry
from .models import QueryResult, QueryResultType, StructuredQuery

logger = logging.getLogger(__name__)


def handle_query(
    registry: SessionRegistry,
    catalog: DishCatalog,
    session_id: str,
    query: StructuredQuery,
) -> QueryResult:
    """Bind and record *query* against the session.

    Customer checks, reference binding and the history append happen under
    the session lock, so a reference always binds to the turn sequenced just
    before its own.
    """
    resolver = ContextResolver(registry)
    explicit_dishes = list(dict.fromkeys(query.entities.dish_ids))
    explicit_customers = list(dict.fromkeys(query.entities.customer_ids))

    for dish_id in explicit_dishes:
        catalog.get(dish_id)

    def _bind(session: Session) -> QueryResult:
        seated = {c.customer_id for c in session.customers}
        for customer_id in explicit_customers:
            if customer_id not in seated:
                raise NotFound(
                    f"customer {customer_id!r} is not seated in session {session_id!r}",
                    operation="handle_query",
                    session_id=session_id,
                    customer_id=customer_id,
                )

        dish_ids = list(explicit_dishes)
        customer_ids = list(explicit_customers)
        unresolved = []
        for kind in query.raw_reference_expressions:
            try:
                ref = resolver.resolve_in(session, kind)
            except AmbiguousReference as exc:
                logger.info("Reference %s unresolved in session %s", kind.value, session_id)
                unresolved.append(exc.context["reference"])
                continue
            target = dish_ids if ref.entity_type == "dish" else customer_ids
            for entity_id in ref.entity_ids:
                if entity_id not in target:
                    target.append(entity_id)

        if unresolved:
            return QueryResult(
                type=QueryResultType.clarification,
                intent=query.intent,
                dish_ids=dish_ids,
                customer_ids=customer_ids,
                unresolved=unresolved,
            )

        sequence = None
        if dish_ids or customer_ids:
            entry = append_entry(
                session,
                registry.now(),
                query.intent,
                entities=query.entities.model_dump(),
                focus_dish_ids=dish_ids,
                focus_customer_ids=customer_ids,
            )
            sequence = entry.sequence

        return QueryResult(
            type=QueryResultType.results,
            intent=query.intent,
            dish_ids=dish_ids,
            customer_ids=customer_ids,
            sequence=sequence,
        )

    return registry.apply(session_id, "handle_query", _bind)
