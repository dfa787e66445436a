from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from ..errors import InvalidArgument, NotFound
from .models import Customer, CustomerPreferences, Session
from .registry import SessionRegistry


def _customer(session: Session, customer_id: str, operation: str) -> Customer:
    customer = session.customer(customer_id)
    if customer is None:
        raise NotFound(
            f"customer {customer_id!r} is not seated in session {session.session_id!r}",
            operation=operation,
            session_id=session.session_id,
            customer_id=customer_id,
        )
    return customer


def _validated(data: dict[str, Any], operation: str, session_id: str, customer_id: str) -> CustomerPreferences:
    try:
        return CustomerPreferences.model_validate(data)
    except ValidationError as exc:
        raise InvalidArgument(
            f"invalid preferences: {exc.error_count()} field error(s)",
            operation=operation,
            session_id=session_id,
            customer_id=customer_id,
            errors=[
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc


class PreferenceStore:
    """Customer preferences stored inside their session's customer records."""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    def set_preference(
        self,
        session_id: str,
        customer_id: str,
        preferences: CustomerPreferences | dict[str, Any],
    ) -> CustomerPreferences:
        """Replace a customer's preferences wholesale."""
        data = preferences.model_dump() if isinstance(preferences, CustomerPreferences) else dict(preferences)
        data["customer_id"] = customer_id
        validated = _validated(data, "set_preference", session_id, customer_id)

        def _set(session: Session) -> CustomerPreferences:
            _customer(session, customer_id, "set_preference").preferences = validated
            return validated.model_copy(deep=True)

        return self._registry.apply(session_id, "set_preference", _set)

    def update_preference(self, session_id: str, customer_id: str, /, **changes: Any) -> CustomerPreferences:
        """Apply a partial change; the merged result is validated before it is stored.

        A ``customer_id`` among *changes* is ignored: the addressed customer wins.
        """

        def _update(session: Session) -> CustomerPreferences:
            customer = _customer(session, customer_id, "update_preference")
            merged = customer.preferences.model_dump()
            merged.update(changes)
            merged["customer_id"] = customer_id
            customer.preferences = _validated(merged, "update_preference", session_id, customer_id)
            return customer.preferences.model_copy(deep=True)

        return self._registry.apply(session_id, "update_preference", _update)

    def get_preferences(self, session_id: str, customer_id: str) -> CustomerPreferences:
        session = self._registry.get(session_id)
        return _customer(session, customer_id, "get_preferences").preferences

    def list_preferences(self, session_id: str) -> list[CustomerPreferences]:
        session = self._registry.get(session_id)
        return [c.preferences for c in session.customers]
