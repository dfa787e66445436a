"""
Session registry.

Every session lives in its own slot with its own lock, so work on one table
never waits on another.  The registry-wide lock only guards the two small
indexes (id -> slot, table -> active id) and is never held while a session
is being mutated.

Mutations are copy-on-write: the change is applied to a deep copy of the
session and swapped in only if it completes, so a failed mutation leaves no
trace and a reader never sees a half-applied change.
"""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, TypeVar

from ..errors import ConflictError, InvalidArgument, InvalidState, NotFound
from .archive import ArchiveStore, InMemoryArchiveStore
from .config import DEFAULT_SESSION_CONFIG, SessionConfig
from .models import (
    ArchivedSession,
    ConversationEntry,
    Customer,
    CustomerPreferences,
    Session,
    SessionContext,
    SessionStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _single_focus(history: list[ConversationEntry], attr: str) -> str | None:
    for entry in reversed(history):
        ids = set(getattr(entry, attr))
        if ids:
            return ids.pop() if len(ids) == 1 else None
    return None


class _SessionSlot:
    __slots__ = ("session", "lock")

    def __init__(self, session: Session) -> None:
        self.session = session
        self.lock = threading.RLock()


class SessionRegistry:
    def __init__(
        self,
        config: SessionConfig = DEFAULT_SESSION_CONFIG,
        archive: ArchiveStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.archive = archive if archive is not None else InMemoryArchiveStore()
        self._clock = clock
        self._index_lock = threading.Lock()
        self._slots: dict[str, _SessionSlot] = {}
        self._active_by_table: dict[str, str] = {}

    # ── Lifecycle ───────────────────────────────────────────────────────

    def create(self, table_id: str, customer_count: int, request_id: str | None = None) -> Session:
        """Open a session for *table_id* with *customer_count* seated customers.

        A retry carrying the ``request_id`` of the call that opened the
        table's current session gets that session back instead of a conflict.
        """
        if not isinstance(table_id, str) or not table_id.strip():
            raise InvalidArgument("table_id is required", operation="create_session", table_id=table_id)
        if (
            isinstance(customer_count, bool)
            or not isinstance(customer_count, int)
            or not 1 <= customer_count <= self.config.max_customers
        ):
            raise InvalidArgument(
                f"customer_count must be between 1 and {self.config.max_customers}",
                operation="create_session",
                table_id=table_id,
                customer_count=customer_count,
            )

        with self._index_lock:
            existing_id = self._active_by_table.get(table_id)
            if existing_id is not None:
                existing = self._slots[existing_id].session
                if existing.status is SessionStatus.active:
                    if (
                        request_id is not None
                        and existing.request_id == request_id
                        and len(existing.customers) == customer_count
                    ):
                        return existing.model_copy(deep=True)
                    raise ConflictError(
                        f"table {table_id!r} already has an active session",
                        operation="create_session",
                        existing_session_id=existing_id,
                        table_id=table_id,
                    )

            now = self._clock()
            session = Session(
                session_id=uuid.uuid4().hex,
                table_id=table_id,
                customers=[
                    Customer(
                        customer_id=f"c{seat}",
                        seat=seat,
                        preferences=CustomerPreferences(customer_id=f"c{seat}"),
                    )
                    for seat in range(1, customer_count + 1)
                ],
                created_at=now,
                last_activity_at=now,
                request_id=request_id,
            )
            self._slots[session.session_id] = _SessionSlot(session)
            self._active_by_table[table_id] = session.session_id

        logger.info(
            "Session %s opened for table %s with %d customers",
            session.session_id, table_id, customer_count,
        )
        return session.model_copy(deep=True)

    def end(self, session_id: str) -> Session:
        """Archive a session. Ending an archived session is a no-op.

        A session already evicted from memory is answered from the archive.
        """
        try:
            slot = self._slot(session_id, "end_session")
        except NotFound:
            record = self.archive.load(session_id)
            if record is None:
                raise
            return record.to_session()
        with slot.lock:
            self._archive(slot, session_id)
            return slot.session.model_copy(deep=True)

    def reap_idle(self, now: datetime | None = None) -> list[str]:
        """Archive sessions idle past the timeout and evict expired archives.

        Returns the ids of the sessions archived by this call.
        """
        now = now or self._clock()
        idle_cutoff = now - timedelta(seconds=self.config.idle_timeout_seconds)
        with self._index_lock:
            candidates = list(self._slots.items())

        archived: list[str] = []
        for session_id, slot in candidates:
            session = slot.session
            if session.status is SessionStatus.active:
                if self._archive(slot, session_id, idle_cutoff=idle_cutoff):
                    archived.append(session_id)
            elif session.ended_at is not None:
                age = (now - session.ended_at).total_seconds()
                if age > self.config.archive_retention_seconds:
                    with self._index_lock:
                        self._slots.pop(session_id, None)
                    logger.info("Session %s evicted from memory", session_id)

        if archived:
            logger.info("Reaper archived %d idle sessions", len(archived))
        return archived

    # ── Reads ───────────────────────────────────────────────────────────

    def get(self, session_id: str) -> Session:
        slot = self._slot(session_id, "get_session")
        with slot.lock:
            if slot.session.status is SessionStatus.active:
                slot.session.last_activity_at = self._clock()
            return slot.session.model_copy(deep=True)

    def get_context(self, session_id: str) -> SessionContext:
        """Snapshot plus the most recent ``history_window`` entries (none when the window is 0).

        A focus id is reported only when the latest turn that focused a dish
        (or customer) focused exactly one.
        """
        session = self.get(session_id)
        window = self.config.history_window
        return SessionContext(
            session_id=session.session_id,
            table_id=session.table_id,
            status=session.status,
            customers=session.customers,
            history=session.history[-window:] if window > 0 else [],
            focus_dish_id=_single_focus(session.history, "focus_dish_ids"),
            focus_customer_id=_single_focus(session.history, "focus_customer_ids"),
            last_activity_at=session.last_activity_at,
        )

    def get_archived(self, session_id: str) -> Session:
        """Rebuild an ended session from the archive store."""
        record = self.archive.load(session_id)
        if record is None:
            raise NotFound(
                f"no archived record for session {session_id!r}",
                operation="get_archived_session",
                session_id=session_id,
            )
        return record.to_session()

    def now(self) -> datetime:
        return self._clock()

    def active_session_for(self, table_id: str) -> str | None:
        with self._index_lock:
            return self._active_by_table.get(table_id)

    # ── Mutations ───────────────────────────────────────────────────────

    def apply(self, session_id: str, operation: str, fn: Callable[[Session], T]) -> T:
        """Run *fn* against a working copy of an active session and commit it.

        *fn* may raise; nothing is committed in that case.
        """
        slot = self._slot(session_id, operation)
        with slot.lock:
            if slot.session.status is not SessionStatus.active:
                raise InvalidState(
                    f"session {session_id!r} is archived",
                    operation=operation,
                    session_id=session_id,
                )
            work = slot.session.model_copy(deep=True)
            result = fn(work)
            work.last_activity_at = self._clock()
            slot.session = work
            return result

    def add_customer(self, session_id: str, customer_id: str | None = None) -> Customer:
        def _add(session: Session) -> Customer:
            if len(session.customers) >= self.config.max_customers:
                raise InvalidArgument(
                    f"a table seats at most {self.config.max_customers} customers",
                    operation="add_customer",
                    session_id=session_id,
                )
            taken = {c.customer_id for c in session.customers}
            new_id = customer_id
            if new_id is None:
                n = len(session.customers) + 1
                while f"c{n}" in taken:
                    n += 1
                new_id = f"c{n}"
            elif not new_id.strip() or new_id in taken:
                raise InvalidArgument(
                    f"customer id {new_id!r} is empty or already seated",
                    operation="add_customer",
                    session_id=session_id,
                    customer_id=new_id,
                )
            seat = max((c.seat for c in session.customers), default=0) + 1
            customer = Customer(
                customer_id=new_id,
                seat=seat,
                preferences=CustomerPreferences(customer_id=new_id),
            )
            session.customers.append(customer)
            return customer.model_copy(deep=True)

        return self.apply(session_id, "add_customer", _add)

    # ── Internals ───────────────────────────────────────────────────────

    def _slot(self, session_id: str, operation: str) -> _SessionSlot:
        with self._index_lock:
            slot = self._slots.get(session_id)
        if slot is None:
            raise NotFound(
                f"session {session_id!r} not found",
                operation=operation,
                session_id=session_id,
            )
        return slot


_registry: SessionRegistry | None = None


def get_registry() -> SessionRegistry:
    """Return the process-wide registry, creating it on first call."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
