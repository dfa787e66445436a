from __future__ import annotations

import threading
from typing import Protocol

from .models import ArchivedSession


class ArchiveStore(Protocol):
    """Destination for ended sessions. Implementations own the records once written."""

    def save(self, record: ArchivedSession) -> None: ...

    def load(self, session_id: str) -> ArchivedSession | None: ...


class InMemoryArchiveStore:
    """Keeps archived sessions as serialized JSON, the same layout a durable store would persist."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, str] = {}

    def save(self, record: ArchivedSession) -> None:
        payload = record.model_dump_json()
        with self._lock:
            self._records[record.session_id] = payload

    def load(self, session_id: str) -> ArchivedSession | None:
        with self._lock:
            payload = self._records.get(session_id)
        if payload is None:
            return None
        return ArchivedSession.model_validate_json(payload)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
