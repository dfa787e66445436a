from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..chat.models import QueryIntent
from ..menu.models import SPICE_MAX, DietaryLabel, FlavorProfile, normalize_allergens


class SessionStatus(str, Enum):
    active = "active"
    archived = "archived"


class CustomerPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    customer_id: str = ""
    dietary_restrictions: set[DietaryLabel] = Field(default_factory=set)
    allergens: set[str] = Field(default_factory=set)
    flavor: FlavorProfile = Field(default_factory=FlavorProfile)
    spice_tolerance: int = Field(default=5, ge=0, le=SPICE_MAX)
    familiar_cuisines: set[str] = Field(default_factory=set)
    adventurousness: float = Field(default=0.5, ge=0.0, le=1.0)
    notes: str = Field(default="", max_length=2000)

    @field_validator("allergens", mode="before")
    @classmethod
    def _normalize_allergens(cls, value):
        return normalize_allergens(value)

    @field_validator("familiar_cuisines", mode="before")
    @classmethod
    def _lower_cuisines(cls, value):
        if value is None:
            return set()
        return {c.strip().lower() for c in value if c and c.strip()}


class Customer(BaseModel):
    customer_id: str = Field(..., min_length=1)
    seat: int = Field(..., ge=1)
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)


class ConversationEntry(BaseModel):
    sequence: int = Field(..., ge=1)
    at: datetime
    intent: QueryIntent
    entities: dict[str, Any] = Field(default_factory=dict)
    focus_dish_ids: list[str] = Field(default_factory=list)
    focus_customer_ids: list[str] = Field(default_factory=list)


class Session(BaseModel):
    session_id: str
    table_id: str = Field(..., min_length=1)
    customers: list[Customer] = Field(default_factory=list)
    history: list[ConversationEntry] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.active
    created_at: datetime
    last_activity_at: datetime
    ended_at: datetime | None = None
    request_id: str | None = None

    def customer(self, customer_id: str) -> Customer | None:
        for c in self.customers:
            if c.customer_id == customer_id:
                return c
        return None


class SessionContext(BaseModel):
    session_id: str
    table_id: str
    status: SessionStatus
    customers: list[Customer]
    history: list[ConversationEntry]
    focus_dish_id: str | None = None
    focus_customer_id: str | None = None
    last_activity_at: datetime


class ArchivedSession(BaseModel):
    """Record written to the archive store when a session ends."""

    session_id: str
    table_id: str
    status: SessionStatus
    customers: list[Customer]
    history: list[ConversationEntry]
    created_at: datetime
    ended_at: datetime
    request_id: str | None = None

    @classmethod
    def from_session(cls, session: Session) -> "ArchivedSession":
        return cls(
            session_id=session.session_id,
            table_id=session.table_id,
            status=session.status,
            customers=session.customers,
            history=session.history,
            created_at=session.created_at,
            ended_at=session.ended_at,
            request_id=session.request_id,
        )

    def to_session(self) -> Session:
        return Session(
            session_id=self.session_id,
            table_id=self.table_id,
            customers=self.customers,
            history=self.history,
            status=SessionStatus.archived,
            created_at=self.created_at,
            last_activity_at=self.ended_at,
            ended_at=self.ended_at,
            request_id=self.request_id,
        )
