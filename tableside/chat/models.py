from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class QueryIntent(str, Enum):
    information = "information"
    allergen = "allergen"
    recommendation = "recommendation"
    pairing = "pairing"
    substitution = "substitution"
    dietary_filter = "dietary_filter"


class ReferenceKind(str, Enum):
    last_dish = "last_dish"  # "it", "this dish"
    previous_dish = "previous_dish"  # "the other one"
    last_customer = "last_customer"  # "she", "the customer"
    group = "group"  # "they", "everyone"


class QueryEntities(BaseModel):
    dish_ids: list[str] = Field(default_factory=list)
    customer_ids: list[str] = Field(default_factory=list)
    restrictions: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)


class StructuredQuery(BaseModel):
    """Output of the external intent/entity layer, one per customer utterance."""

    intent: QueryIntent
    entities: QueryEntities = Field(default_factory=QueryEntities)
    raw_reference_expressions: list[ReferenceKind] = Field(default_factory=list)


class QueryResultType(str, Enum):
    results = "results"
    clarification = "clarification"


class QueryResult(BaseModel):
    type: QueryResultType
    intent: QueryIntent
    dish_ids: list[str] = Field(default_factory=list)
    customer_ids: list[str] = Field(default_factory=list)
    unresolved: list[ReferenceKind] = Field(default_factory=list)
    sequence: int | None = None
