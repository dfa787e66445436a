from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..menu.models import DietaryLabel, Dish
from ..sessions.models import CustomerPreferences


class ResultStatus(str, Enum):
    ok = "ok"
    no_compliant_dishes = "no_compliant_dishes"


class Modification(BaseModel):
    ingredient: str
    substitute: str
    reasons: list[str] = Field(default_factory=list)


class ModifiableDish(BaseModel):
    dish: Dish
    modifications: list[Modification]


class RiskFlaggedDish(BaseModel):
    dish: Dish
    warnings: list[str]
    modifications: list[Modification] = Field(default_factory=list)


class Alternative(BaseModel):
    dish: Dish
    violations: list[str]


class FilterResult(BaseModel):
    status: ResultStatus
    compliant: list[Dish] = Field(default_factory=list)
    modifiable: list[ModifiableDish] = Field(default_factory=list)
    risk_flagged: list[RiskFlaggedDish] = Field(default_factory=list)
    alternatives: list[Alternative] = Field(default_factory=list)

    @property
    def eligible(self) -> list[tuple[Dish, list[Modification]]]:
        """Compliant dishes followed by modifiable ones, with their modifications."""
        return [(d, []) for d in self.compliant] + [(m.dish, m.modifications) for m in self.modifiable]


class FactorContribution(BaseModel):
    name: str
    weight: float
    value: float
    contribution: float


class ExplanationToken(BaseModel):
    code: str
    detail: dict[str, Any] = Field(default_factory=dict)


class Recommendation(BaseModel):
    dish: Dish
    score: float
    factors: list[FactorContribution]
    reasons: list[ExplanationToken] = Field(default_factory=list)
    modifications: list[Modification] = Field(default_factory=list)
    customer_scores: dict[str, float] = Field(default_factory=dict)

    def factor(self, name: str) -> FactorContribution:
        return next(f for f in self.factors if f.name == name)


class RecommendationResponse(BaseModel):
    recommendations: list[Recommendation]
    total_candidates: int
    status: ResultStatus = ResultStatus.ok
    alternatives: list[Alternative] = Field(default_factory=list)
    risk_flagged: list[RiskFlaggedDish] = Field(default_factory=list)


# ── Request bodies ───────────────────────────────────────────────────────


class RecommendationRequest(BaseModel):
    preferences: CustomerPreferences
    dish_ids: list[str] | None = Field(
        default=None, description="Restrict to these dishes; defaults to every available dish"
    )
    count: int = Field(default=5, ge=1, le=50)


class GroupRecommendationRequest(BaseModel):
    preferences: list[CustomerPreferences] = Field(..., min_length=1)
    dish_ids: list[str] | None = None
    count: int = Field(default=5, ge=1, le=50)


class FilterRequest(BaseModel):
    restrictions: set[DietaryLabel] = Field(default_factory=set)
    allergens: set[str] = Field(default_factory=set)
    dish_ids: list[str] | None = None
