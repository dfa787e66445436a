from __future__ import annotations

from typing import Iterable, Sequence

from ..errors import InvalidArgument
from ..menu.catalog import DishCatalog
from ..menu.models import DietaryLabel, Dish
from ..sessions.models import CustomerPreferences
from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .filtering import filter_dishes
from .models import FilterResult, RecommendationResponse, ResultStatus
from .scoring import rank_dishes, unique_dishes


def resolve_dishes(catalog: DishCatalog, dish_ids: Sequence[str] | None) -> list[Dish]:
    """Look up *dish_ids* in the catalog, or list every available dish when None."""
    if dish_ids is None:
        return catalog.list_available()
    return [catalog.get(dish_id) for dish_id in dict.fromkeys(dish_ids)]


def recommend(
    preferences: CustomerPreferences,
    dishes: Iterable[Dish],
    count: int,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> RecommendationResponse:
    """Filter *dishes* for one diner and rank what is left."""
    if count < 1:
        raise InvalidArgument("count must be at least 1", operation="recommend", count=count)

    filtered = filter_dishes(
        unique_dishes(dishes),
        preferences.dietary_restrictions,
        preferences.allergens,
        config.alternatives_count,
    )
    if filtered.status is ResultStatus.no_compliant_dishes:
        return RecommendationResponse(
            recommendations=[],
            total_candidates=0,
            status=ResultStatus.no_compliant_dishes,
            alternatives=filtered.alternatives,
            risk_flagged=filtered.risk_flagged,
        )

    eligible = filtered.eligible
    modifications = {dish.dish_id: mods for dish, mods in eligible if mods}
    recommendations = rank_dishes(
        [dish for dish, _ in eligible],
        preferences,
        count,
        modifications=modifications,
        config=config,
    )
    return RecommendationResponse(
        recommendations=recommendations,
        total_candidates=len(eligible),
        status=ResultStatus.ok,
        risk_flagged=filtered.risk_flagged,
    )


def filter_by_restrictions(
    dishes: Iterable[Dish],
    restrictions: Iterable[DietaryLabel | str],
    allergens: Iterable[str],
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> FilterResult:
    return filter_dishes(unique_dishes(dishes), restrictions, allergens, config.alternatives_count)
