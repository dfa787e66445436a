"""
Dietary and allergen filter.

Pure and deterministic: the same dishes and constraints always produce the
same result, and nothing is mutated.  Absence of a match is reported through
``ResultStatus.no_compliant_dishes`` together with the closest alternatives,
never through an exception.
"""
from __future__ import annotations

from typing import Iterable

from ..errors import InvalidArgument
from ..menu.models import DietaryLabel, Dish, Ingredient, Substitute, normalize_allergens
from .config import DEFAULT_SCORING_CONFIG
from .models import (
    Alternative,
    FilterResult,
    Modification,
    ModifiableDish,
    ResultStatus,
    RiskFlaggedDish,
)


def violations_for(dish: Dish, restrictions: set[DietaryLabel], allergens: set[str]) -> list[str]:
    """Every constraint *dish* breaks as served, e.g. ``diet:vegan`` or ``allergen:dairy``."""
    unmet = sorted(label.value for label in restrictions - dish.dietary)
    hits = sorted(allergens & dish.allergens)
    return [f"diet:{label}" for label in unmet] + [f"allergen:{a}" for a in hits]


def _offends(item: Ingredient | Substitute, restrictions: set[DietaryLabel], allergens: set[str]) -> bool:
    return bool(restrictions & item.breaks) or bool(allergens & item.allergens)


def _single_substitution(
    dish: Dish,
    restrictions: set[DietaryLabel],
    allergens: set[str],
    violations: list[str],
) -> Modification | None:
    offending = [i for i in dish.ingredients if _offends(i, restrictions, allergens)]
    if len(offending) != 1 or not offending[0].can_substitute:
        return None
    ingredient = offending[0]
    for substitute in ingredient.substitutions:
        if not _offends(substitute, restrictions, allergens):
            return Modification(ingredient=ingredient.name, substitute=substitute.name, reasons=violations)
    return None


def filter_dishes(
    dishes: Iterable[Dish],
    restrictions: Iterable[DietaryLabel | str] = (),
    personal_allergens: Iterable[str] = (),
    alternatives_count: int | None = None,
) -> FilterResult:
    """Split *dishes* into compliant, modifiable and risk-flagged groups.

    A dish that breaks constraints only through one substitutable ingredient
    is returned as modifiable with the substitution attached.  A dish that
    may carry a diner's allergen through cross-contamination is never
    returned as safe.  When nothing is eligible, the closest dishes by
    number of broken constraints are returned as alternatives.
    """
    try:
        wanted = {DietaryLabel(r) for r in restrictions}
    except ValueError as exc:
        raise InvalidArgument(str(exc), operation="filter_dishes") from exc
    avoid = normalize_allergens(list(personal_allergens))
    if alternatives_count is None:
        alternatives_count = DEFAULT_SCORING_CONFIG.alternatives_count

    compliant: list[Dish] = []
    modifiable: list[ModifiableDish] = []
    risk_flagged: list[RiskFlaggedDish] = []
    excluded: list[Alternative] = []

    for dish in sorted(dishes, key=lambda d: d.dish_id):
        if not dish.available:
            continue

        risks = sorted(avoid & dish.cross_contamination)
        warnings = [f"cross_contamination:{a}" for a in risks]
        violations = violations_for(dish, wanted, avoid)

        if not violations:
            if warnings:
                risk_flagged.append(RiskFlaggedDish(dish=dish, warnings=warnings))
            else:
                compliant.append(dish)
            continue

        modification = _single_substitution(dish, wanted, avoid, violations)
        if modification is None:
            excluded.append(Alternative(dish=dish, violations=violations))
        elif warnings:
            risk_flagged.append(
                RiskFlaggedDish(
                    dish=dish,
                    warnings=warnings + ["requires_modification"],
                    modifications=[modification],
                )
            )
        else:
            modifiable.append(ModifiableDish(dish=dish, modifications=[modification]))

    if compliant or modifiable:
        return FilterResult(
            status=ResultStatus.ok,
            compliant=compliant,
            modifiable=modifiable,
            risk_flagged=risk_flagged,
        )

    excluded.sort(key=lambda alt: (len(alt.violations), alt.dish.dish_id))
    return FilterResult(
        status=ResultStatus.no_compliant_dishes,
        risk_flagged=risk_flagged,
        alternatives=excluded[:alternatives_count],
    )
