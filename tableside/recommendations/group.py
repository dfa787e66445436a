"""
Group accommodation.

A shared dish must be safe for every diner at the table, so the group is
filtered against the union of everyone's restrictions and allergens (which
keeps exactly the dishes compliant for each member individually, and picks
substitutions acceptable to all of them).  Eligible dishes are then scored
for every diner and ranked by the *lowest* of those scores: a shared dish is
only as good as its worst fit.
"""
from __future__ import annotations

from typing import Sequence

import pandas as pd

from ..errors import InvalidArgument
from ..menu.models import Dish
from ..sessions.models import CustomerPreferences
from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .filtering import filter_dishes
from .models import ExplanationToken, Recommendation, RecommendationResponse, ResultStatus
from .scoring import build_recommendation, score_frame, sort_ranked, unique_dishes


def joint_constraints(preferences_list: Sequence[CustomerPreferences]) -> tuple[set, set[str]]:
    restrictions: set = set()
    allergens: set[str] = set()
    for prefs in preferences_list:
        restrictions |= prefs.dietary_restrictions
        allergens |= prefs.allergens
    return restrictions, allergens


def recommend_for_group(
    preferences_list: Sequence[CustomerPreferences],
    dishes: Sequence[Dish],
    count: int,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> RecommendationResponse:
    if not preferences_list:
        raise InvalidArgument("a group needs at least one diner", operation="recommend_for_group")
    if count < 1:
        raise InvalidArgument("count must be at least 1", operation="recommend_for_group", count=count)

    restrictions, allergens = joint_constraints(preferences_list)
    filtered = filter_dishes(unique_dishes(dishes), restrictions, allergens, config.alternatives_count)

    if filtered.status is ResultStatus.no_compliant_dishes:
        return RecommendationResponse(
            recommendations=[],
            total_candidates=0,
            status=ResultStatus.no_compliant_dishes,
            alternatives=filtered.alternatives,
            risk_flagged=filtered.risk_flagged,
        )

    eligible = filtered.eligible
    candidates = [dish for dish, _ in eligible]
    modifications = {dish.dish_id: mods for dish, mods in eligible}
    by_id = {d.dish_id: d for d in candidates}

    labels: list[str] = []
    for i, prefs in enumerate(preferences_list):
        label = prefs.customer_id or f"diner_{i + 1}"
        labels.append(label if label not in labels else f"{label}#{i + 1}")
    frames = {
        label: score_frame(candidates, prefs, config).set_index("dish_id")
        for label, prefs in zip(labels, preferences_list)
    }
    totals = pd.DataFrame({label: frame["total"] for label, frame in frames.items()})
    flavors = pd.DataFrame({label: frame["flavor"] for label, frame in frames.items()})

    summary = pd.DataFrame({
        "dish_id": totals.index,
        "min_total": totals.min(axis=1).values,
        "min_flavor": flavors.min(axis=1).values,
        "worst_fit": totals.idxmin(axis=1).values,
    })
    top = sort_ranked(summary, score_col="min_total", flavor_col="min_flavor").head(count)

    recommendations: list[Recommendation] = []
    for _, row in top.iterrows():
        dish_id = row["dish_id"]
        worst = row["worst_fit"]
        worst_prefs = preferences_list[labels.index(worst)]
        worst_row = frames[worst].loc[dish_id].copy()
        worst_row["dish_id"] = dish_id

        rec = build_recommendation(by_id[dish_id], worst_row, worst_prefs, modifications[dish_id], config)
        rec.customer_scores = {label: round(float(totals.at[dish_id, label]), 4) for label in labels}
        rec.reasons.insert(0, ExplanationToken(
            code="safe_for_group",
            detail={"diners": len(labels), "worst_fit": worst},
        ))
        recommendations.append(rec)

    return RecommendationResponse(
        recommendations=recommendations,
        total_candidates=len(candidates),
        status=ResultStatus.ok,
        risk_flagged=filtered.risk_flagged,
    )

