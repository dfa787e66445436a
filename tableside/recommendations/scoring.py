"""
Scoring and ranking.

A dish's score for one diner is a weighted sum of four sub-scores, each in
[0, 1]:

* flavor  - one minus the Euclidean distance between the dish's flavor
  vector and the diner's desired profile, divided by the largest possible
  distance (every axis at opposite ends of its range).
* cuisine - 1.0 for a cuisine the diner knows, a configurable base otherwise.
* spice   - 1.0 at the diner's tolerance, falling linearly with the gap; a
  dish hotter than the tolerance falls three times as fast as a milder one.
* novelty - (1 - familiarity) x adventurousness, where familiarity is 1.0
  for a known cuisine and the dish's popularity otherwise.

Ranking is by total score, then flavor sub-score, then dish id, so equal
inputs always produce the same order.
"""
from __future__ import annotations

import math
from typing import Iterable

import numpy as np
import pandas as pd
from sklearn.metrics.pairwise import euclidean_distances

from ..menu.models import FLAVOR_AXES, FLAVOR_MAX, SPICE_MAX, Dish
from ..sessions.models import CustomerPreferences
from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .models import ExplanationToken, FactorContribution, Modification, Recommendation

MAX_FLAVOR_DISTANCE = FLAVOR_MAX * math.sqrt(len(FLAVOR_AXES))
FACTORS = ("flavor", "cuisine", "spice", "novelty")

# Rounding applied before sorting so float noise cannot break a real tie
_SORT_PRECISION = 9


def unique_dishes(dishes: Iterable[Dish]) -> list[Dish]:
    seen: dict[str, Dish] = {}
    for dish in dishes:
        seen.setdefault(dish.dish_id, dish)
    return list(seen.values())


def score_frame(
    dishes: list[Dish],
    preferences: CustomerPreferences,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> pd.DataFrame:
    """Compute every sub-score and the weighted total for *dishes*, one row per dish."""
    columns = ["dish_id", *FACTORS, "familiarity", "total"]
    if not dishes:
        return pd.DataFrame(columns=columns)

    dish_vecs = np.array([d.flavor.as_vector() for d in dishes], dtype=float)
    pref_vec = np.array([preferences.flavor.as_vector()], dtype=float)
    distances = euclidean_distances(dish_vecs, pref_vec).ravel()
    flavor = np.clip(1.0 - distances / MAX_FLAVOR_DISTANCE, 0.0, 1.0)

    familiar = np.array([d.cuisine in preferences.familiar_cuisines for d in dishes])
    cuisine = np.where(familiar, 1.0, config.unfamiliar_cuisine_base)

    gap = np.array([d.spice_level for d in dishes], dtype=float) - preferences.spice_tolerance
    rate = np.where(gap > 0, config.spice_over_penalty, config.spice_under_penalty)
    spice = np.clip(1.0 - rate * np.abs(gap) / SPICE_MAX, 0.0, 1.0)

    popularity = np.array([d.popularity for d in dishes], dtype=float)
    familiarity = np.where(familiar, 1.0, popularity)
    novelty = (1.0 - familiarity) * preferences.adventurousness

    frame = pd.DataFrame({
        "dish_id": [d.dish_id for d in dishes],
        "flavor": flavor,
        "cuisine": cuisine,
        "spice": spice,
        "novelty": novelty,
        "familiarity": familiarity,
    })
    weights = config.weights
    frame["total"] = sum(weights[name] * frame[name] for name in FACTORS)
    return frame[columns]


def sort_ranked(frame: pd.DataFrame, score_col: str = "total", flavor_col: str = "flavor") -> pd.DataFrame:
    """Order rows by score desc, flavor desc, dish id asc."""
    keyed = frame.assign(
        _score_key=frame[score_col].astype(float).round(_SORT_PRECISION),
        _flavor_key=frame[flavor_col].astype(float).round(_SORT_PRECISION),
    )
    keyed = keyed.sort_values(
        ["_score_key", "_flavor_key", "dish_id"],
        ascending=[False, False, True],
        kind="mergesort",
    )
    return keyed.drop(columns=["_score_key", "_flavor_key"])


def _reasons(
    dish: Dish,
    row: pd.Series,
    preferences: CustomerPreferences,
    modifications: list[Modification],
) -> list[ExplanationToken]:
    reasons: list[ExplanationToken] = []

    similarity = round(float(row["flavor"]), 4)
    closest = [
        axis for axis, d, p in zip(FLAVOR_AXES, dish.flavor.as_vector(), preferences.flavor.as_vector())
        if abs(d - p) <= 1.0
    ]
    reasons.append(ExplanationToken(
        code="flavor_match" if similarity >= 0.75 else "flavor_partial_match",
        detail={"similarity": similarity, "matching_axes": closest},
    ))

    if row["cuisine"] >= 1.0:
        reasons.append(ExplanationToken(code="familiar_cuisine", detail={"cuisine": dish.cuisine}))
    else:
        reasons.append(ExplanationToken(code="new_cuisine", detail={"cuisine": dish.cuisine}))

    spice_detail = {"spice_level": dish.spice_level, "tolerance": preferences.spice_tolerance}
    if dish.spice_level == preferences.spice_tolerance:
        reasons.append(ExplanationToken(code="spice_matches_tolerance", detail=spice_detail))
    elif dish.spice_level < preferences.spice_tolerance:
        reasons.append(ExplanationToken(code="milder_than_tolerance", detail=spice_detail))
    else:
        reasons.append(ExplanationToken(code="hotter_than_tolerance", detail=spice_detail))

    if row["familiarity"] < 0.5 and preferences.adventurousness >= 0.5:
        reasons.append(ExplanationToken(
            code="novel_pick",
            detail={"adventurousness": preferences.adventurousness},
        ))

    for mod in modifications:
        reasons.append(ExplanationToken(
            code="requires_modification",
            detail={"ingredient": mod.ingredient, "substitute": mod.substitute},
        ))
    return reasons


def build_recommendation(
    dish: Dish,
    row: pd.Series,
    preferences: CustomerPreferences,
    modifications: list[Modification],
    config: ScoringConfig,
) -> Recommendation:
    weights = config.weights
    factors = [
        FactorContribution(
            name=name,
            weight=weights[name],
            value=round(float(row[name]), 4),
            contribution=round(weights[name] * float(row[name]), 4),
        )
        for name in FACTORS
    ]
    return Recommendation(
        dish=dish,
        score=round(float(row["total"]), 4),
        factors=factors,
        reasons=_reasons(dish, row, preferences, modifications),
        modifications=modifications,
    )


def score(
    dish: Dish,
    preferences: CustomerPreferences,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> Recommendation:
    """Score a single dish for one diner, with its factor breakdown."""
    row = score_frame([dish], preferences, config).iloc[0]
    return build_recommendation(dish, row, preferences, [], config)


def rank_dishes(
    dishes: Iterable[Dish],
    preferences: CustomerPreferences,
    count: int,
    modifications: dict[str, list[Modification]] | None = None,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> list[Recommendation]:
    """Rank *dishes* for one diner and return the top *count*.

    Fewer than *count* dishes means every dish is returned.
    """
    candidates = unique_dishes(dishes)
    if not candidates or count < 1:
        return []
    modifications = modifications or {}
    by_id = {d.dish_id: d for d in candidates}

    top = sort_ranked(score_frame(candidates, preferences, config)).head(count)
    recommendations = []
    for _, row in top.iterrows():
        dish_id = row["dish_id"]
        mods = modifications.get(dish_id, [])
        recommendations.append(build_recommendation(by_id[dish_id], row, preferences, mods, config))
    return recommendations
