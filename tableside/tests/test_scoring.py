from __future__ import annotations

import pytest

from tableside.errors import InvalidArgument
from tableside.menu.catalog import InMemoryDishCatalog, load_menu
from tableside.menu.models import Dish, FlavorProfile
from tableside.recommendations.config import ScoringConfig
from tableside.recommendations.models import Modification, ResultStatus
from tableside.recommendations.scoring import rank_dishes, score, score_frame
from tableside.recommendations.service import recommend, resolve_dishes
from tableside.sessions.models import CustomerPreferences


def _dish(dish_id: str, **kwargs) -> Dish:
    return Dish(dish_id=dish_id, name=dish_id.replace("_", " ").title(), **kwargs)


def _prefs(**kwargs) -> CustomerPreferences:
    return CustomerPreferences(customer_id="c1", **kwargs)


# ── Sub-scores ───────────────────────────────────────────────────────────


class TestScore:
    def test_factor_contributions_add_up(self):
        dish = _dish("ramen", cuisine="japanese", spice_level=3, popularity=0.6)
        rec = score(dish, _prefs(spice_tolerance=3, familiar_cuisines=["japanese"]))
        assert [f.name for f in rec.factors] == ["flavor", "cuisine", "spice", "novelty"]
        assert [f.weight for f in rec.factors] == [0.40, 0.25, 0.20, 0.15]
        assert sum(f.contribution for f in rec.factors) == pytest.approx(rec.score, abs=1e-3)
        assert 0.0 <= rec.score <= 1.0

    def test_perfect_match_scores_one(self):
        dish = _dish("ramen", cuisine="japanese", spice_level=3)
        rec = score(dish, _prefs(spice_tolerance=3, familiar_cuisines=["japanese"], adventurousness=0.0))
        assert rec.factor("flavor").value == 1.0
        assert rec.factor("spice").value == 1.0
        assert rec.factor("novelty").value == 0.0
        assert rec.score == pytest.approx(0.85)

    def test_opposite_flavor_scores_zero(self):
        dish = _dish("candy", flavor=FlavorProfile(**{axis: 10 for axis in FlavorProfile.model_fields}))
        prefs = _prefs(flavor=FlavorProfile(**{axis: 0 for axis in FlavorProfile.model_fields}))
        assert score(dish, prefs).factor("flavor").value == 0.0

    def test_unfamiliar_cuisine_uses_base(self):
        dish = _dish("injera", cuisine="ethiopian")
        assert score(dish, _prefs(familiar_cuisines=["italian"])).factor("cuisine").value == 0.4
        custom = ScoringConfig(unfamiliar_cuisine_base=0.1)
        assert score(dish, _prefs(), custom).factor("cuisine").value == 0.1

    def test_spice_penalty_is_steeper_above_tolerance(self):
        prefs = _prefs(spice_tolerance=5)
        milder = score(_dish("mild", spice_level=3), prefs).factor("spice").value
        hotter = score(_dish("hot", spice_level=7), prefs).factor("spice").value
        assert milder == pytest.approx(0.9)
        assert hotter == pytest.approx(0.7)

    def test_novelty_scales_with_adventurousness(self):
        known = _dish("carbonara", cuisine="italian", popularity=0.9)
        unknown = _dish("kitfo", cuisine="ethiopian", popularity=0.2)

        def _scores(adventurousness: float) -> tuple[float, float]:
            prefs = _prefs(familiar_cuisines=["italian"], adventurousness=adventurousness)
            return score(known, prefs).score, score(unknown, prefs).score

        cautious = _scores(0.0)
        bold = _scores(1.0)
        assert bold[0] == cautious[0]
        assert bold[1] > cautious[1]
        assert score(unknown, _prefs(adventurousness=1.0)).factor("novelty").value == pytest.approx(0.8)

    def test_explanation_tokens(self):
        dish = _dish("kitfo", cuisine="ethiopian", spice_level=8, popularity=0.1)
        rec = score(dish, _prefs(spice_tolerance=4, adventurousness=0.9))
        codes = [r.code for r in rec.reasons]
        assert codes == ["flavor_match", "new_cuisine", "hotter_than_tolerance", "novel_pick"]
        assert rec.reasons[0].detail["similarity"] == 1.0

    def test_score_frame_empty(self):
        frame = score_frame([], _prefs())
        assert frame.empty
        assert "total" in frame.columns


# ── Ranking ──────────────────────────────────────────────────────────────


class TestRank:
    def test_mild_diner_gets_mild_dishes_first(self):
        dishes = [
            _dish("hot", spice_level=9),
            _dish("medium", spice_level=5),
            _dish("mild", spice_level=1),
        ]
        ranked = rank_dishes(dishes, _prefs(spice_tolerance=2), count=3)
        assert [r.dish.dish_id for r in ranked] == ["mild", "medium", "hot"]
        assert ranked[-1].factor("spice").value == 0.0

    @pytest.mark.parametrize("count, expected", [(1, 1), (2, 2), (3, 3), (10, 3)])
    def test_returns_at_most_count(self, count, expected):
        dishes = [_dish(f"d{i}", spice_level=i) for i in range(3)]
        assert len(rank_dishes(dishes, _prefs(), count=count)) == expected

    def test_equal_scores_break_on_dish_id(self):
        dishes = [_dish("b_soup"), _dish("c_soup"), _dish("a_soup")]
        ranked = rank_dishes(dishes, _prefs(), count=3)
        assert len({r.score for r in ranked}) == 1
        assert [r.dish.dish_id for r in ranked] == ["a_soup", "b_soup", "c_soup"]

    def test_equal_scores_break_on_flavor_before_dish_id(self):
        # 0.4 * 1.0 + 0.25 * 0.4 + 0.2 == 0.4 * 0.625 + 0.25 * 1.0 + 0.2
        close_flavor = _dish("z_curry", cuisine="thai")
        familiar = _dish(
            "a_curry",
            cuisine="italian",
            flavor=FlavorProfile(**{axis: 8.75 for axis in FlavorProfile.model_fields}),
        )
        prefs = _prefs(spice_tolerance=0, familiar_cuisines=["italian"], adventurousness=0.0)
        ranked = rank_dishes([familiar, close_flavor], prefs, count=2)
        assert ranked[0].score == ranked[1].score
        assert [r.dish.dish_id for r in ranked] == ["z_curry", "a_curry"]

    def test_adventurous_diner_sees_at_least_as_many_unfamiliar_dishes_in_every_top_n(self):
        dishes = load_menu()
        familiar = {"italian", "thai"}
        cautious = _prefs(spice_tolerance=5, familiar_cuisines=familiar, adventurousness=0.1)
        bold = cautious.model_copy(update={"adventurousness": 0.9})

        def _unfamiliar(ranked) -> int:
            return sum(r.dish.cuisine not in familiar for r in ranked)

        low = rank_dishes(dishes, cautious, count=len(dishes))
        high = rank_dishes(dishes, bold, count=len(dishes))
        for n in range(1, len(dishes) + 1):
            assert _unfamiliar(high[:n]) >= _unfamiliar(low[:n])

    def test_duplicate_dishes_ranked_once(self):
        dish = _dish("ramen")
        assert len(rank_dishes([dish, dish], _prefs(), count=5)) == 1

    def test_modifications_are_attached(self):
        swap = Modification(ingredient="parmesan", substitute="nutritional yeast", reasons=["allergen:dairy"])
        ranked = rank_dishes([_dish("caesar_salad")], _prefs(), count=1, modifications={"caesar_salad": [swap]})
        assert ranked[0].modifications == [swap]
        assert ranked[0].reasons[-1].code == "requires_modification"

    def test_ranking_is_deterministic(self):
        dishes = load_menu()
        prefs = _prefs(spice_tolerance=6, familiar_cuisines=["thai"], adventurousness=0.7)
        first = [r.model_dump() for r in rank_dishes(dishes, prefs, count=5)]
        second = [r.model_dump() for r in rank_dishes(list(reversed(dishes)), prefs, count=5)]
        assert first == second


# ── Filter then rank ─────────────────────────────────────────────────────


class TestRecommend:
    @pytest.fixture
    def catalog(self) -> InMemoryDishCatalog:
        return InMemoryDishCatalog(load_menu())

    def test_only_safe_dishes_are_recommended(self, catalog):
        prefs = _prefs(allergens=["dairy"], dietary_restrictions=["vegetarian"])
        response = recommend(prefs, catalog.list_available(), count=20)
        assert response.status is ResultStatus.ok
        assert len(response.recommendations) == response.total_candidates
        for rec in response.recommendations:
            if not rec.modifications:
                assert "dairy" not in rec.dish.allergens

    def test_modified_dish_carries_substitution(self, catalog):
        response = recommend(_prefs(allergens=["dairy"]), catalog.list_available(), count=20)
        caesar = next(r for r in response.recommendations if r.dish.dish_id == "caesar_salad")
        assert caesar.modifications[0].substitute == "nutritional yeast"

    def test_nothing_compliant_returns_alternatives(self, catalog):
        dishes = resolve_dishes(catalog, ["lamb_rogan_josh", "shrimp_ceviche"])
        response = recommend(_prefs(dietary_restrictions=["vegan"]), dishes, count=3)
        assert response.status is ResultStatus.no_compliant_dishes
        assert response.recommendations == []
        assert {a.dish.dish_id for a in response.alternatives} == {"lamb_rogan_josh", "shrimp_ceviche"}

    def test_count_must_be_positive(self, catalog):
        with pytest.raises(InvalidArgument):
            recommend(_prefs(), catalog.list_available(), count=0)

    def test_resolve_dishes_defaults_to_available(self, catalog):
        ids = [d.dish_id for d in resolve_dishes(catalog, None)]
        assert "tiramisu" not in ids
        assert ids == sorted(ids)
