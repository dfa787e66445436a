from __future__ import annotations

import pytest

from tableside.errors import InvalidArgument, NotFound
from tableside.menu.models import DietaryLabel
from tableside.sessions.models import CustomerPreferences
from tableside.sessions.preferences import PreferenceStore


@pytest.fixture
def store(registry) -> PreferenceStore:
    return PreferenceStore(registry)


@pytest.fixture
def session_id(registry) -> str:
    return registry.create("T1", 3).session_id


def test_set_preference_stores_validated_copy(store, session_id):
    stored = store.set_preference(session_id, "c1", {
        "dietary_restrictions": ["vegan", "vegan"],
        "allergens": ["Peanuts", "peanuts ", "tree nuts"],
        "familiar_cuisines": ["Thai", "ITALIAN"],
        "spice_tolerance": 4,
        "adventurousness": 0.8,
    })
    assert stored.customer_id == "c1"
    assert stored.dietary_restrictions == {DietaryLabel.vegan}
    assert stored.allergens == {"peanuts", "tree_nuts"}
    assert stored.familiar_cuisines == {"thai", "italian"}
    assert store.get_preferences(session_id, "c1") == stored


def test_set_preference_accepts_model(store, session_id):
    prefs = CustomerPreferences(customer_id="someone-else", spice_tolerance=7)
    stored = store.set_preference(session_id, "c2", prefs)
    # the addressed customer wins over whatever id the payload carried
    assert stored.customer_id == "c2"
    assert store.get_preferences(session_id, "c2").spice_tolerance == 7


@pytest.mark.parametrize("payload", [
    {"spice_tolerance": 11},
    {"spice_tolerance": -1},
    {"adventurousness": 1.5},
    {"dietary_restrictions": ["carnivore"]},
    {"flavor": {"sweet": 12}},
])
def test_out_of_range_rejected_not_clamped(store, session_id, payload):
    before = store.get_preferences(session_id, "c1")
    with pytest.raises(InvalidArgument) as exc_info:
        store.set_preference(session_id, "c1", payload)
    assert exc_info.value.context["customer_id"] == "c1"
    assert exc_info.value.context["errors"]
    assert store.get_preferences(session_id, "c1") == before


def test_update_is_partial(store, session_id):
    store.set_preference(session_id, "c1", {"allergens": ["dairy"], "spice_tolerance": 2})
    updated = store.update_preference(session_id, "c1", spice_tolerance=6)
    assert updated.spice_tolerance == 6
    assert updated.allergens == {"dairy"}


def test_update_cannot_rename_customer(store, session_id):
    updated = store.update_preference(session_id, "c1", customer_id="c2", spice_tolerance=1)
    assert updated.customer_id == "c1"
    assert store.get_preferences(session_id, "c2").spice_tolerance == 5


def test_invalid_update_leaves_preferences_untouched(store, session_id):
    store.set_preference(session_id, "c1", {"spice_tolerance": 2})
    with pytest.raises(InvalidArgument):
        store.update_preference(session_id, "c1", spice_tolerance=3, adventurousness=2.0)
    assert store.get_preferences(session_id, "c1").spice_tolerance == 2


def test_updates_for_one_customer_never_touch_another(store, session_id):
    store.set_preference(session_id, "c2", {"allergens": ["shellfish"], "spice_tolerance": 1})
    for tolerance in range(10):
        store.update_preference(session_id, "c1", spice_tolerance=tolerance, allergens=["gluten"])
    c2 = store.get_preferences(session_id, "c2")
    assert c2.allergens == {"shellfish"}
    assert c2.spice_tolerance == 1


def test_unknown_customer(store, session_id):
    with pytest.raises(NotFound):
        store.set_preference(session_id, "c9", {})


def test_unknown_session(store):
    with pytest.raises(NotFound):
        store.set_preference("nope", "c1", {})


def test_list_preferences_in_seat_order(store, session_id):
    assert [p.customer_id for p in store.list_preferences(session_id)] == ["c1", "c2", "c3"]


@pytest.mark.parametrize("payload", [
    {"alergens": ["peanuts"]},
    {"flavor": {"sweetness": 3}},
])
def test_unknown_field_rejected_on_set(store, session_id, payload):
    with pytest.raises(InvalidArgument) as exc_info:
        store.set_preference(session_id, "c1", payload)
    assert exc_info.value.context["errors"]
    assert store.get_preferences(session_id, "c1").allergens == set()


def test_unknown_field_rejected_on_update(store, session_id):
    store.set_preference(session_id, "c1", {"spice_tolerance": 1})
    with pytest.raises(InvalidArgument) as exc_info:
        store.update_preference(session_id, "c1", spice_tolerence=9)
    assert exc_info.value.context["errors"][0]["field"] == "spice_tolerence"
    assert store.get_preferences(session_id, "c1").spice_tolerance == 1
