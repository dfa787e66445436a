from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

FLAVOR_AXES = ("sweet", "salty", "sour", "bitter", "umami", "spicy", "richness")
FLAVOR_MAX = 10.0
SPICE_MAX = 10


class DietaryLabel(str, Enum):
    vegetarian = "vegetarian"
    vegan = "vegan"
    gluten_free = "gluten_free"
    dairy_free = "dairy_free"
    nut_free = "nut_free"
    shellfish_free = "shellfish_free"
    halal = "halal"
    kosher = "kosher"


# Allergens that on their own rule out a dietary label
_ALLERGEN_BREAKS: dict[str, set[DietaryLabel]] = {
    "dairy": {DietaryLabel.dairy_free, DietaryLabel.vegan},
    "milk": {DietaryLabel.dairy_free, DietaryLabel.vegan},
    "egg": {DietaryLabel.vegan},
    "gluten": {DietaryLabel.gluten_free},
    "wheat": {DietaryLabel.gluten_free},
    "nuts": {DietaryLabel.nut_free},
    "tree_nuts": {DietaryLabel.nut_free},
    "peanuts": {DietaryLabel.nut_free},
    "shellfish": {DietaryLabel.shellfish_free, DietaryLabel.vegetarian, DietaryLabel.vegan, DietaryLabel.kosher},
    "fish": {DietaryLabel.vegetarian, DietaryLabel.vegan},
}


def normalize_allergens(values) -> set[str]:
    """Lower-case, strip and deduplicate allergen names."""
    if values is None:
        return set()
    if isinstance(values, str):
        values = [values]
    return {v.strip().lower().replace(" ", "_") for v in values if v and v.strip()}


def labels_broken_by(allergens: set[str], violates: set[DietaryLabel]) -> set[DietaryLabel]:
    broken = set(violates)
    for allergen in allergens:
        broken |= _ALLERGEN_BREAKS.get(allergen, set())
    return broken


class FlavorProfile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sweet: float = Field(default=5.0, ge=0.0, le=FLAVOR_MAX)
    salty: float = Field(default=5.0, ge=0.0, le=FLAVOR_MAX)
    sour: float = Field(default=5.0, ge=0.0, le=FLAVOR_MAX)
    bitter: float = Field(default=5.0, ge=0.0, le=FLAVOR_MAX)
    umami: float = Field(default=5.0, ge=0.0, le=FLAVOR_MAX)
    spicy: float = Field(default=5.0, ge=0.0, le=FLAVOR_MAX)
    richness: float = Field(default=5.0, ge=0.0, le=FLAVOR_MAX)

    def as_vector(self) -> list[float]:
        return [getattr(self, axis) for axis in FLAVOR_AXES]


class Substitute(BaseModel):
    name: str = Field(..., min_length=1)
    allergens: set[str] = Field(default_factory=set)
    violates: set[DietaryLabel] = Field(default_factory=set)

    @field_validator("allergens", mode="before")
    @classmethod
    def _normalize_allergens(cls, value):
        return normalize_allergens(value)

    @property
    def breaks(self) -> set[DietaryLabel]:
        return labels_broken_by(self.allergens, self.violates)


class Ingredient(BaseModel):
    name: str = Field(..., min_length=1)
    allergens: set[str] = Field(default_factory=set)
    violates: set[DietaryLabel] = Field(
        default_factory=set,
        description="Labels this ingredient breaks beyond those implied by its allergens",
    )
    substitutable: bool = False
    substitutions: list[Substitute] = Field(default_factory=list)

    @field_validator("allergens", mode="before")
    @classmethod
    def _normalize_allergens(cls, value):
        return normalize_allergens(value)

    @property
    def breaks(self) -> set[DietaryLabel]:
        return labels_broken_by(self.allergens, self.violates)

    @property
    def can_substitute(self) -> bool:
        return self.substitutable and bool(self.substitutions)


class Dish(BaseModel):
    """A menu item as read from the catalog.

    ``allergens`` and ``dietary`` are derived from the ingredient list and
    cannot be assigned.  ``declared_dietary`` is what the menu claims; a claim
    contradicted by an ingredient that cannot be swapped out is rejected.
    """

    dish_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    cuisine: str = ""
    ingredients: list[Ingredient] = Field(default_factory=list)
    flavor: FlavorProfile = Field(default_factory=FlavorProfile)
    spice_level: int = Field(default=0, ge=0, le=SPICE_MAX)
    available: bool = True
    popularity: float = Field(default=0.5, ge=0.0, le=1.0)
    cross_contamination: set[str] = Field(default_factory=set)
    declared_dietary: set[DietaryLabel] = Field(default_factory=set)

    @field_validator("cross_contamination", mode="before")
    @classmethod
    def _normalize_allergens(cls, value):
        return normalize_allergens(value)

    @field_validator("cuisine")
    @classmethod
    def _lower_cuisine(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _check_declared_dietary(self) -> "Dish":
        for ingredient in self.ingredients:
            contradicted = self.declared_dietary & ingredient.breaks
            if contradicted and not ingredient.can_substitute:
                labels = ", ".join(sorted(label.value for label in contradicted))
                raise ValueError(
                    f"dish {self.dish_id!r} cannot be declared {labels}: "
                    f"ingredient {ingredient.name!r} has no substitution"
                )
        return self

    @computed_field  # type: ignore[misc]
    @property
    def allergens(self) -> set[str]:
        found: set[str] = set()
        for ingredient in self.ingredients:
            found |= ingredient.allergens
        return found

    @computed_field  # type: ignore[misc]
    @property
    def dietary(self) -> set[DietaryLabel]:
        broken: set[DietaryLabel] = set()
        for ingredient in self.ingredients:
            broken |= ingredient.breaks
        return set(DietaryLabel) - broken
