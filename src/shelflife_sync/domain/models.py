"""Pydantic models for the household pantry domain.

Documents use camelCase keys and upper-case enum names, matching the
layout of the existing remote collections.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from ..sync.models import Entity

DEFAULT_IMAGE_URL = (
    "https://media.istockphoto.com/id/1354776457/vector/"
    "default-image-icon-vector-missing-picture-page-for-website-design-"
    "or-mobile-app-no-photo.jpg"
)


class _Document(BaseModel):
    """Base for value objects nested inside entity documents."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FoodUnit(str, Enum):
    GRAM = "GRAM"
    ML = "ML"
    COUNT = "COUNT"


class FoodCategory(str, Enum):
    FRUIT = "FRUIT"
    VEGETABLE = "VEGETABLE"
    MEAT = "MEAT"
    DAIRY = "DAIRY"
    GRAIN = "GRAIN"
    BEVERAGE = "BEVERAGE"
    SNACK = "SNACK"
    FISH = "FISH"
    OTHER = "OTHER"


class FoodStatus(str, Enum):
    UNOPENED = "UNOPENED"
    OPENED = "OPENED"
    CONSUMED = "CONSUMED"
    EXPIRED = "EXPIRED"


class FoodStorageLocation(str, Enum):
    PANTRY = "PANTRY"
    FRIDGE = "FRIDGE"
    FREEZER = "FREEZER"
    OTHER = "OTHER"


def _whole(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class Quantity(_Document):
    """Amount of food with its unit.

    ``str()`` gives the label shown to users: ``1.5kg``, ``250ml``,
    ``3 in stock``.
    """

    amount: float
    unit: FoodUnit = FoodUnit.GRAM

    def __str__(self) -> str:
        match self.unit:
            case FoodUnit.GRAM:
                if self.amount >= 1000:
                    return f"{_whole(self.amount / 1000)}kg"
                return f"{_whole(self.amount)}g"
            case FoodUnit.ML:
                if self.amount >= 1000:
                    return f"{_whole(self.amount / 1000)}L"
                return f"{_whole(self.amount)}ml"
            case _:
                return f"{int(self.amount)} in stock"


class NutritionFacts(_Document):
    """Nutrition facts per 100g/100ml."""

    energy_kcal: int = 0
    fat: float = 0.0
    saturated_fat: float = 0.0
    carbohydrates: float = 0.0
    sugars: float = 0.0
    proteins: float = 0.0
    salt: float = 0.0


class FoodFacts(_Document):
    """Product-level facts shared by every item of the same product."""

    name: str
    barcode: str = ""
    quantity: Quantity
    category: FoodCategory = FoodCategory.OTHER
    nutrition_facts: NutritionFacts = Field(default_factory=NutritionFacts)
    image_url: str = DEFAULT_IMAGE_URL


class FoodItem(Entity):
    """One physical food item stored by a household.

    Attributes:
        food_facts: Product information.
        buy_date: When the item was bought.
        expiry_date: When the item expires.
        open_date: When the item was opened.
        location: Where the item is stored.
        status: Lifecycle status.
        owner: Uid of the user who added the item.
    """

    food_facts: FoodFacts
    buy_date: datetime | None = None
    expiry_date: datetime | None = None
    open_date: datetime | None = None
    location: FoodStorageLocation = FoodStorageLocation.OTHER
    status: FoodStatus = FoodStatus.UNOPENED
    owner: str = ""

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date < now


class Ingredient(_Document):
    name: str
    quantity: Quantity
    macros: NutritionFacts = Field(default_factory=NutritionFacts)


class Recipe(Entity):
    """A recipe, stored with its cooking time as integer seconds."""

    name: str
    instructions: list[str] = Field(default_factory=list)
    servings: float = 1.0
    time: timedelta = timedelta(0)
    ingredients: list[Ingredient] = Field(default_factory=list)

    @field_serializer("time")
    def _serialize_time(self, value: timedelta) -> int:
        return int(value.total_seconds())


class HouseHold(Entity):
    """A household sharing food items and recipes.

    Attributes:
        name: Display name, unique among a user's households.
        members: Uids of member users.
        shared_recipes: Uids of recipes shared with the household.
        rat_points: Member uid to rat points.
        stinky_points: Member uid to stinky points.
    """

    name: str
    members: list[str] = Field(default_factory=list)
    shared_recipes: list[str] = Field(default_factory=list)
    rat_points: dict[str, int] = Field(default_factory=dict)
    stinky_points: dict[str, int] = Field(default_factory=dict)
