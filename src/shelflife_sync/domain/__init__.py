"""Pantry domain: entities and collection-bound repositories."""

from .models import (
    FoodCategory,
    FoodFacts,
    FoodItem,
    FoodStatus,
    FoodStorageLocation,
    FoodUnit,
    HouseHold,
    Ingredient,
    NutritionFacts,
    Quantity,
    Recipe,
)
from .repositories import (
    HOUSEHOLDS_COLLECTION,
    RECIPES_COLLECTION,
    FoodItemRepository,
    HouseholdRepository,
    RecipeRepository,
    Repositories,
    build_repositories,
    food_item_collection,
)

__all__ = [
    "HOUSEHOLDS_COLLECTION",
    "RECIPES_COLLECTION",
    "FoodCategory",
    "FoodFacts",
    "FoodItem",
    "FoodItemRepository",
    "FoodStatus",
    "FoodStorageLocation",
    "FoodUnit",
    "HouseHold",
    "HouseholdRepository",
    "Ingredient",
    "NutritionFacts",
    "Quantity",
    "Recipe",
    "RecipeRepository",
    "Repositories",
    "build_repositories",
    "food_item_collection",
]
