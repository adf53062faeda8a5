"""Collection-bound repositories for the pantry domain.

Each repository is a ``SyncRepository`` fixed to one entity type and one
collection path.  ``build_repositories`` wires them up explicitly from a
store factory; nothing here is a process-wide singleton.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..sync.cache import ObservableCache
from ..sync.models import MutationResult
from ..sync.repository import SyncRepository
from ..sync.store import RemoteDocumentStore
from .models import FoodItem, HouseHold, Recipe

logger = logging.getLogger(__name__)

RECIPES_COLLECTION = "recipes"
HOUSEHOLDS_COLLECTION = "households"

StoreFactory = Callable[[type, str], RemoteDocumentStore[Any]]


def food_item_collection(household_uid: str) -> str:
    """Collection path holding the food items of *household_uid*."""
    return f"foodItems/{household_uid}/items"


class RecipeRepository(SyncRepository[Recipe]):
    """Recipes of the signed-in user."""


class HouseholdRepository(SyncRepository[HouseHold]):
    """Households the signed-in user belongs to."""

    def name_exists(self, name: str) -> bool:
        """Return ``True`` if a cached household already uses *name*."""
        return any(household.name == name for household in self.snapshot())

    def members_of(self, household_uid: str) -> list[str]:
        """Member uids of a cached household; empty if it is not cached."""
        household = self.cache.get(household_uid)
        return list(household.members) if household is not None else []

    def update_rat_points(
        self, household_uid: str, rat_points: dict[str, int]
    ) -> asyncio.Task[MutationResult]:
        """Optimistically replace the rat points of a cached household.

        Raises:
            ValueError: If the household is not cached.
        """
        household = self._cached(household_uid)
        return self.update(
            household.model_copy(update={"rat_points": dict(rat_points)})
        )

    def update_stinky_points(
        self, household_uid: str, stinky_points: dict[str, int]
    ) -> asyncio.Task[MutationResult]:
        """Optimistically replace the stinky points of a cached household.

        Raises:
            ValueError: If the household is not cached.
        """
        household = self._cached(household_uid)
        return self.update(
            household.model_copy(update={"stinky_points": dict(stinky_points)})
        )

    def _cached(self, household_uid: str) -> HouseHold:
        household = self.cache.get(household_uid)
        if household is None:
            raise ValueError(f"Household '{household_uid}' is not loaded")
        return household


class FoodItemRepository(SyncRepository[FoodItem]):
    """Food items of one household.

    Args:
        store: Store bound to ``food_item_collection(household_uid)``.
        household_uid: Owning household.
    """

    def __init__(
        self,
        store: RemoteDocumentStore[FoodItem],
        household_uid: str,
        cache: ObservableCache[FoodItem] | None = None,
        *,
        serialize_per_uid: bool = True,
    ) -> None:
        super().__init__(store, cache, serialize_per_uid=serialize_per_uid)
        self._household_uid = household_uid

    @property
    def household_uid(self) -> str:
        return self._household_uid

    async def initialize_household(self, selected_uid: str | None = None) -> None:
        """Replace the cache with every food item of the household.

        Read failures are logged and leave the cache empty.
        """
        await self.initialize_collection(selected_uid)

    def start_listening_household(self) -> None:
        """Follow every food item of the household, including new ones."""
        self.start_listening_collection()


@dataclass
class Repositories:
    """Repositories for one session.  ``food_items`` needs a household."""

    recipes: RecipeRepository
    households: HouseholdRepository
    food_items: FoodItemRepository | None = None

    async def close(self) -> None:
        for repo in (self.recipes, self.households, self.food_items):
            if repo is not None:
                await repo.close()


def build_repositories(
    store_factory: StoreFactory,
    household_uid: str | None = None,
    *,
    serialize_per_uid: bool = True,
) -> Repositories:
    """Build the repositories for a session.

    Args:
        store_factory: Called as ``store_factory(entity_type, collection)``.
        household_uid: Household whose food items to manage, if any.
        serialize_per_uid: Passed through to every repository.
    """
    food_items = None
    if household_uid is not None:
        food_items = FoodItemRepository(
            store_factory(FoodItem, food_item_collection(household_uid)),
            household_uid,
            serialize_per_uid=serialize_per_uid,
        )
    repos = Repositories(
        recipes=RecipeRepository(
            store_factory(Recipe, RECIPES_COLLECTION),
            serialize_per_uid=serialize_per_uid,
        ),
        households=HouseholdRepository(
            store_factory(HouseHold, HOUSEHOLDS_COLLECTION),
            serialize_per_uid=serialize_per_uid,
        ),
        food_items=food_items,
    )
    logger.debug(
        "Built repositories (household=%s, serialize_per_uid=%s)",
        household_uid,
        serialize_per_uid,
    )
    return repos
