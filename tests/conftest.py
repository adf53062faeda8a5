"""Shared pytest fixtures for shelflife-sync tests."""

from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from shelflife_sync.config import Config
from shelflife_sync.core import async_utils
from shelflife_sync.domain import FoodFacts, FoodItem, HouseHold, Quantity, Recipe

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live document store",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _reset_semaphore():
    """Keep the module-level request semaphore from leaking across loops."""
    async_utils.reset_semaphore()
    yield
    async_utils.reset_semaphore()


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        store_url="https://store.example.com/v1",
        api_token="test-token",
        insecure=False,
    )


@pytest.fixture
def mock_store_client(mock_config):
    """Create a mock DocumentStoreClient instance for testing."""
    from shelflife_sync.core.client import DocumentStoreClient

    client = MagicMock(spec=DocumentStoreClient)
    client.config = mock_config
    return client


@pytest.fixture
def make_recipe():
    """Factory fixture for recipes with sensible defaults."""

    def _make(uid: str = "r1", name: str = "Pasta", **fields) -> Recipe:
        return Recipe(uid=uid, name=name, **fields)

    return _make


@pytest.fixture
def make_household():
    """Factory fixture for households with sensible defaults."""

    def _make(uid: str = "h1", name: str = "Flat 3B", **fields) -> HouseHold:
        return HouseHold(uid=uid, name=name, **fields)

    return _make


@pytest.fixture
def make_food_item():
    """Factory fixture for food items with sensible defaults."""

    def _make(uid: str = "f1", name: str = "Milk", **fields) -> FoodItem:
        facts = FoodFacts(name=name, quantity=Quantity(amount=1))
        return FoodItem(uid=uid, food_facts=facts, **fields)

    return _make
