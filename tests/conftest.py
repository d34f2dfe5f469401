"""Shared test fixtures."""

from dataclasses import dataclass, field

import pytest

from food_engine.adapters.off_client import OpenFoodFactsClient
from food_engine.config import Settings
from food_engine.containers import AppContainer
from food_engine.services.cache import InMemoryCache
from food_engine.services.food_data import FoodDataService
from food_engine.services.rate_limiter import RateLimiter
from food_engine.services.retry import CancelSignal


def nutella_product() -> dict[str, object]:
    return {
        "code": "3017620422003",
        "product_name": "Nutella",
        "brands": "Ferrero, Nutella",
        "serving_size": "15 g",
        "serving_quantity": 15,
        "nutrition_grades": "e",
        "nova_group": 4,
        "completeness": 0.875,
        "image_url": "https://images.example/nutella.jpg",
        "image_thumb_url": "https://images.example/nutella.thumb.jpg",
        "nutriments": {
            "energy-kcal_100g": 539,
            "energy_100g": 2252,
            "proteins_100g": 6.3,
            "carbohydrates_100g": 57.5,
            "fat_100g": 30.9,
            "fiber_100g": 0,
            "sugars_100g": 56.3,
            "saturated-fat_100g": 10.6,
            "sodium_100g": 0.0428,
        },
    }


@dataclass
class FakeClock:
    """Manually advanced monotonic clock."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class RecordingSleep:
    """Sleep replacement that records delays and advances a fake clock."""

    clock: FakeClock | None = None
    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


@dataclass
class FakeOpenFoodFactsClient(OpenFoodFactsClient):
    """Fake Open Food Facts client with in-memory payloads."""

    search_payload: dict[str, object] = field(
        default_factory=lambda: {
            "count": 42,
            "page": 1,
            "page_size": 20,
            "products": [
                nutella_product(),
                {"code": "000", "product_name": "", "nutriments": {}},
            ],
        }
    )
    products: dict[str, dict[str, object] | None] = field(
        default_factory=lambda: {
            "3017620422003": {"status": 1, "product": nutella_product()},
        }
    )
    search_calls: list[tuple[str, int, int]] = field(default_factory=list)
    lookup_calls: list[str] = field(default_factory=list)

    async def search_products(
        self,
        query: str,
        page: int,
        page_size: int,
        cancel: CancelSignal | None = None,
    ) -> dict[str, object]:
        self.search_calls.append((query, page, page_size))
        return self.search_payload

    async def get_product(
        self, barcode: str, cancel: CancelSignal | None = None
    ) -> dict[str, object] | None:
        self.lookup_calls.append(barcode)
        if barcode not in self.products:
            return {"status": 0, "status_verbose": "product not found"}
        return self.products[barcode]


@pytest.fixture
def settings() -> Settings:
    return Settings(off_user_agent="FoodEngineTests/1.0", debug=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter.create(
        search_limit=10,
        search_window_seconds=60,
        lookup_limit=100,
        lookup_window_seconds=60,
        clock=clock,
    )


@pytest.fixture
def off_client() -> FakeOpenFoodFactsClient:
    return FakeOpenFoodFactsClient()


@pytest.fixture
def food_data_service(
    off_client: FakeOpenFoodFactsClient, rate_limiter: RateLimiter
) -> FoodDataService:
    return FoodDataService(
        client=off_client,
        rate_limiter=rate_limiter,
        cache=InMemoryCache(),
    )


@pytest.fixture
def container(
    settings: Settings,
    rate_limiter: RateLimiter,
    food_data_service: FoodDataService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        rate_limiter=rate_limiter,
        food_data_service=food_data_service,
        close_resources=close_resources,
    )
