"""Dependency container wiring for the engine."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from food_engine.adapters.off_client import HttpxOpenFoodFactsClient
from food_engine.config import Settings
from food_engine.services.cache import InMemoryCache
from food_engine.services.food_data import FoodDataService
from food_engine.services.rate_limiter import RateLimiter
from food_engine.services.retry import RetryController


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    rate_limiter: RateLimiter
    food_data_service: FoodDataService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    rate_limiter = RateLimiter.create(
        search_limit=resolved_settings.search_rate_limit,
        search_window_seconds=resolved_settings.search_rate_window_seconds,
        lookup_limit=resolved_settings.lookup_rate_limit,
        lookup_window_seconds=resolved_settings.lookup_rate_window_seconds,
    )
    retry_controller = RetryController(
        rate_limiter=rate_limiter,
        policy=resolved_settings.retry_policy(),
    )
    off_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.off_base_url,
        user_agent=resolved_settings.off_user_agent,
        retry_controller=retry_controller,
        timeout_seconds=resolved_settings.http_timeout_seconds,
    )
    food_data_service = FoodDataService(
        client=off_client,
        rate_limiter=rate_limiter,
        cache=InMemoryCache(),
        default_page_size=resolved_settings.default_page_size,
        max_page_size=resolved_settings.max_page_size,
        min_query_length=resolved_settings.min_query_length,
        kj_threshold=resolved_settings.kj_heuristic_threshold,
        search_ttl_seconds=resolved_settings.search_cache_ttl_seconds,
        lookup_ttl_seconds=resolved_settings.lookup_cache_ttl_seconds,
        debug=resolved_settings.debug,
    )

    async def close_resources() -> None:
        await off_client.close()

    return AppContainer(
        settings=resolved_settings,
        rate_limiter=rate_limiter,
        food_data_service=food_data_service,
        close_resources=close_resources,
    )
