"""Search and barcode lookup over Open Food Facts with normalization."""

import logging
import re
from dataclasses import dataclass

from food_engine.adapters.off_client import OpenFoodFactsClient
from food_engine.domain.errors import IncompleteDataError, InvalidInputError
from food_engine.domain.foods import CanonicalFoodItem, SearchPage, ServingTotals
from food_engine.services import servings
from food_engine.services.cache import Cache
from food_engine.services.fields import KJ_HEURISTIC_THRESHOLD
from food_engine.services.normalizer import normalize
from food_engine.services.numbers import as_number
from food_engine.services.rate_limiter import BudgetStatus, RateLimiter
from food_engine.services.retry import CancelSignal
from food_engine.services.validator import is_usable

_NON_DIGITS = re.compile(r"\D")
_MIN_BARCODE_DIGITS = 8
_MAX_BARCODE_DIGITS = 14

_logger = logging.getLogger(__name__)


def normalize_barcode(code: str) -> str:
    """Strip non-digits and check the 8-14 digit length."""
    digits = _NON_DIGITS.sub("", code or "")
    if not _MIN_BARCODE_DIGITS <= len(digits) <= _MAX_BARCODE_DIGITS:
        raise InvalidInputError(
            "Invalid barcode format. Expected 8-14 digits.",
            details={"code": code},
        )
    return digits


@dataclass
class FoodDataService:
    """Public entry point for food search, lookup and serving maths."""

    client: OpenFoodFactsClient
    rate_limiter: RateLimiter
    cache: Cache | None = None
    default_page_size: int = 20
    max_page_size: int = 50
    min_query_length: int = 2
    kj_threshold: float = KJ_HEURISTIC_THRESHOLD
    search_ttl_seconds: float = 3600
    lookup_ttl_seconds: float = 86400
    debug: bool = False

    async def search(
        self,
        query: str,
        page: int = 1,
        page_size: int | None = None,
        cancel: CancelSignal | None = None,
    ) -> SearchPage:
        """Search foods; unusable records are dropped from the page."""
        page = max(1, page)
        size = min(max(1, page_size or self.default_page_size), self.max_page_size)
        cleaned = (query or "").strip()
        if len(cleaned) < self.min_query_length:
            return SearchPage(
                items=[], total_count=0, page=page, page_size=size, has_more=False
            )

        cache_key = f"off:search:{cleaned.lower()}:{page}:{size}"
        cached = self._cache_get(cache_key)
        if isinstance(cached, SearchPage):
            return cached

        payload = await self.client.search_products(cleaned, page, size, cancel=cancel)
        products = payload.get("products")
        records = [
            product
            for product in (products if isinstance(products, list) else [])
            if isinstance(product, dict)
        ]
        usable = [record for record in records if is_usable(record)]
        if len(usable) < len(records):
            _logger.info(
                "Dropped %s unusable records for query=%s",
                len(records) - len(usable),
                cleaned,
            )
        total_count = int(as_number(payload.get("count")) or 0)
        result = SearchPage(
            items=[normalize(record, kj_threshold=self.kj_threshold) for record in usable],
            total_count=total_count,
            page=int(as_number(payload.get("page")) or page),
            page_size=size,
            has_more=page * size < total_count,
        )
        self._cache_set(cache_key, result, self.search_ttl_seconds)
        if self.debug:
            _logger.info(
                "Food search: query=%s page=%s results=%s total=%s",
                cleaned,
                page,
                len(result.items),
                total_count,
            )
        return result

    async def lookup_by_code(
        self, code: str, cancel: CancelSignal | None = None
    ) -> CanonicalFoodItem | None:
        """Look up a product by barcode; returns None when it does not exist."""
        barcode = normalize_barcode(code)
        cache_key = f"off:product:{barcode}"
        cached = self._cache_get(cache_key)
        if isinstance(cached, CanonicalFoodItem):
            return cached

        payload = await self.client.get_product(barcode, cancel=cancel)
        product = payload.get("product") if payload else None
        found = payload is not None and as_number(payload.get("status")) == 1
        if not found or not isinstance(product, dict):
            if self.debug:
                _logger.info("Food lookup: barcode=%s not found", barcode)
            return None
        if not is_usable(product):
            raise IncompleteDataError(
                "Product found but lacks nutritional information",
                details={"barcode": barcode},
            )
        item = normalize(product, kj_threshold=self.kj_threshold)
        self._cache_set(cache_key, item, self.lookup_ttl_seconds)
        if self.debug:
            _logger.info("Food lookup: barcode=%s name=%s", barcode, item.name)
        return item

    def rescale(self, item: CanonicalFoodItem, grams: float) -> CanonicalFoodItem:
        return servings.rescale(item, grams)

    def total_for_servings(
        self, item: CanonicalFoodItem, count: float
    ) -> ServingTotals:
        return servings.total_for_servings(item, count)

    def rate_limit_status(self) -> dict[str, BudgetStatus]:
        """Remaining requests and reset time for every budget."""
        return {
            name: self.rate_limiter.status(name)
            for name in self.rate_limiter.budget_names
        }

    def _cache_get(self, key: str) -> object | None:
        return self.cache.get(key) if self.cache is not None else None

    def _cache_set(self, key: str, value: object, ttl_seconds: float) -> None:
        if self.cache is not None:
            self.cache.set(key, value, ttl_seconds=ttl_seconds)
