"""Open Food Facts API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from food_engine.domain.errors import UpstreamError
from food_engine.services.fields import SEARCH_FIELDS
from food_engine.services.rate_limiter import LOOKUP_BUDGET, SEARCH_BUDGET
from food_engine.services.retry import CancelSignal, RetryController

_HTTP_NOT_FOUND = 404


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts API interactions."""

    async def search_products(
        self,
        query: str,
        page: int,
        page_size: int,
        cancel: CancelSignal | None = None,
    ) -> dict[str, object]:
        """Search products and return the raw API payload."""

    async def get_product(
        self, barcode: str, cancel: CancelSignal | None = None
    ) -> dict[str, object] | None:
        """Fetch a product payload by barcode, or None when not found."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed client; every call goes through the retry controller."""

    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient
    retry_controller: RetryController
    timeout_seconds: float = 15

    @classmethod
    def create(
        cls,
        *,
        base_url: str,
        user_agent: str,
        retry_controller: RetryController,
        timeout_seconds: float = 15,
    ) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            user_agent=user_agent,
            http_client=httpx.AsyncClient(),
            retry_controller=retry_controller,
            timeout_seconds=timeout_seconds,
        )

    @property
    def headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "application/json"}

    async def search_products(
        self,
        query: str,
        page: int,
        page_size: int,
        cancel: CancelSignal | None = None,
    ) -> dict[str, object]:
        """Search products against the search budget."""
        params = {
            "search_terms": query,
            "search_simple": 1,
            "action": "process",
            "json": "true",
            "page": page,
            "page_size": page_size,
            "fields": ",".join(SEARCH_FIELDS),
        }
        response = await self.retry_controller.execute(
            lambda: self.http_client.get(
                f"{self.base_url}/cgi/search.pl",
                params=params,
                headers=self.headers,
                timeout=self.timeout_seconds,
            ),
            SEARCH_BUDGET,
            cancel=cancel,
        )
        if response.status_code == _HTTP_NOT_FOUND:
            return {"products": [], "count": 0, "page": page}
        return _json_object(response)

    async def get_product(
        self, barcode: str, cancel: CancelSignal | None = None
    ) -> dict[str, object] | None:
        """Fetch a product by normalized barcode against the lookup budget."""
        response = await self.retry_controller.execute(
            lambda: self.http_client.get(
                f"{self.base_url}/api/v0/product/{barcode}.json",
                headers=self.headers,
                timeout=self.timeout_seconds,
            ),
            LOOKUP_BUDGET,
            cancel=cancel,
        )
        if response.status_code == _HTTP_NOT_FOUND:
            return None
        return _json_object(response)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _json_object(response: httpx.Response) -> dict[str, object]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamError(
            "Malformed response from the food database",
            status_code=response.status_code,
        ) from exc
    if not isinstance(payload, dict):
        raise UpstreamError(
            "Unexpected response shape from the food database",
            status_code=response.status_code,
        )
    return payload
