"""FastAPI application factory."""

import logging
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

from food_engine.api.models import RescaleRequest, ServingsRequest
from food_engine.app_logging import configure_logging
from food_engine.containers import AppContainer
from food_engine.domain.errors import (
    FoodDataError,
    IncompleteDataError,
    InvalidInputError,
    NetworkFailureError,
    OperationCancelledError,
    RateLimitExceededError,
    UpstreamError,
)

_ERROR_STATUS: dict[type[FoodDataError], int] = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    IncompleteDataError: 422,
    RateLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
    NetworkFailureError: status.HTTP_502_BAD_GATEWAY,
    UpstreamError: status.HTTP_502_BAD_GATEWAY,
    OperationCancelledError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(FoodDataError)
    async def food_data_error(request: Request, exc: FoodDataError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("Food data request %s failed: %s", request.url.path, exc)
        headers = None
        if isinstance(exc, RateLimitExceededError):
            headers = {"Retry-After": str(math.ceil(exc.retry_after))}
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "code": exc.code},
            headers=headers,
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/foods/search", response_model=None)
    async def search_foods(
        request: Request,
        q: str | None = None,
        page: int = 1,
        page_size: int | None = Query(default=None, alias="pageSize"),
    ) -> dict[str, object] | JSONResponse:
        """Search foods by free text."""
        if not q:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Query parameter 'q' is required"},
            )
        state_container: AppContainer = request.app.state.container
        result = await state_container.food_data_service.search(
            q, page=page, page_size=page_size
        )
        return asdict(result)

    @app.get("/foods/barcode", response_model=None)
    async def lookup_barcode(
        request: Request, code: str | None = None
    ) -> dict[str, object] | JSONResponse:
        """Look up a food by barcode."""
        if not code:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Barcode parameter 'code' is required"},
            )
        state_container: AppContainer = request.app.state.container
        item = await state_container.food_data_service.lookup_by_code(code)
        if item is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "Product not found"},
            )
        return asdict(item)

    @app.get("/foods/rate-limit")
    async def rate_limit(request: Request) -> dict[str, object]:
        """Remaining upstream budget, for UI warnings."""
        state_container: AppContainer = request.app.state.container
        statuses = state_container.food_data_service.rate_limit_status()
        return {name: asdict(budget) for name, budget in statuses.items()}

    @app.post("/foods/rescale")
    async def rescale(body: RescaleRequest, request: Request) -> dict[str, object]:
        """Recalculate a food item for a gram serving."""
        state_container: AppContainer = request.app.state.container
        item = state_container.food_data_service.rescale(body.item.to_item(), body.grams)
        return asdict(item)

    @app.post("/foods/servings")
    async def servings_total(
        body: ServingsRequest, request: Request
    ) -> dict[str, float]:
        """Total macros for a number of servings."""
        state_container: AppContainer = request.app.state.container
        totals = state_container.food_data_service.total_for_servings(
            body.item.to_item(), body.servings
        )
        return asdict(totals)

    return app


def _status_for(exc: FoodDataError) -> int:
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR
