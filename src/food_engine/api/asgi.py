"""ASGI entrypoint for the food engine API."""

from food_engine.api.app import create_app
from food_engine.containers import build_container

app = create_app(build_container())
